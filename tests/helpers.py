"""Builders for fake Coze responses."""

from typing import Callable, Dict, List, Optional

import httpx
import orjson

from cozeapi.utils.sse import format_sse

BASE_URL = "https://api.test"


def json_response(body, status: int = 200, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
    return httpx.Response(status, content=orjson.dumps(body), headers=headers)


def envelope(data, code: int = 0, msg: str = "") -> dict:
    return {"code": code, "msg": msg, "data": data}


def sse_response(*frames: str, status: int = 200) -> httpx.Response:
    return httpx.Response(
        status,
        content="".join(frames).encode(),
        headers={"content-type": "text/event-stream"},
    )


def frame(event: str, data) -> str:
    if not isinstance(data, str):
        data = orjson.dumps(data).decode()
    return format_sse(event, data)


def request_json(request: httpx.Request):
    return orjson.loads(request.content)


class FakeServer:
    """Routes requests by path to handlers and records every request."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def route(self, path: str, handler: Callable[[httpx.Request], httpx.Response]):
        self.routes[path] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(request.url.path)
        if handler is None:
            return json_response({"code": 4200, "msg": f"no route {request.url.path}"}, 404)
        return handler(request)

    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]

    def count(self, path: str) -> int:
        return self.paths().count(path)


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
