"""
HTTP transport for the Coze API.
Wraps httpx.AsyncClient with bearer auth, query/header options, JSON bodies
and a capped Server-Sent-Events mode.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Mapping, Optional, Type, TypeVar
from urllib.parse import urlencode

import httpx
import orjson
from pydantic import BaseModel, ValidationError as PydanticValidationError

from cozeapi.config import settings
from cozeapi.models.events import TERMINAL_EVENTS, EventType, classify
from cozeapi.utils.exceptions import (
    APIError,
    ErrorRes,
    JSONParseError,
    StreamLimitError,
)
from cozeapi.utils.sse import SSEFrame, iter_sse_frames

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

SSE_HEADERS = {
    "Accept": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

_SENSITIVE_HEADERS = ("authorization", "x-api-key")


@dataclass(frozen=True)
class RequestOptions:
    """Per-call headers and query parameters."""

    headers: Mapping[str, str] = field(default_factory=dict)
    params: Mapping[str, str] = field(default_factory=dict)

    def merge(self, override: Optional["RequestOptions"]) -> "RequestOptions":
        """Copy with override: keys in `override` replace keys in self."""
        if override is None:
            return self
        return RequestOptions(
            headers={**self.headers, **override.headers},
            params={**self.params, **override.params},
        )

    def with_params(self, **params: Any) -> "RequestOptions":
        """Copy with extra query parameters; None values are skipped."""
        extra = {k: str(v) for k, v in params.items() if v is not None}
        return self.merge(RequestOptions(params=extra))


@dataclass(frozen=True)
class MultipartForm:
    """Pre-built multipart body, sent as multipart/form-data."""

    data: Dict[str, Any] = field(default_factory=dict)
    files: Dict[str, Any] = field(default_factory=dict)


def dump_body(body: Any) -> bytes:
    """Serialize a JSON body; pydantic models drop None fields."""
    if isinstance(body, BaseModel):
        body = body.model_dump(mode="json", exclude_none=True)
    return orjson.dumps(body)


def decode_json(response: httpx.Response, model: Optional[Type[M]] = None) -> Any:
    """
    Decode a response body as JSON, optionally validating it into `model`.

    Raises:
        JSONParseError: malformed JSON or schema mismatch (raw text attached)
    """
    text = response.text
    try:
        payload = orjson.loads(text)
    except orjson.JSONDecodeError as e:
        raise JSONParseError(
            f"Failed to parse JSON response (HTTP {response.status_code}): {e}", text
        ) from e
    if model is None:
        return payload
    return validate_payload(model, payload, text)


def validate_payload(model: Type[M], payload: Any, text: str = "") -> M:
    """Validate decoded JSON into `model`, raising JSONParseError on mismatch."""
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise JSONParseError(
            f"Response does not match {model.__name__}: {e.error_count()} error(s)",
            text or orjson.dumps(payload).decode(),
        ) from e


def error_from_response(response: httpx.Response) -> APIError:
    """Classify a failed response, using its JSON error body when present."""
    try:
        payload = orjson.loads(response.content) if response.content else None
    except orjson.JSONDecodeError:
        payload = None
    message = None if payload is not None else response.text[:200] or None
    return APIError.generate(
        response.status_code, ErrorRes.parse(payload), message, response.headers
    )


def error_from_frame(frame: SSEFrame, response: httpx.Response) -> APIError:
    """Build the error raised for an in-stream `error` frame."""
    try:
        payload = orjson.loads(frame.data) if frame.data else None
    except orjson.JSONDecodeError:
        payload = None
    error = ErrorRes.parse(payload)
    message = None if error else f"stream error: {frame.data or '(no data)'}"
    return APIError.generate(response.status_code, error, message, response.headers)


class APIClient:
    """
    HTTP client wrapper around httpx.AsyncClient.

    Features:
    - Bearer token per client, overridable per call
    - Query parameters and extra headers via RequestOptions
    - JSON, plain-text and multipart bodies
    - Server-Sent-Events streaming with a hard frame cap
    - Sensitive header masking in logs
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        max_sse_events: Optional[int] = None,
    ):
        """
        Initialize API client.

        Args:
            base_url: API root, e.g. https://api.coze.com
            token: Default bearer token
            http_client: Shared httpx.AsyncClient (not closed by this client)
            timeout: Request timeout in seconds
            max_sse_events: Maximum frames accepted per SSE stream
        """
        self.base_url = (base_url or settings.base_url).rstrip("/")
        self.token = token
        self.timeout = float(timeout if timeout is not None else settings.timeout)
        self.max_sse_events = max_sse_events or settings.max_sse_events

        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=self.timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the underlying httpx client if this instance created it."""
        if self._client and self._owns_client:
            await self._client.aclose()

    def build_url(self, path: str, params: Optional[Mapping[str, str]] = None) -> str:
        """Append query parameters to `path`, honouring an existing query string."""
        query = urlencode(dict(params)) if params else ""
        if query:
            path = f"{path}&{query}" if "?" in path else f"{path}?{query}"
        return self.base_url + path

    def _headers(self, token: Optional[str], options: RequestOptions) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        actual_token = token or self.token
        if actual_token:
            headers["Authorization"] = f"Bearer {actual_token}"
        headers.update(options.headers)
        return headers

    def _body_kwargs(self, method: str, body: Any, headers: Dict[str, str]) -> Dict[str, Any]:
        if body is None or method.upper() == "GET":
            return {}
        if isinstance(body, MultipartForm):
            # httpx sets multipart/form-data with its own boundary
            return {"data": body.data, "files": body.files}
        if isinstance(body, str):
            headers.setdefault("Content-Type", "text/plain")
            return {"content": body.encode()}
        headers.setdefault("Content-Type", "application/json")
        return {"content": dump_body(body)}

    def _log_request(self, method: str, url: str, headers: Mapping[str, str]):
        """Log request details (without sensitive headers)."""
        safe_headers = {
            k: "***" if k.lower() in _SENSITIVE_HEADERS else v for k, v in headers.items()
        }
        logger.debug(f"{method} {url} | headers: {safe_headers}")

    async def request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        body: Any = None,
        options: Optional[RequestOptions] = None,
    ) -> httpx.Response:
        """
        Send one request and return the raw response.

        Non-2xx statuses are NOT raised here; the API reports some errors in
        200-status envelopes, so callers decode the body.

        Raises:
            APIError: kind CONNECTION when no response was received
        """
        options = options or RequestOptions()
        url = self.build_url(path, options.params)
        headers = self._headers(token, options)
        kwargs = self._body_kwargs(method, body, headers)
        self._log_request(method, url, headers)

        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.TransportError as e:
            logger.error(f"Request failed: {method} {url}: {type(e).__name__}: {e}")
            raise APIError.connection(f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            logger.warning(f"{method} {url} -> HTTP {response.status_code}: {response.text[:200]}")
        return response

    async def _call(
        self,
        method: str,
        path: str,
        payload: Any,
        options: Optional[RequestOptions],
        response_model: Optional[Type[M]],
        token: Optional[str],
    ) -> Any:
        response = await self.request(method, path, token, payload, options)
        return decode_json(response, response_model)

    async def get(
        self,
        path: str,
        options: Optional[RequestOptions] = None,
        response_model: Optional[Type[M]] = None,
        token: Optional[str] = None,
    ) -> Any:
        """GET and decode JSON. Raises JSONParseError on undecodable bodies."""
        return await self._call("GET", path, None, options, response_model, token)

    async def post(
        self,
        path: str,
        payload: Any = None,
        options: Optional[RequestOptions] = None,
        response_model: Optional[Type[M]] = None,
        token: Optional[str] = None,
    ) -> Any:
        """POST and decode JSON. Raises JSONParseError on undecodable bodies."""
        return await self._call("POST", path, payload, options, response_model, token)

    async def put(
        self,
        path: str,
        payload: Any = None,
        options: Optional[RequestOptions] = None,
        response_model: Optional[Type[M]] = None,
        token: Optional[str] = None,
    ) -> Any:
        """PUT and decode JSON. Raises JSONParseError on undecodable bodies."""
        return await self._call("PUT", path, payload, options, response_model, token)

    async def delete(
        self,
        path: str,
        payload: Any = None,
        options: Optional[RequestOptions] = None,
        response_model: Optional[Type[M]] = None,
        token: Optional[str] = None,
    ) -> Any:
        """DELETE and decode JSON. Raises JSONParseError on undecodable bodies."""
        return await self._call("DELETE", path, payload, options, response_model, token)

    async def sse(
        self,
        path: str,
        body: Any = None,
        options: Optional[RequestOptions] = None,
        token: Optional[str] = None,
    ) -> AsyncIterator[SSEFrame]:
        """
        Open a streaming POST and yield raw frames in arrival order.

        The stream ends after a `done`/`Done` frame (which is yielded). An
        `error` frame closes the connection without being yielded and raises
        the classified APIError. More than `max_sse_events` frames raises
        StreamLimitError. Closing the generator releases the connection.

        Raises:
            APIError: opening status not 2xx, in-stream error, connection loss
            StreamLimitError: frame cap exceeded
        """
        options = RequestOptions(headers=SSE_HEADERS).merge(options)
        url = self.build_url(path, options.params)
        headers = self._headers(token, options)
        kwargs = self._body_kwargs("POST", body if body is not None else {}, headers)
        self._log_request("POST", url, headers)

        # No read timeout between sparse server events
        stream_timeout = httpx.Timeout(self.timeout, read=None)
        request = self._client.build_request(
            "POST", url, headers=headers, timeout=stream_timeout, **kwargs
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.TransportError as e:
            logger.error(f"SSE connection failed: {url}: {type(e).__name__}: {e}")
            raise APIError.connection(f"{type(e).__name__}: {e}") from e

        try:
            if not response.is_success:
                await response.aread()
                logger.warning(f"SSE {url} -> HTTP {response.status_code}: {response.text[:200]}")
                raise error_from_response(response)

            count = 0
            async for frame in iter_sse_frames(response.aiter_lines()):
                count += 1
                if count > self.max_sse_events:
                    logger.error(f"SSE reached maximum event limit ({self.max_sse_events})")
                    raise StreamLimitError("stream exceeded maximum event limit")

                logger.debug(f"SSE event ({count}/{self.max_sse_events}): {frame.event}")
                event_type = classify(frame)
                if event_type is EventType.ERROR:
                    raise error_from_frame(frame, response)

                yield frame
                if event_type in TERMINAL_EVENTS:
                    return
        except httpx.TransportError as e:
            logger.error(f"SSE connection error: {url}: {type(e).__name__}: {e}")
            raise APIError.connection(f"{type(e).__name__}: {e}") from e
        finally:
            try:
                await response.aclose()
            except Exception as e:
                logger.warning(f"Error closing SSE response for {url}: {e}")
