import logging
from contextlib import aclosing
from typing import Any, AsyncIterator, Optional, Type, TypeVar

import httpx

from cozeapi.auth.token_manager import TokenManager
from cozeapi.http.client import (
    APIClient,
    RequestOptions,
    decode_json,
    error_from_response,
    validate_payload,
)
from cozeapi.models.response import ApiResponse
from cozeapi.utils.exceptions import APIError, ErrorKind, ErrorRes, ValidationError
from cozeapi.utils.sse import SSEFrame

logger = logging.getLogger(__name__)

T = TypeVar("T")

# One forced refresh and one retry after an authentication failure
MAX_AUTH_RETRIES = 1


def require(condition: bool, message: str) -> None:
    """Raise ValidationError unless `condition` holds."""
    if not condition:
        raise ValidationError(message)


def require_not_blank(value: Optional[str], name: str) -> None:
    require(bool(value and value.strip()), f"{name} cannot be empty")


class APIBase:
    """
    Base class for Coze API services.

    Services share one APIClient. The bearer token comes from a TokenManager
    when one is given, else from the client's own token. Envelope failures
    (non-2xx status or nonzero `code`) are raised as classified APIErrors.
    An authentication failure triggers one forced token refresh and one retry.
    """

    def __init__(self, client: APIClient, token_manager: Optional[TokenManager] = None):
        self._client = client
        self._token_manager = token_manager

    @property
    def client(self) -> APIClient:
        return self._client

    async def _token(self, force_refresh: bool = False) -> Optional[str]:
        """Acquire a bearer token, retrying once on an authentication failure."""
        if self._token_manager is None:
            return None

        retries = 0
        while True:
            try:
                return await self._token_manager.get_token(force_refresh)
            except APIError as e:
                if e.kind is ErrorKind.AUTHENTICATION and retries < MAX_AUTH_RETRIES:
                    retries += 1
                    force_refresh = True
                    logger.warning(f"Token fetch failed (attempt {retries}): {e}")
                    continue
                raise

    def _should_retry_auth(self, error: APIError, attempt: int) -> bool:
        return (
            error.kind is ErrorKind.AUTHENTICATION
            and self._token_manager is not None
            and attempt < MAX_AUTH_RETRIES
        )

    def _check(self, response: httpx.Response) -> Any:
        """Raise for a non-2xx status or a nonzero `code`; return the decoded body."""
        if not response.is_success:
            raise error_from_response(response)

        payload = decode_json(response)
        error = ErrorRes.parse(payload)
        if error is not None and error.code not in (None, 0):
            raise APIError.generate(response.status_code, error, None, response.headers)
        return payload

    def _unwrap(self, response: httpx.Response, data_type: Any) -> ApiResponse:
        """Check status and envelope code, then decode ApiResponse[data_type]."""
        payload = self._check(response)
        envelope = validate_payload(ApiResponse[data_type], payload, response.text)
        if envelope.error is not None:
            # OAuth-style failure inside a 2xx response
            raise APIError.generate(
                response.status_code,
                ErrorRes(code=envelope.code or None, msg=envelope.error_message or envelope.error),
                None,
                response.headers,
            )
        return envelope

    async def _send(
        self,
        method: str,
        path: str,
        data_type: Any,
        payload: Any = None,
        options: Optional[RequestOptions] = None,
    ) -> ApiResponse:
        attempt = 0
        force_refresh = False
        while True:
            token = await self._token(force_refresh)
            response = await self._client.request(method, path, token, payload, options)
            try:
                return self._unwrap(response, data_type)
            except APIError as e:
                if not self._should_retry_auth(e, attempt):
                    raise
                attempt += 1
                force_refresh = True
                logger.warning(f"{method} {path} unauthorized, refreshing token and retrying")

    async def _get(
        self, path: str, data_type: Any, options: Optional[RequestOptions] = None
    ) -> ApiResponse:
        return await self._send("GET", path, data_type, None, options)

    async def _post(
        self,
        path: str,
        data_type: Any,
        payload: Any = None,
        options: Optional[RequestOptions] = None,
    ) -> ApiResponse:
        return await self._send("POST", path, data_type, payload, options)

    async def _put(
        self,
        path: str,
        data_type: Any,
        payload: Any = None,
        options: Optional[RequestOptions] = None,
    ) -> ApiResponse:
        return await self._send("PUT", path, data_type, payload, options)

    async def _delete(
        self,
        path: str,
        data_type: Any,
        payload: Any = None,
        options: Optional[RequestOptions] = None,
    ) -> ApiResponse:
        return await self._send("DELETE", path, data_type, payload, options)

    async def _post_raw(
        self,
        path: str,
        model: Type[T],
        payload: Any = None,
        options: Optional[RequestOptions] = None,
    ) -> T:
        """POST to an endpoint whose body is not an ApiResponse envelope."""
        attempt = 0
        force_refresh = False
        while True:
            token = await self._token(force_refresh)
            response = await self._client.request("POST", path, token, payload, options)
            try:
                body = self._check(response)
                return validate_payload(model, body, response.text)
            except APIError as e:
                if not self._should_retry_auth(e, attempt):
                    raise
                attempt += 1
                force_refresh = True
                logger.warning(f"POST {path} unauthorized, refreshing token and retrying")

    async def _sse(
        self,
        path: str,
        body: Any = None,
        options: Optional[RequestOptions] = None,
    ) -> AsyncIterator[SSEFrame]:
        """
        Stream raw frames.

        Only a rejected opening (non-2xx status) is retried after an
        authentication failure. In-stream `error` frames arrive on an
        accepted stream and are raised as-is.
        """
        attempt = 0
        force_refresh = False
        while True:
            token = await self._token(force_refresh)
            emitted = False
            try:
                async with aclosing(self._client.sse(path, body, options, token)) as frames:
                    async for frame in frames:
                        emitted = True
                        yield frame
                return
            except APIError as e:
                if emitted or not _rejected_opening(e) or not self._should_retry_auth(e, attempt):
                    raise
                attempt += 1
                force_refresh = True
                logger.warning(f"SSE {path} unauthorized, refreshing token and retrying")


def _rejected_opening(error: APIError) -> bool:
    return error.status is not None and not 200 <= error.status < 300
