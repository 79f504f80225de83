"""
Error taxonomy for the Coze client.

Every failure surfaced by the client derives from CozeError. HTTP and API
envelope failures are a single APIError type tagged with an ErrorKind, so
callers branch on `err.kind` instead of on subclasses:

    try:
        await client.chat.create(req)
    except APIError as e:
        if e.kind is ErrorKind.RATE_LIMIT:
            ...
"""

from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

LOGID_HEADER = "x-tt-logid"


class ErrorDetail(BaseModel):
    """Nested `error` object of an API error body."""
    logid: Optional[str] = None
    detail: Optional[str] = None
    help_doc: Optional[str] = Field(default=None, alias="helpDoc")

    model_config = ConfigDict(populate_by_name=True)


class ErrorRes(BaseModel):
    """Structured error body: {code, msg, error: {logid, detail, help_doc}}"""
    code: Optional[int] = None
    msg: Optional[str] = None
    error: Optional[ErrorDetail] = None

    @classmethod
    def parse(cls, payload: Any) -> Optional["ErrorRes"]:
        """Best-effort parse of a decoded body; None when it has no error shape."""
        if not isinstance(payload, dict):
            return None
        if "code" not in payload and "msg" not in payload and "error" not in payload:
            return None
        error = payload.get("error")
        if error is not None and not isinstance(error, dict):
            # OAuth-style bodies carry `error` as a plain string
            payload = {**payload, "error": None}
            if payload.get("msg") is None:
                payload["msg"] = payload.get("error_message") or error
        try:
            return cls.model_validate(payload)
        except PydanticValidationError:
            return None


class ErrorKind(str, Enum):
    CONNECTION = "connection"
    BAD_REQUEST = "bad_request"
    AUTHENTICATION = "authentication"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    GATEWAY = "gateway"
    INTERNAL_SERVER = "internal_server"
    API = "api"


class CozeError(Exception):
    """Base exception for the Coze client."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class APIError(CozeError):
    """HTTP, envelope and connection failures, tagged by `kind`."""

    def __init__(
        self,
        kind: ErrorKind,
        status: Optional[int] = None,
        error: Optional[ErrorRes] = None,
        message: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ):
        self.kind = kind
        self.status = status
        self.raw_error = error
        self.code = error.code if error else None
        self.msg = error.msg if error else None
        self.detail = error.error.detail if error and error.error else None
        self.help_doc = error.error.help_doc if error and error.error else None
        body_logid = error.error.logid if error and error.error else None
        self.logid = body_logid or _header(headers, LOGID_HEADER)
        super().__init__(make_message(status, error, message, headers))

    @classmethod
    def generate(
        cls,
        status: Optional[int],
        error: Optional[ErrorRes] = None,
        message: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> "APIError":
        """Classify a status code and optional error body."""
        return cls(classify_error(status, error), status, error, message, headers)

    @classmethod
    def connection(cls, message: str = "Connection error.") -> "APIError":
        return cls(ErrorKind.CONNECTION, None, None, message)


class JSONParseError(CozeError):
    """Body did not decode as JSON or did not match the expected shape."""

    def __init__(self, message: str, response_text: str = ""):
        self.response_text = response_text
        super().__init__(f"{message} | raw: {response_text[:500]}")


class DecodeError(JSONParseError):
    """A classified SSE frame whose data does not fit its event's shape."""


class ValidationError(CozeError, ValueError):
    """Caller-supplied argument failed a precondition; raised before any I/O."""


class PollTimeoutError(CozeError):
    """Chat polling exceeded the configured timeout."""


class StreamLimitError(CozeError):
    """SSE stream delivered more frames than the configured cap."""


class TokenError(CozeError):
    """No usable bearer token could be obtained."""


class WorkflowError(CozeError):
    """A workflow stream reported an error event."""

    def __init__(self, message: str, code: Optional[int] = None):
        self.code = code
        super().__init__(message)


def classify_error(status: Optional[int], error: Optional[ErrorRes] = None) -> ErrorKind:
    """Map an HTTP status (None = no response) and error body to an ErrorKind."""
    if status is None:
        return ErrorKind.CONNECTION

    code = error.code if error else None
    if status == 400 or code == 4000:
        return ErrorKind.BAD_REQUEST
    if status == 401 or code == 4100:
        return ErrorKind.AUTHENTICATION
    if status == 403 or code == 4101:
        return ErrorKind.PERMISSION_DENIED
    if status == 404 or code == 4200:
        return ErrorKind.NOT_FOUND
    if status == 429 or code == 4013:
        return ErrorKind.RATE_LIMIT
    if status == 408:
        return ErrorKind.TIMEOUT
    if status == 502:
        return ErrorKind.GATEWAY
    if status >= 500:
        return ErrorKind.INTERNAL_SERVER
    return ErrorKind.API


def make_message(
    status: Optional[int],
    error: Optional[ErrorRes],
    message: Optional[str],
    headers: Optional[Mapping[str, str]] = None,
) -> str:
    """Compose the human-readable message of an APIError."""
    if error is None and message:
        return message

    if error is not None:
        parts = []
        if error.code is not None:
            parts.append(f"code: {error.code}")
        if error.msg is not None:
            parts.append(f"msg: {error.msg}")
        detail = error.error.detail if error.error else None
        if detail is not None and detail != error.msg:
            parts.append(f"detail: {detail}")
        logid = (error.error.logid if error.error else None) or _header(headers, LOGID_HEADER)
        if logid:
            parts.append(f"logid: {logid}")
        if error.error and error.error.help_doc:
            parts.append(f"help doc: {error.error.help_doc}")
        if parts:
            return ", ".join(parts)

    if status is not None:
        return f"http status code: {status} (no body)"
    return "(no status code or body)"


def _header(headers: Optional[Mapping[str, str]], name: str) -> Optional[str]:
    if not headers:
        return None
    value = headers.get(name)
    if value is None:
        # plain dicts are case-sensitive, httpx.Headers is not
        for key, candidate in headers.items():
            if key.lower() == name:
                return candidate
    return value
