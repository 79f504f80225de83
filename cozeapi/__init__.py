from cozeapi.client import CozeClient
from cozeapi.http import APIClient, RequestOptions
from cozeapi.utils.exceptions import (
    APIError,
    CozeError,
    ErrorKind,
    JSONParseError,
    PollTimeoutError,
    StreamLimitError,
    TokenError,
    ValidationError,
    WorkflowError,
)

__version__ = "0.1.0"

__all__ = [
    "APIClient",
    "APIError",
    "CozeClient",
    "CozeError",
    "ErrorKind",
    "JSONParseError",
    "PollTimeoutError",
    "RequestOptions",
    "StreamLimitError",
    "TokenError",
    "ValidationError",
    "WorkflowError",
]
