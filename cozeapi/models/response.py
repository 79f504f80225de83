from typing import Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """JSON envelope of every non-streaming Coze endpoint. `code == 0` means success."""

    code: int = 0
    msg: str = ""
    data: Optional[T] = None
    request_id: Optional[str] = None
    detail: Optional[Dict[str, str]] = None

    # OAuth2 error format
    error: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    total: Optional[int] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def is_success(self) -> bool:
        return self.code == 0 and self.error is None
