from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"


@dataclass(frozen=True)
class TokenInfo:
    """Bearer token and its lifetime in seconds, as issued by a TokenService"""

    token: Optional[str]
    expires_in: int


class JWTTokenConfig(BaseModel):
    """OAuth JWT-bearer app credentials"""
    app_id: str
    private_key: str
    key_id: str
    aud: str = "api.coze.com"
    algorithm: str = "RS256"
    session_name: Optional[str] = None
    duration_seconds: Optional[int] = None
    scope: Optional[str] = None


class JWTToken(BaseModel):
    """Response of the OAuth token exchange"""
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
