"""
OAuth JWT-bearer token service.

The app signs a short-lived JWT with its private key and exchanges it at
/api/permission/oauth2/token for an access token. Signing is delegated to a
Signer so each runtime can plug in its own crypto backend.
"""

import logging
import secrets
from typing import Any, Dict, Optional, Protocol

from jose import jwt as jose_jwt

from cozeapi.config import settings
from cozeapi.http.client import (
    APIClient,
    RequestOptions,
    decode_json,
    error_from_response,
    validate_payload,
)
from cozeapi.models.auth import JWT_BEARER_GRANT, JWTToken, JWTTokenConfig, TokenInfo
from cozeapi.utils.exceptions import APIError, ErrorRes, ValidationError
from cozeapi.utils.time import epoch_seconds

logger = logging.getLogger(__name__)

TOKEN_PATH = "/api/permission/oauth2/token"

# Lifetime of the signed assertion itself (seconds)
JWT_ASSERTION_TTL = 3600


class Signer(Protocol):
    """Produces a compact JWT."""

    def sign(self, payload: Dict[str, Any], private_key: str, algorithm: str, key_id: str) -> str:
        ...


class JoseSigner:
    """Signer backed by python-jose."""

    def sign(self, payload: Dict[str, Any], private_key: str, algorithm: str, key_id: str) -> str:
        return jose_jwt.encode(payload, private_key, algorithm=algorithm, headers={"kid": key_id})


def detect_key_format(private_key: str) -> Optional[str]:
    """Return "RSA" or "PKCS8" for PEM keys, None otherwise."""
    if "BEGIN RSA PRIVATE KEY" in private_key:
        return "RSA"
    if "BEGIN PRIVATE KEY" in private_key:
        return "PKCS8"
    return None


class JWTTokenService:
    """TokenService issuing access tokens through the JWT-bearer grant."""

    def __init__(
        self,
        config: JWTTokenConfig,
        client: APIClient,
        signer: Optional[Signer] = None,
    ):
        self.config = config
        self._client = client
        self._signer = signer or JoseSigner()

    def build_claims(self, now: int) -> Dict[str, Any]:
        claims: Dict[str, Any] = {
            "iss": self.config.app_id,
            "aud": self.config.aud,
            "iat": now,
            "exp": now + JWT_ASSERTION_TTL,
            "jti": secrets.token_hex(16),
        }
        if self.config.session_name is not None:
            claims["session_name"] = self.config.session_name
        return claims

    async def get_jwt_token(self, options: Optional[RequestOptions] = None) -> JWTToken:
        """Sign an assertion and exchange it for an access token."""
        private_key = self.config.private_key.strip()
        if detect_key_format(private_key) is None:
            raise ValidationError("Invalid private key format. Expected PEM format (RSA or PKCS8)")

        assertion = self._signer.sign(
            self.build_claims(epoch_seconds()),
            private_key,
            self.config.algorithm,
            self.config.key_id,
        )

        payload: Dict[str, Any] = {
            "grant_type": JWT_BEARER_GRANT,
            "duration_seconds": self.config.duration_seconds or settings.jwt_duration_seconds,
        }
        if self.config.scope is not None:
            payload["scope"] = self.config.scope

        response = await self._client.request("POST", TOKEN_PATH, assertion, payload, options)
        if not response.is_success:
            raise error_from_response(response)

        body = decode_json(response)
        if isinstance(body, dict) and (body.get("error") or body.get("code")):
            raise APIError.generate(response.status_code, ErrorRes.parse(body), None, response.headers)
        return validate_payload(JWTToken, body, response.text)

    async def get_token(self) -> TokenInfo:
        token = await self.get_jwt_token()
        expires_in = token.expires_in
        now = epoch_seconds()
        if expires_in > now:
            # The endpoint reports an absolute Unix expiry
            expires_in = expires_in - now
        logger.info(f"Obtained OAuth access token for app {self.config.app_id}")
        return TokenInfo(token=token.access_token, expires_in=expires_in)
