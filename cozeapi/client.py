import logging
from typing import Optional

import httpx

from cozeapi.auth.jwt import JWTTokenService, Signer
from cozeapi.auth.token_manager import StaticTokenService, TokenManager, TokenService
from cozeapi.config import settings
from cozeapi.http.client import APIClient
from cozeapi.models.auth import JWTTokenConfig
from cozeapi.services.chat import ChatService
from cozeapi.services.workflow import WorkflowService
from cozeapi.utils.exceptions import TokenError

logger = logging.getLogger(__name__)


class CozeClient:
    """
    Entry point wiring one HTTP client, one token cache and the services.

    Authentication, in order of precedence:
    - `token_service`: any TokenService, cached by a TokenManager
    - `jwt_config`: OAuth JWT-bearer app credentials (signed by `signer`)
    - `token`: a personal access token (defaults to COZE_API_TOKEN)

    Usage:
        async with CozeClient(token="pat_...") as coze:
            result = await coze.chat.create_and_poll(req)
    """

    def __init__(
        self,
        token: Optional[str] = None,
        token_service: Optional[TokenService] = None,
        jwt_config: Optional[JWTTokenConfig] = None,
        signer: Optional[Signer] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        poll_timeout: Optional[float] = None,
    ):
        self.api = APIClient(base_url=base_url, http_client=http_client, timeout=timeout)

        if token_service is None and jwt_config is not None:
            token_service = JWTTokenService(jwt_config, self.api, signer)
        if token_service is None:
            static_token = token or settings.api_token
            if not static_token:
                raise TokenError("No API token, TokenService or JWT config configured")
            token_service = StaticTokenService(static_token)

        self.token_manager = TokenManager(token_service)
        self.chat = ChatService(
            self.api, self.token_manager, poll_interval=poll_interval, poll_timeout=poll_timeout
        )
        self.workflows = WorkflowService(self.api, self.token_manager)
        logger.debug(f"CozeClient ready for {self.api.base_url}")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Release the HTTP connection pool."""
        try:
            await self.api.close()
        except Exception as e:
            logger.warning(f"Error closing Coze client: {e}")
