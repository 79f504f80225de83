"""
Bearer token caching.

A TokenManager wraps a TokenService (anything that can issue a TokenInfo) and
caches its token in memory until shortly before expiry. Refreshes are
single-flight: concurrent callers wait on one lock and reuse the token the
first caller fetched.
"""

import asyncio
import logging
from typing import Callable, Optional, Protocol, runtime_checkable

from cozeapi.config import settings
from cozeapi.models.auth import TokenInfo
from cozeapi.utils.exceptions import TokenError
from cozeapi.utils.time import epoch_seconds

logger = logging.getLogger(__name__)


@runtime_checkable
class TokenService(Protocol):
    """Issues bearer tokens."""

    async def get_token(self) -> TokenInfo:
        ...


class StaticTokenService:
    """A personal access token that never expires client-side."""

    # Re-checked once a day; the token itself does not change
    EXPIRES_IN = 86400

    def __init__(self, token: str):
        self._token = token

    async def get_token(self) -> TokenInfo:
        return TokenInfo(token=self._token, expires_in=self.EXPIRES_IN)


class TokenManager:
    """Caches a bearer token and refreshes it through a TokenService."""

    def __init__(
        self,
        service: Optional[TokenService] = None,
        refresh_margin: Optional[int] = None,
        clock: Callable[[], int] = epoch_seconds,
    ):
        self._service = service
        self._refresh_margin = (
            refresh_margin if refresh_margin is not None else settings.token_refresh_margin
        )
        self._clock = clock
        self._token: Optional[str] = None
        self._expires_at: int = 0
        self._refresh_count = 0
        self._lock = asyncio.Lock()

    def init(self, service: TokenService) -> None:
        """Attach the token service. Required before the first get_token()."""
        self._service = service

    @property
    def cached_token(self) -> Optional[str]:
        return self._token

    @property
    def expires_at(self) -> int:
        return self._expires_at

    def _is_fresh(self, now: int) -> bool:
        return self._token is not None and now < self._expires_at - self._refresh_margin

    async def get_token(self, force_refresh: bool = False) -> str:
        """
        Return a valid bearer token.

        Refreshes when no token is cached, when it is within the refresh
        margin of expiry, or when `force_refresh` is set.

        Raises:
            TokenError: no service attached, or the service returned no token
        """
        if self._service is None:
            raise TokenError("TokenManager is not initialized with a TokenService")

        if not force_refresh and self._is_fresh(self._clock()):
            return self._token

        seen_refreshes = self._refresh_count
        async with self._lock:
            # Another caller refreshed while we waited on the lock
            if self._refresh_count != seen_refreshes and self._is_fresh(self._clock()):
                return self._token
            if not force_refresh and self._is_fresh(self._clock()):
                return self._token
            return await self._refresh()

    async def _refresh(self) -> str:
        now = self._clock()
        info = await self._service.get_token()
        if not info.token:
            raise TokenError("Token not available")

        self._token = info.token
        self._expires_at = now + int(info.expires_in)
        self._refresh_count += 1
        logger.debug(f"Bearer token refreshed, expires in {info.expires_in}s")
        return self._token

    def invalidate(self) -> None:
        """Drop the cached token; the next get_token() refreshes."""
        self._token = None
        self._expires_at = 0
