"""
Unit tests for bearer token caching and refresh.
"""

import asyncio

import pytest

from cozeapi.auth.token_manager import StaticTokenService, TokenManager, TokenService
from cozeapi.models.auth import TokenInfo
from cozeapi.utils.exceptions import TokenError


class CountingService:
    """Issues tok-1, tok-2, ... and counts calls."""

    def __init__(self, expires_in: int = 900, delay: float = 0.0):
        self.calls = 0
        self.expires_in = expires_in
        self.delay = delay

    async def get_token(self) -> TokenInfo:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return TokenInfo(token=f"tok-{self.calls}", expires_in=self.expires_in)


class Clock:
    def __init__(self, now: int = 1_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.mark.asyncio
class TestTokenManager:
    async def test_caches_within_validity_window(self):
        service = CountingService(expires_in=900)
        clock = Clock()
        manager = TokenManager(service, refresh_margin=30, clock=clock)

        assert await manager.get_token() == "tok-1"
        clock.now += 800
        assert await manager.get_token() == "tok-1"
        assert service.calls == 1
        assert manager.expires_at == 1_900

    async def test_refreshes_inside_margin(self):
        service = CountingService(expires_in=900)
        clock = Clock()
        manager = TokenManager(service, refresh_margin=30, clock=clock)

        await manager.get_token()
        clock.now += 871
        assert await manager.get_token() == "tok-2"
        assert service.calls == 2

    async def test_force_refresh(self):
        service = CountingService()
        manager = TokenManager(service, refresh_margin=30, clock=Clock())

        await manager.get_token()
        assert await manager.get_token(force_refresh=True) == "tok-2"

    async def test_invalidate(self):
        service = CountingService()
        manager = TokenManager(service, refresh_margin=30, clock=Clock())

        await manager.get_token()
        manager.invalidate()

        assert manager.cached_token is None
        assert await manager.get_token() == "tok-2"

    async def test_uninitialized(self):
        manager = TokenManager()
        with pytest.raises(TokenError):
            await manager.get_token()

    async def test_init_attaches_service(self):
        manager = TokenManager()
        manager.init(CountingService())
        assert await manager.get_token() == "tok-1"

    async def test_empty_token_is_rejected(self):
        class EmptyService:
            async def get_token(self) -> TokenInfo:
                return TokenInfo(token="", expires_in=900)

        manager = TokenManager(EmptyService())
        with pytest.raises(TokenError, match="Token not available"):
            await manager.get_token()
        assert manager.cached_token is None

    async def test_concurrent_callers_share_one_refresh(self):
        service = CountingService(delay=0.01)
        manager = TokenManager(service, refresh_margin=30, clock=Clock())

        tokens = await asyncio.gather(*[manager.get_token() for _ in range(10)])

        assert set(tokens) == {"tok-1"}
        assert service.calls == 1

    async def test_service_errors_propagate(self):
        class FailingService:
            async def get_token(self) -> TokenInfo:
                raise RuntimeError("boom")

        manager = TokenManager(FailingService())
        with pytest.raises(RuntimeError, match="boom"):
            await manager.get_token()


@pytest.mark.asyncio
async def test_static_token_service():
    service = StaticTokenService("pat_abc")

    info = await service.get_token()

    assert info == TokenInfo(token="pat_abc", expires_in=StaticTokenService.EXPIRES_IN)
    assert isinstance(service, TokenService)
