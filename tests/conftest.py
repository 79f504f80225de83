import httpx
import pytest

from cozeapi.http.client import APIClient
from tests.helpers import BASE_URL, FakeClock, FakeServer


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def api(server) -> APIClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return APIClient(base_url=BASE_URL, token="test-token", http_client=http_client)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
