import pytest

from app import app, get_orchestrator, limiter
from batcher.orchestrator import TransferOrchestrator
from fakes import FakeChainClient, make_settings


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def chain_client():
    return FakeChainClient()


@pytest.fixture
def orchestrator(chain_client):
    return TransferOrchestrator(chain_client, make_settings())


@pytest.fixture(autouse=True)
def reset_limiter():
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def api(orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield app
    app.dependency_overrides.clear()
