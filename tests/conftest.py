import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport
from postbox.config import Context
from postbox.main import create_app

TEST_KEY = b"test-hmac-key"
TEST_URL = "http://x/"


@pytest.fixture
def storage_root(tmp_path):
    return tmp_path / "files"


@pytest.fixture
def context(storage_root):
    return Context(file_root=storage_root, key=TEST_KEY, root_url=TEST_URL)


@pytest.fixture
def app(context):
    return create_app(context)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest_asyncio.fixture
async def async_client(app):
    """Client driving the app in the test's event loop, for concurrent and slow requests."""
    # ASGITransport does not run the lifespan
    await app.state.storage_manager.initialize()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
