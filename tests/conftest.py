"""Shared pytest fixtures."""

import pytest
import pytest_asyncio
from fakes import FakeMongoPool
from fastapi.testclient import TestClient

from aidfusion.app import App
from aidfusion.config import Config
from aidfusion.core.core import Core
from aidfusion.web.server import create_fastapi_app

ADMIN_EMAIL = "admin@aidfusion.test"
ADMIN_PASSWORD = "admin-password"


@pytest.fixture
def config():
    """Test configuration: cheap bcrypt, no Secure cookie, bootstrap admin."""
    return Config(
        database_url="mongodb://localhost:27017",
        session_secret_key="test-session-secret-key-0123456789abcdef",
        cookie_secure=False,
        password_hash_rounds=4,
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
    )


@pytest.fixture
def pool():
    return FakeMongoPool()


@pytest.fixture
def core(config, pool):
    return Core(config, pool)


@pytest_asyncio.fixture
async def started_core(core):
    """Core with indexes created and the bootstrap admin in place."""
    await core.on_start()
    yield core
    await core.on_stop()


@pytest.fixture
def client(config, pool):
    """HTTP client running the full application lifespan."""
    fastapi_app = create_fastapi_app(App(config, pool), config)
    with TestClient(fastapi_app) as test_client:
        yield test_client
