import sys
from pathlib import Path

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from newsflash.domain import ids
from newsflash.domain.models import User
from newsflash.infra.gateway import MemoryGateway
from newsflash.main import app
from newsflash.services import build_services, set_services
from newsflash.settings import settings


class FakePushTransport:
    """Records every batch and acknowledges each message."""

    def __init__(self) -> None:
        self.batches: list[list[dict]] = []
        self.fail_with: Exception | None = None

    async def send(self, messages):
        if self.fail_with is not None:
            raise self.fail_with
        self.batches.append(list(messages))
        return [{"status": "ok", "id": f"ticket-{index}"} for index, _ in enumerate(messages)]


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
    from newsflash.infra.redis import get_redis_client, set_redis_client

    original = get_redis_client()
    client = FakeRedis(decode_responses=True)
    set_redis_client(client)
    try:
        yield client
    finally:
        set_redis_client(original)
        await client.flushall()


@pytest.fixture(autouse=True)
def force_test_settings():
    original_env = settings.environment
    settings.environment = "dev"
    try:
        yield
    finally:
        settings.environment = original_env


@pytest.fixture
def push_transport():
    return FakePushTransport()


@pytest.fixture
def relationship_model():
    return "friendship"


@pytest_asyncio.fixture
async def services(push_transport, relationship_model):
    container = build_services(MemoryGateway(), transport=push_transport, relationship_model=relationship_model)
    set_services(container)
    try:
        yield container
    finally:
        set_services(None)
        await container.aclose()


@pytest.fixture
def make_user(services):
    async def _make(full_name: str = "Test User", *, token: str | None = None) -> User:
        user_id = ids.generate_id(ids.USER)
        email = f"{user_id}@example.com"
        user = User(id=user_id, full_name=full_name, email=email, expo_push_token=token)
        return await services.gateway.create_user(user)

    return _make


@pytest_asyncio.fixture
async def api_client(services):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
def outbox_entries(fake_redis):
    async def _entries() -> list[dict]:
        entries = await fake_redis.xrange(settings.outbox_stream)
        return [fields for _entry_id, fields in entries]

    return _entries
