import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from foundry.domain.workshops.repository import WorkshopRepository, reset_memory_state
from foundry.infra import postgres
from foundry.main import app
from foundry.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from foundry.infra.redis import redis_client, set_redis_client
	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Run against the in-process store and accept X-User-Id headers."""
	original_env = settings.environment
	original_store = settings.store_backend
	settings.environment = "dev"
	settings.store_backend = "memory"
	try:
		yield
	finally:
		settings.environment = original_env
		settings.store_backend = original_store


@pytest_asyncio.fixture(autouse=True)
async def reset_memory():
	await reset_memory_state()
	yield


@pytest.fixture
def repository():
	return WorkshopRepository()


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client


@pytest_asyncio.fixture
async def workshop(repository):
	"""An Active session owned by ``fac-1`` with two groups and four participants."""
	session = await repository.create_session(facilitator_id="fac-1", name="Retro", status="Active")
	green = await repository.create_group(session.id, "Green")
	blue = await repository.create_group(session.id, "Blue")
	ana = await repository.create_participant(session.id, display_name="Ana", group_id=green.id)
	ben = await repository.create_participant(session.id, display_name="Ben", group_id=green.id)
	cy = await repository.create_participant(session.id, display_name="Cy", group_id=blue.id)
	solo = await repository.create_participant(session.id, display_name="Solo")
	return SimpleNamespace(
		session=session,
		green=green,
		blue=blue,
		ana=ana,
		ben=ben,
		cy=cy,
		solo=solo,
	)
