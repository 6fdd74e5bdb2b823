import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from errands.domain.chat.relay import MessageRelay
from errands.domain.common.audit import AuditTrail
from errands.domain.common.events import EventBus
from errands.domain.common.models import Product, ProductStatus, User, UserRole
from errands.domain.incentives.ledger import IncentiveLedger
from errands.domain.incentives.service import RatingService
from errands.domain.notifications.fanout import NotificationFanout
from errands.domain.notifications.service import NotificationService
from errands.domain.presence.registry import PresenceRegistry
from errands.domain.requests.service import RequestService
from errands.infra.auth import AuthenticatedUser
from errands.infra.store import MemoryStore
from errands.main import create_app
from errands.settings import settings

HOSTELLER = "hosteller-1"
HOSTELLER_2 = "hosteller-2"
DAYSCHOLAR = "dayscholar-1"
DAYSCHOLAR_2 = "dayscholar-2"
ADMIN = "admin-1"
SOLD_PRODUCT = "product-sold"
LISTED_PRODUCT = "product-listed"


def actor(user_id: str, role: str, name: str | None = None) -> AuthenticatedUser:
	return AuthenticatedUser(id=user_id, role=role, name=name)


def auth_headers(user_id: str, role: str) -> dict[str, str]:
	return {"X-User-Id": user_id, "X-User-Role": role}


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from errands.infra.redis import redis_client, set_redis_client
	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def force_test_settings():
	"""API and socket tests authenticate via X-User-* headers, which are only accepted in dev."""
	original_env = settings.environment
	original_backend = settings.storage_backend
	settings.environment = "dev"
	settings.storage_backend = "memory"
	try:
		yield
	finally:
		settings.environment = original_env
		settings.storage_backend = original_backend


@pytest.fixture
def store() -> MemoryStore:
	memory = MemoryStore()
	memory.seed_user(User(id=HOSTELLER, name="Hana", role=UserRole.HOSTELLER))
	memory.seed_user(User(id=HOSTELLER_2, name="Hugo", role=UserRole.HOSTELLER))
	memory.seed_user(User(id=DAYSCHOLAR, name="Dev", role=UserRole.DAYSCHOLAR))
	memory.seed_user(User(id=DAYSCHOLAR_2, name="Dana", role=UserRole.DAYSCHOLAR))
	memory.seed_user(User(id=ADMIN, name="Ada", role=UserRole.ADMIN))
	memory.seed_product(
		Product(id=SOLD_PRODUCT, seller_id=DAYSCHOLAR, name="Desk lamp", status=ProductStatus.SOLD, buyer_id=HOSTELLER)
	)
	memory.seed_product(Product(id=LISTED_PRODUCT, seller_id=HOSTELLER_2, name="Kettle"))
	return memory


@pytest.fixture
def transport() -> AsyncMock:
	mock = AsyncMock()
	mock.emit = AsyncMock()
	return mock


@pytest.fixture
def registry(transport) -> PresenceRegistry:
	return PresenceRegistry(transport)


@pytest.fixture
def bus(registry) -> EventBus:
	event_bus = EventBus()
	NotificationFanout(registry).install(event_bus)
	IncentiveLedger().install(event_bus)
	AuditTrail().install(event_bus)
	return event_bus


@pytest.fixture
def request_service(store, bus, registry) -> RequestService:
	return RequestService(store, bus, registry=registry)


@pytest.fixture
def rating_service(store, bus) -> RatingService:
	return RatingService(store, bus)


@pytest.fixture
def notification_service(store) -> NotificationService:
	return NotificationService(store)


@pytest.fixture
def relay(store, bus, registry) -> MessageRelay:
	return MessageRelay(store, bus, registry)


@pytest.fixture
def app(store):
	return create_app(store=store)


@pytest_asyncio.fixture
async def api_client(app):
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
