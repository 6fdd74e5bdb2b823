"""Unit-of-work storage.

``Store.transaction()`` opens one transaction and yields a ``Session`` that
exposes every repository bound to it. Everything written through the session
commits or rolls back together. Callbacks registered with
``Session.on_commit`` run only after a successful commit; they are best effort
and their failures are logged, never raised.

``PostgresStore`` runs on the shared asyncpg pool. ``MemoryStore`` keeps the
same tables in process for tests and ``STORAGE_BACKEND=memory``; it serialises
transactions with one lock and restores a snapshot on failure.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from typing import AsyncIterator, Awaitable, Callable, Dict, List

from errands.domain.chat.models import Message
from errands.domain.chat.repo import MemoryMessageRepository, PostgresMessageRepository
from errands.domain.common.models import Product, User
from errands.domain.common.repo import (
	MemoryProductRepository,
	MemoryUserRepository,
	PostgresProductRepository,
	PostgresUserRepository,
)
from errands.domain.incentives.models import Rating
from errands.domain.incentives.repo import MemoryRatingRepository, PostgresRatingRepository
from errands.domain.notifications.models import Notification
from errands.domain.notifications.repo import MemoryNotificationRepository, PostgresNotificationRepository
from errands.domain.requests.models import DeliveryRequest, RequestTransitionRecord
from errands.domain.requests.repo import MemoryRequestRepository, PostgresRequestRepository
from errands.infra import postgres

_LOGGER = logging.getLogger(__name__)

AfterCommit = Callable[[], Awaitable[None]]


class Session:
	"""Repositories bound to one open transaction."""

	def __init__(self, *, requests, users, products, notifications, messages, ratings) -> None:
		self.requests = requests
		self.users = users
		self.products = products
		self.notifications = notifications
		self.messages = messages
		self.ratings = ratings
		self._after_commit: List[AfterCommit] = []

	def on_commit(self, callback: AfterCommit) -> None:
		self._after_commit.append(callback)

	async def run_after_commit(self) -> None:
		callbacks, self._after_commit = self._after_commit, []
		for callback in callbacks:
			try:
				await callback()
			except Exception:
				_LOGGER.exception("after_commit_failed", extra={"callback": getattr(callback, "__qualname__", repr(callback))})


class Store:
	"""Interface shared by the storage backends."""

	name = "abstract"

	def transaction(self):  # pragma: no cover - interface
		raise NotImplementedError

	async def close(self) -> None:
		return None


class PostgresStore(Store):
	name = "postgres"

	@asynccontextmanager
	async def transaction(self) -> AsyncIterator[Session]:
		pool = await postgres.get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				session = Session(
					requests=PostgresRequestRepository(conn),
					users=PostgresUserRepository(conn),
					products=PostgresProductRepository(conn),
					notifications=PostgresNotificationRepository(conn),
					messages=PostgresMessageRepository(conn),
					ratings=PostgresRatingRepository(conn),
				)
				yield session
		await session.run_after_commit()

	async def close(self) -> None:
		await postgres.close_pool()


@dataclass
class MemoryState:
	users: Dict[str, User] = field(default_factory=dict)
	products: Dict[str, Product] = field(default_factory=dict)
	requests: Dict[str, DeliveryRequest] = field(default_factory=dict)
	transitions: List[RequestTransitionRecord] = field(default_factory=list)
	notifications: Dict[str, Notification] = field(default_factory=dict)
	messages: Dict[str, Message] = field(default_factory=dict)
	ratings: Dict[str, Rating] = field(default_factory=dict)

	def restore(self, snapshot: "MemoryState") -> None:
		self.users = snapshot.users
		self.products = snapshot.products
		self.requests = snapshot.requests
		self.transitions = snapshot.transitions
		self.notifications = snapshot.notifications
		self.messages = snapshot.messages
		self.ratings = snapshot.ratings


class MemoryStore(Store):
	"""In-process store used in tests and local demos."""

	name = "memory"

	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self.state = MemoryState()

	def seed_user(self, user: User) -> User:
		self.state.users[user.id] = replace(user)
		return user

	def seed_product(self, product: Product) -> Product:
		self.state.products[product.id] = replace(product)
		return product

	@asynccontextmanager
	async def transaction(self) -> AsyncIterator[Session]:
		async with self._lock:
			snapshot = copy.deepcopy(self.state)
			session = Session(
				requests=MemoryRequestRepository(self.state),
				users=MemoryUserRepository(self.state),
				products=MemoryProductRepository(self.state),
				notifications=MemoryNotificationRepository(self.state),
				messages=MemoryMessageRepository(self.state),
				ratings=MemoryRatingRepository(self.state),
			)
			try:
				yield session
			except BaseException:
				self.state.restore(snapshot)
				raise
		await session.run_after_commit()


def build_store(backend: str) -> Store:
	if backend.lower() == "memory":
		return MemoryStore()
	return PostgresStore()
