"""Access to users and products.

Both tables are owned by the identity and marketplace services. This backend
reads them and, for users, maintains the ``points`` and ``average_rating``
counters on behalf of the incentive ledger.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Iterable, List, Optional

from errands.domain.common.models import Product, User, UserRole

if TYPE_CHECKING:
	import asyncpg

	from errands.infra.store import MemoryState

_USER_COLUMNS = "id, name, role, is_verified, points, average_rating"
_ONE_DECIMAL = Decimal("0.1")


def round_rating(scores: Iterable[int]) -> Decimal:
	"""Arithmetic mean rounded half-up to one decimal; 0.0 without scores."""
	values = list(scores)
	if not values:
		return Decimal("0.0")
	mean = Decimal(sum(values)) / Decimal(len(values))
	return mean.quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP)


class PostgresUserRepository:
	def __init__(self, conn: "asyncpg.Connection") -> None:
		self._conn = conn

	async def get(self, user_id: str) -> Optional[User]:
		row = await self._conn.fetchrow(f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1", user_id)
		return User.from_record(row) if row else None

	async def list_verified(self, role: UserRole) -> List[User]:
		rows = await self._conn.fetch(
			f"SELECT {_USER_COLUMNS} FROM users WHERE role = $1 AND is_verified ORDER BY id",
			role.value,
		)
		return [User.from_record(r) for r in rows]

	async def add_points(self, user_id: str, amount: int) -> int:
		total = await self._conn.fetchval(
			"UPDATE users SET points = points + $2 WHERE id = $1 RETURNING points",
			user_id,
			amount,
		)
		return int(total or 0)

	async def refresh_average_rating(self, user_id: str) -> Decimal:
		value = await self._conn.fetchval(
			"""
			UPDATE users
			SET average_rating = COALESCE(
				(SELECT ROUND(AVG(score)::numeric, 1) FROM ratings WHERE rated_user_id = $1),
				0.0
			)
			WHERE id = $1
			RETURNING average_rating
			""",
			user_id,
		)
		return Decimal(str(value if value is not None else "0.0"))

	async def top_by_points(self, limit: int) -> List[User]:
		rows = await self._conn.fetch(
			f"SELECT {_USER_COLUMNS} FROM users ORDER BY points DESC, id ASC LIMIT $1",
			limit,
		)
		return [User.from_record(r) for r in rows]


class PostgresProductRepository:
	def __init__(self, conn: "asyncpg.Connection") -> None:
		self._conn = conn

	async def get(self, product_id: str) -> Optional[Product]:
		row = await self._conn.fetchrow(
			"SELECT id, seller_id, name, status, buyer_id FROM products WHERE id = $1",
			product_id,
		)
		return Product.from_record(row) if row else None


class MemoryUserRepository:
	def __init__(self, state: "MemoryState") -> None:
		self._state = state

	async def get(self, user_id: str) -> Optional[User]:
		user = self._state.users.get(user_id)
		return replace(user) if user else None

	async def list_verified(self, role: UserRole) -> List[User]:
		users = [replace(u) for u in self._state.users.values() if u.role == role and u.is_verified]
		users.sort(key=lambda u: u.id)
		return users

	async def add_points(self, user_id: str, amount: int) -> int:
		user = self._state.users.get(user_id)
		if user is None:
			return 0
		user.points += amount
		return user.points

	async def refresh_average_rating(self, user_id: str) -> Decimal:
		user = self._state.users.get(user_id)
		average = round_rating(r.score for r in self._state.ratings.values() if r.rated_user_id == user_id)
		if user is not None:
			user.average_rating = average
		return average

	async def top_by_points(self, limit: int) -> List[User]:
		users = sorted(self._state.users.values(), key=lambda u: (-u.points, u.id))
		return [replace(u) for u in users[:limit]]


class MemoryProductRepository:
	def __init__(self, state: "MemoryState") -> None:
		self._state = state

	async def get(self, product_id: str) -> Optional[Product]:
		product = self._state.products.get(product_id)
		return replace(product) if product else None
