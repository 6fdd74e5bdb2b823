"""Rating persistence; uniqueness per (rater, rated, transaction, type) is a storage constraint."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, List

import asyncpg

from errands.domain.incentives.exceptions import RatingAlreadySubmitted
from errands.domain.incentives.models import Rating

if TYPE_CHECKING:
	from errands.infra.store import MemoryState

_COLUMNS = "id, rater_id, rated_user_id, transaction_id, transaction_type, score, comment, created_at"


class PostgresRatingRepository:
	def __init__(self, conn: asyncpg.Connection) -> None:
		self._conn = conn

	async def insert(self, rating: Rating) -> Rating:
		try:
			# savepoint keeps the outer transaction usable if the constraint fires
			async with self._conn.transaction():
				row = await self._conn.fetchrow(
					f"""
					INSERT INTO ratings ({_COLUMNS})
					VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
					RETURNING {_COLUMNS}
					""",
					rating.id,
					rating.rater_id,
					rating.rated_user_id,
					rating.transaction_id,
					rating.transaction_type.value,
					rating.score,
					rating.comment,
					rating.created_at,
				)
		except asyncpg.UniqueViolationError as exc:
			raise RatingAlreadySubmitted() from exc
		return Rating.from_record(row)

	async def list_for_user(self, rated_user_id: str, *, limit: int = 100) -> List[Rating]:
		rows = await self._conn.fetch(
			f"SELECT {_COLUMNS} FROM ratings WHERE rated_user_id = $1 ORDER BY created_at DESC LIMIT $2",
			rated_user_id,
			limit,
		)
		return [Rating.from_record(r) for r in rows]


class MemoryRatingRepository:
	def __init__(self, state: "MemoryState") -> None:
		self._state = state

	async def insert(self, rating: Rating) -> Rating:
		key = rating.dedupe_key()
		if any(existing.dedupe_key() == key for existing in self._state.ratings.values()):
			raise RatingAlreadySubmitted()
		self._state.ratings[rating.id] = replace(rating)
		return replace(rating)

	async def list_for_user(self, rated_user_id: str, *, limit: int = 100) -> List[Rating]:
		ratings = [replace(r) for r in self._state.ratings.values() if r.rated_user_id == rated_user_id]
		ratings.sort(key=lambda r: r.created_at, reverse=True)
		return ratings[:limit]
