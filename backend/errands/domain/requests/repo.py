"""Persistence for delivery requests and their transition log.

Two implementations share one interface: ``PostgresRequestRepository`` runs on
the asyncpg connection of the open transaction, ``MemoryRequestRepository``
works on the in-process state held by ``MemoryStore``.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Dict, List, Optional

from errands.domain.requests.models import (
	TERMINAL_STATUSES,
	DeliveryRequest,
	RequestFilters,
	RequestStatus,
	RequestTransitionRecord,
)
from errands.domain.requests.transitions import TransitionPlan

if TYPE_CHECKING:
	import asyncpg

	from errands.infra.store import MemoryState


_OPEN_STATUSES = [RequestStatus.PENDING.value, RequestStatus.ACCEPTED.value]

_COLUMNS = (
	"id, requester_id, fulfiller_id, item_name, description, quantity, expected_price, "
	"deadline, delivery_location, is_urgent, category, status, created_at, updated_at, "
	"accepted_at, completed_at, cancelled_at"
)


class PostgresRequestRepository:
	def __init__(self, conn: "asyncpg.Connection") -> None:
		self._conn = conn

	async def insert(self, request: DeliveryRequest) -> DeliveryRequest:
		row = await self._conn.fetchrow(
			f"""
			INSERT INTO delivery_requests ({_COLUMNS})
			VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16, $17)
			RETURNING {_COLUMNS}
			""",
			request.id,
			request.requester_id,
			request.fulfiller_id,
			request.item_name,
			request.description,
			request.quantity,
			request.expected_price,
			request.deadline,
			request.delivery_location,
			request.is_urgent,
			request.category.value,
			request.status.value,
			request.created_at,
			request.updated_at,
			request.accepted_at,
			request.completed_at,
			request.cancelled_at,
		)
		return DeliveryRequest.from_record(row)

	async def get(self, request_id: str) -> Optional[DeliveryRequest]:
		row = await self._conn.fetchrow(
			f"SELECT {_COLUMNS} FROM delivery_requests WHERE id = $1",
			request_id,
		)
		return DeliveryRequest.from_record(row) if row else None

	async def list_open(self, filters: RequestFilters) -> List[DeliveryRequest]:
		clauses = ["status = ANY($1::text[])"]
		args: list = [_OPEN_STATUSES]
		if filters.category is not None:
			args.append(filters.category.value)
			clauses.append(f"category = ${len(args)}")
		if filters.urgent_only:
			clauses.append("is_urgent")
		if filters.search:
			args.append(f"%{filters.search}%")
			clauses.append(f"(item_name ILIKE ${len(args)} OR description ILIKE ${len(args)})")
		args.append(filters.limit)
		rows = await self._conn.fetch(
			f"""
			SELECT {_COLUMNS} FROM delivery_requests
			WHERE {' AND '.join(clauses)}
			ORDER BY is_urgent DESC, created_at DESC
			LIMIT ${len(args)}
			""",
			*args,
		)
		return [DeliveryRequest.from_record(r) for r in rows]

	async def _list_by(self, column: str, user_id: str, status: Optional[RequestStatus], limit: int) -> List[DeliveryRequest]:
		rows = await self._conn.fetch(
			f"""
			SELECT {_COLUMNS} FROM delivery_requests
			WHERE {column} = $1 AND ($2::text IS NULL OR status = $2)
			ORDER BY created_at DESC
			LIMIT $3
			""",
			user_id,
			status.value if status else None,
			limit,
		)
		return [DeliveryRequest.from_record(r) for r in rows]

	async def list_by_requester(self, user_id: str, filters: RequestFilters) -> List[DeliveryRequest]:
		return await self._list_by("requester_id", user_id, filters.status, filters.limit)

	async def list_by_fulfiller(self, user_id: str, filters: RequestFilters) -> List[DeliveryRequest]:
		return await self._list_by("fulfiller_id", user_id, filters.status, filters.limit)

	async def status_counts(self, column: str, user_id: str) -> Dict[RequestStatus, int]:
		rows = await self._conn.fetch(
			f"SELECT status, COUNT(*) AS n FROM delivery_requests WHERE {column} = $1 GROUP BY status",
			user_id,
		)
		return {RequestStatus(r["status"]): int(r["n"]) for r in rows}

	async def completed_earnings(self, fulfiller_id: str) -> Decimal:
		total = await self._conn.fetchval(
			"""
			SELECT COALESCE(SUM(expected_price), 0) FROM delivery_requests
			WHERE fulfiller_id = $1 AND status = $2
			""",
			fulfiller_id,
			RequestStatus.COMPLETED.value,
		)
		return Decimal(total)

	async def count_available(self) -> int:
		return await self._conn.fetchval(
			"SELECT COUNT(*) FROM delivery_requests WHERE status = $1 AND fulfiller_id IS NULL",
			RequestStatus.PENDING.value,
		)

	async def compare_and_set(self, request_id: str, plan: TransitionPlan, now: datetime) -> Optional[DeliveryRequest]:
		"""Apply ``plan`` only if the row still has the status and fulfiller it was planned against."""
		row = await self._conn.fetchrow(
			f"""
			UPDATE delivery_requests
			SET status = $4, fulfiller_id = $5, updated_at = $6, {plan.stamp} = $6
			WHERE id = $1 AND status = $2 AND fulfiller_id IS NOT DISTINCT FROM $3
			RETURNING {_COLUMNS}
			""",
			request_id,
			plan.expected_status.value,
			plan.expected_fulfiller_id,
			plan.target.value,
			plan.fulfiller_id,
			now,
		)
		return DeliveryRequest.from_record(row) if row else None

	async def log_transition(self, record: RequestTransitionRecord) -> None:
		await self._conn.execute(
			"""
			INSERT INTO request_transitions (request_id, transition, from_status, to_status, actor_id, fulfiller_id, created_at)
			VALUES ($1, $2, $3, $4, $5, $6, $7)
			""",
			record.request_id,
			record.transition.value,
			record.from_status.value,
			record.to_status.value,
			record.actor_id,
			record.fulfiller_id,
			record.created_at,
		)

	async def history(self, request_id: str) -> List[RequestTransitionRecord]:
		rows = await self._conn.fetch(
			"""
			SELECT request_id, transition, from_status, to_status, actor_id, fulfiller_id, created_at
			FROM request_transitions
			WHERE request_id = $1
			ORDER BY created_at ASC, id ASC
			""",
			request_id,
		)
		return [RequestTransitionRecord.from_record(r) for r in rows]


class MemoryRequestRepository:
	"""In-process twin of the Postgres repository; callers always get copies."""

	def __init__(self, state: "MemoryState") -> None:
		self._state = state

	async def insert(self, request: DeliveryRequest) -> DeliveryRequest:
		self._state.requests[request.id] = replace(request)
		return replace(request)

	async def get(self, request_id: str) -> Optional[DeliveryRequest]:
		stored = self._state.requests.get(request_id)
		return replace(stored) if stored else None

	async def list_open(self, filters: RequestFilters) -> List[DeliveryRequest]:
		needle = filters.search.lower() if filters.search else None
		matches = []
		for request in self._state.requests.values():
			if request.status in TERMINAL_STATUSES:
				continue
			if filters.category is not None and request.category != filters.category:
				continue
			if filters.urgent_only and not request.is_urgent:
				continue
			if needle and needle not in request.item_name.lower() and needle not in (request.description or "").lower():
				continue
			matches.append(replace(request))
		matches.sort(key=lambda r: (r.is_urgent, r.created_at), reverse=True)
		return matches[: filters.limit]

	def _list_by(self, attr: str, user_id: str, filters: RequestFilters) -> List[DeliveryRequest]:
		matches = [
			replace(r)
			for r in self._state.requests.values()
			if getattr(r, attr) == user_id and (filters.status is None or r.status == filters.status)
		]
		matches.sort(key=lambda r: r.created_at, reverse=True)
		return matches[: filters.limit]

	async def list_by_requester(self, user_id: str, filters: RequestFilters) -> List[DeliveryRequest]:
		return self._list_by("requester_id", user_id, filters)

	async def list_by_fulfiller(self, user_id: str, filters: RequestFilters) -> List[DeliveryRequest]:
		return self._list_by("fulfiller_id", user_id, filters)

	async def status_counts(self, column: str, user_id: str) -> Dict[RequestStatus, int]:
		return dict(Counter(r.status for r in self._state.requests.values() if getattr(r, column) == user_id))

	async def completed_earnings(self, fulfiller_id: str) -> Decimal:
		return sum(
			(
				r.expected_price
				for r in self._state.requests.values()
				if r.fulfiller_id == fulfiller_id and r.status is RequestStatus.COMPLETED
			),
			Decimal("0"),
		)

	async def count_available(self) -> int:
		return sum(1 for r in self._state.requests.values() if r.status is RequestStatus.PENDING and r.fulfiller_id is None)

	async def compare_and_set(self, request_id: str, plan: TransitionPlan, now: datetime) -> Optional[DeliveryRequest]:
		stored = self._state.requests.get(request_id)
		if stored is None:
			return None
		if stored.status != plan.expected_status or stored.fulfiller_id != plan.expected_fulfiller_id:
			return None
		plan.apply(stored, now)
		return replace(stored)

	async def log_transition(self, record: RequestTransitionRecord) -> None:
		self._state.transitions.append(replace(record))

	async def history(self, request_id: str) -> List[RequestTransitionRecord]:
		return [replace(r) for r in self._state.transitions if r.request_id == request_id]
