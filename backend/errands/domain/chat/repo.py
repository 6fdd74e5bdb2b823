"""Message persistence."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Dict, List

from errands.domain.chat.models import ConversationScope, ConversationSummary, Message

if TYPE_CHECKING:
	import asyncpg

	from errands.infra.store import MemoryState

_COLUMNS = "id, sender_id, receiver_id, content, request_id, product_id, is_read, sent_at"


class PostgresMessageRepository:
	def __init__(self, conn: "asyncpg.Connection") -> None:
		self._conn = conn

	async def insert(self, message: Message) -> Message:
		row = await self._conn.fetchrow(
			f"""
			INSERT INTO messages ({_COLUMNS})
			VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
			RETURNING {_COLUMNS}
			""",
			message.id,
			message.sender_id,
			message.receiver_id,
			message.content,
			message.request_id,
			message.product_id,
			message.is_read,
			message.sent_at,
		)
		return Message.from_record(row)

	async def conversation(self, user_id: str, peer_id: str, scope: ConversationScope, *, limit: int) -> List[Message]:
		rows = await self._conn.fetch(
			f"""
			SELECT * FROM (
				SELECT {_COLUMNS} FROM messages
				WHERE ((sender_id = $1 AND receiver_id = $2) OR (sender_id = $2 AND receiver_id = $1))
					AND ($3::text IS NULL OR request_id = $3)
					AND ($4::text IS NULL OR product_id = $4)
				ORDER BY sent_at DESC, id DESC
				LIMIT $5
			) recent
			ORDER BY sent_at ASC, id ASC
			""",
			user_id,
			peer_id,
			scope.request_id,
			scope.product_id,
			limit,
		)
		return [Message.from_record(r) for r in rows]

	async def mark_read(self, reader_id: str, peer_id: str, scope: ConversationScope) -> int:
		status = await self._conn.execute(
			"""
			UPDATE messages SET is_read = TRUE
			WHERE receiver_id = $1 AND sender_id = $2 AND NOT is_read
				AND ($3::text IS NULL OR request_id = $3)
				AND ($4::text IS NULL OR product_id = $4)
			""",
			reader_id,
			peer_id,
			scope.request_id,
			scope.product_id,
		)
		return int(status.split()[-1])

	async def conversations(self, user_id: str) -> List[ConversationSummary]:
		rows = await self._conn.fetch(
			f"""
			WITH mine AS (
				SELECT {_COLUMNS},
					CASE WHEN sender_id = $1 THEN receiver_id ELSE sender_id END AS peer_id
				FROM messages
				WHERE sender_id = $1 OR receiver_id = $1
			),
			latest AS (
				SELECT DISTINCT ON (peer_id) * FROM mine ORDER BY peer_id, sent_at DESC, id DESC
			)
			SELECT latest.*,
				(SELECT COUNT(*) FROM messages m
				 WHERE m.sender_id = latest.peer_id AND m.receiver_id = $1 AND NOT m.is_read) AS unread_count
			FROM latest
			ORDER BY sent_at DESC
			""",
			user_id,
		)
		return [
			ConversationSummary(
				peer_id=str(r["peer_id"]),
				last_message=Message.from_record(r),
				unread_count=int(r["unread_count"]),
			)
			for r in rows
		]

	async def list_scoped(self, scope: ConversationScope, *, limit: int) -> List[Message]:
		rows = await self._conn.fetch(
			f"""
			SELECT {_COLUMNS} FROM messages
			WHERE ($1::text IS NULL OR request_id = $1) AND ($2::text IS NULL OR product_id = $2)
			ORDER BY sent_at ASC, id ASC
			LIMIT $3
			""",
			scope.request_id,
			scope.product_id,
			limit,
		)
		return [Message.from_record(r) for r in rows]

	async def mark_scoped_read(self, reader_id: str, scope: ConversationScope) -> int:
		status = await self._conn.execute(
			"""
			UPDATE messages SET is_read = TRUE
			WHERE receiver_id = $1 AND NOT is_read
				AND ($2::text IS NULL OR request_id = $2)
				AND ($3::text IS NULL OR product_id = $3)
			""",
			reader_id,
			scope.request_id,
			scope.product_id,
		)
		return int(status.split()[-1])


class MemoryMessageRepository:
	def __init__(self, state: "MemoryState") -> None:
		self._state = state

	def _between(self, user_id: str, peer_id: str, scope: ConversationScope) -> List[Message]:
		pair = {user_id, peer_id}
		return [
			m
			for m in self._state.messages.values()
			if {m.sender_id, m.receiver_id} == pair and m.sender_id != m.receiver_id and scope.matches(m)
		]

	async def insert(self, message: Message) -> Message:
		self._state.messages[message.id] = replace(message)
		return replace(message)

	async def conversation(self, user_id: str, peer_id: str, scope: ConversationScope, *, limit: int) -> List[Message]:
		messages = sorted(self._between(user_id, peer_id, scope), key=lambda m: m.sent_at)
		return [replace(m) for m in messages[-limit:]]

	async def mark_read(self, reader_id: str, peer_id: str, scope: ConversationScope) -> int:
		updated = 0
		for m in self._between(reader_id, peer_id, scope):
			if m.receiver_id == reader_id and not m.is_read:
				m.is_read = True
				updated += 1
		return updated

	async def conversations(self, user_id: str) -> List[ConversationSummary]:
		latest: Dict[str, Message] = {}
		unread: Dict[str, int] = {}
		for m in self._state.messages.values():
			if not m.is_participant(user_id):
				continue
			peer = m.receiver_id if m.sender_id == user_id else m.sender_id
			current = latest.get(peer)
			if current is None or m.sent_at >= current.sent_at:
				latest[peer] = m
			if m.receiver_id == user_id and not m.is_read:
				unread[peer] = unread.get(peer, 0) + 1
		summaries = [
			ConversationSummary(peer_id=peer, last_message=replace(m), unread_count=unread.get(peer, 0))
			for peer, m in latest.items()
		]
		summaries.sort(key=lambda s: s.last_message.sent_at, reverse=True)
		return summaries

	async def list_scoped(self, scope: ConversationScope, *, limit: int) -> List[Message]:
		messages = sorted((m for m in self._state.messages.values() if scope.matches(m)), key=lambda m: m.sent_at)
		return [replace(m) for m in messages[:limit]]

	async def mark_scoped_read(self, reader_id: str, scope: ConversationScope) -> int:
		updated = 0
		for m in self._state.messages.values():
			if m.receiver_id == reader_id and not m.is_read and scope.matches(m):
				m.is_read = True
				updated += 1
		return updated
