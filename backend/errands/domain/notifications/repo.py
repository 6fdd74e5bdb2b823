"""Notification persistence."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, List, Optional

from errands.domain.notifications.models import Notification

if TYPE_CHECKING:
    import asyncpg

    from errands.infra.store import MemoryState

_COLUMNS = "id, user_id, category, title, message, related_id, is_read, created_at"


class PostgresNotificationRepository:
    def __init__(self, conn: "asyncpg.Connection") -> None:
        self._conn = conn

    async def create(self, notification: Notification) -> Notification:
        row = await self._conn.fetchrow(
            f"""
            INSERT INTO notifications ({_COLUMNS})
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING {_COLUMNS}
            """,
            notification.id,
            notification.user_id,
            notification.category.value,
            notification.title,
            notification.message,
            notification.related_id,
            notification.is_read,
            notification.created_at,
        )
        return Notification.from_record(row)

    async def get(self, notification_id: str) -> Optional[Notification]:
        row = await self._conn.fetchrow(f"SELECT {_COLUMNS} FROM notifications WHERE id = $1", notification_id)
        return Notification.from_record(row) if row else None

    async def list_for_user(self, user_id: str, *, limit: int, unread_only: bool = False) -> List[Notification]:
        rows = await self._conn.fetch(
            f"""
            SELECT {_COLUMNS} FROM notifications
            WHERE user_id = $1 AND (NOT $2 OR NOT is_read)
            ORDER BY created_at DESC
            LIMIT $3
            """,
            user_id,
            unread_only,
            limit,
        )
        return [Notification.from_record(r) for r in rows]

    async def unread_count(self, user_id: str) -> int:
        count = await self._conn.fetchval(
            "SELECT COUNT(*) FROM notifications WHERE user_id = $1 AND NOT is_read",
            user_id,
        )
        return int(count or 0)

    async def mark_read(self, notification_id: str) -> Optional[Notification]:
        row = await self._conn.fetchrow(
            f"UPDATE notifications SET is_read = TRUE WHERE id = $1 RETURNING {_COLUMNS}",
            notification_id,
        )
        return Notification.from_record(row) if row else None

    async def mark_all_read(self, user_id: str) -> int:
        status = await self._conn.execute(
            "UPDATE notifications SET is_read = TRUE WHERE user_id = $1 AND NOT is_read",
            user_id,
        )
        # asyncpg returns the command tag, e.g. "UPDATE 3"
        return int(status.split()[-1])

    async def delete(self, notification_id: str) -> None:
        await self._conn.execute("DELETE FROM notifications WHERE id = $1", notification_id)


class MemoryNotificationRepository:
    def __init__(self, state: "MemoryState") -> None:
        self._state = state

    async def create(self, notification: Notification) -> Notification:
        self._state.notifications[notification.id] = replace(notification)
        return replace(notification)

    async def get(self, notification_id: str) -> Optional[Notification]:
        stored = self._state.notifications.get(notification_id)
        return replace(stored) if stored else None

    async def list_for_user(self, user_id: str, *, limit: int, unread_only: bool = False) -> List[Notification]:
        items = [
            replace(n)
            for n in self._state.notifications.values()
            if n.user_id == user_id and not (unread_only and n.is_read)
        ]
        items.sort(key=lambda n: n.created_at, reverse=True)
        return items[:limit]

    async def unread_count(self, user_id: str) -> int:
        return sum(1 for n in self._state.notifications.values() if n.user_id == user_id and not n.is_read)

    async def mark_read(self, notification_id: str) -> Optional[Notification]:
        stored = self._state.notifications.get(notification_id)
        if stored is None:
            return None
        stored.is_read = True
        return replace(stored)

    async def mark_all_read(self, user_id: str) -> int:
        updated = 0
        for n in self._state.notifications.values():
            if n.user_id == user_id and not n.is_read:
                n.is_read = True
                updated += 1
        return updated

    async def delete(self, notification_id: str) -> None:
        self._state.notifications.pop(notification_id, None)
