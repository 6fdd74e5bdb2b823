"""Owner-scoped notification housekeeping."""

from __future__ import annotations

import logging
from typing import Optional

from errands.domain.notifications.exceptions import NotificationForbidden, NotificationNotFound
from errands.domain.notifications.models import Notification
from errands.domain.notifications.schemas import MarkAllReadResult, NotificationList, NotificationOut, UnreadCount
from errands.infra.auth import AuthenticatedUser
from errands.infra.store import Session, Store
from errands.settings import settings

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, store: Store) -> None:
        self._store = store

    async def list_notifications(
        self,
        actor: AuthenticatedUser,
        *,
        limit: Optional[int] = None,
        unread_only: bool = False,
    ) -> NotificationList:
        page = max(1, min(limit or settings.notifications_page_limit, settings.notifications_page_limit))
        async with self._store.transaction() as session:
            items = await session.notifications.list_for_user(actor.id, limit=page, unread_only=unread_only)
            unread = await session.notifications.unread_count(actor.id)
        return NotificationList(items=[NotificationOut.from_domain(n) for n in items], unread_count=unread)

    async def unread_count(self, actor: AuthenticatedUser) -> UnreadCount:
        async with self._store.transaction() as session:
            count = await session.notifications.unread_count(actor.id)
        return UnreadCount(unread_count=count)

    async def mark_read(self, actor: AuthenticatedUser, notification_id: str) -> NotificationOut:
        async with self._store.transaction() as session:
            await self._owned(session, actor, notification_id)
            updated = await session.notifications.mark_read(notification_id)
        return NotificationOut.from_domain(updated)

    async def mark_all_read(self, actor: AuthenticatedUser) -> MarkAllReadResult:
        async with self._store.transaction() as session:
            updated = await session.notifications.mark_all_read(actor.id)
        logger.info("notifications_marked_read", extra={"user_id": actor.id, "updated": updated})
        return MarkAllReadResult(updated=updated)

    async def delete(self, actor: AuthenticatedUser, notification_id: str) -> None:
        async with self._store.transaction() as session:
            await self._owned(session, actor, notification_id)
            await session.notifications.delete(notification_id)

    async def _owned(self, session: Session, actor: AuthenticatedUser, notification_id: str) -> Notification:
        notification = await session.notifications.get(notification_id)
        if notification is None:
            raise NotificationNotFound()
        if notification.user_id != actor.id:
            raise NotificationForbidden()
        return notification
