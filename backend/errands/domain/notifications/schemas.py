"""Pydantic schemas for notifications."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from errands.domain.notifications.models import Notification, NotificationCategory


class NotificationOut(BaseModel):
    id: str
    user_id: str
    category: NotificationCategory
    title: str
    message: str
    related_id: Optional[str] = None
    is_read: bool
    created_at: datetime

    @classmethod
    def from_domain(cls, notification: Notification) -> "NotificationOut":
        return cls(**notification.to_dict())


class NotificationList(BaseModel):
    items: List[NotificationOut]
    unread_count: int


class UnreadCount(BaseModel):
    unread_count: int


class MarkAllReadResult(BaseModel):
    updated: int
