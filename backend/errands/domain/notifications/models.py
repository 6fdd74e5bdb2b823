"""Domain models for user notifications."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class NotificationCategory(str, Enum):
    REQUEST = "request"
    MESSAGE = "message"
    PRODUCT = "product"


@dataclass(slots=True)
class Notification:
    id: str
    user_id: str
    category: NotificationCategory
    title: str
    message: str
    created_at: datetime
    related_id: Optional[str] = None
    is_read: bool = False

    @classmethod
    def from_record(cls, record) -> "Notification":
        return cls(
            id=str(record["id"]),
            user_id=str(record["user_id"]),
            category=NotificationCategory(record["category"]),
            title=record["title"],
            message=record["message"],
            related_id=str(record["related_id"]) if record.get("related_id") else None,
            is_read=bool(record["is_read"]),
            created_at=record["created_at"],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "category": self.category.value,
            "title": self.title,
            "message": self.message,
            "related_id": self.related_id,
            "is_read": self.is_read,
            "created_at": self.created_at.isoformat(),
        }
