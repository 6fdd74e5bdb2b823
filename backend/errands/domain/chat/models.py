"""Domain models for direct messages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

MAX_CONTENT_LENGTH = 4000


@dataclass(slots=True)
class Message:
	id: str
	sender_id: str
	receiver_id: str
	content: str
	sent_at: datetime
	request_id: Optional[str] = None
	product_id: Optional[str] = None
	is_read: bool = False

	@classmethod
	def from_record(cls, record) -> "Message":
		return cls(
			id=str(record["id"]),
			sender_id=str(record["sender_id"]),
			receiver_id=str(record["receiver_id"]),
			content=record["content"],
			request_id=str(record["request_id"]) if record.get("request_id") else None,
			product_id=str(record["product_id"]) if record.get("product_id") else None,
			is_read=bool(record["is_read"]),
			sent_at=record["sent_at"],
		)

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"sender_id": self.sender_id,
			"receiver_id": self.receiver_id,
			"content": self.content,
			"request_id": self.request_id,
			"product_id": self.product_id,
			"is_read": self.is_read,
			"sent_at": self.sent_at.isoformat(),
		}

	def is_participant(self, user_id: str) -> bool:
		return user_id in (self.sender_id, self.receiver_id)

	def participants(self) -> Tuple[str, str]:
		return (self.sender_id, self.receiver_id)

	@property
	def scope(self) -> str:
		if self.request_id:
			return "request"
		if self.product_id:
			return "product"
		return "direct"


@dataclass(slots=True)
class ConversationSummary:
	"""Latest message exchanged with a peer plus how many of theirs are unread."""

	peer_id: str
	last_message: Message
	unread_count: int

	def to_dict(self) -> dict:
		return {
			"peer_id": self.peer_id,
			"last_message": self.last_message.to_dict(),
			"unread_count": self.unread_count,
		}


@dataclass(slots=True)
class ConversationScope:
	"""Optional narrowing of a two-party conversation to one request or product."""

	request_id: Optional[str] = None
	product_id: Optional[str] = None

	def matches(self, message: Message) -> bool:
		if self.request_id is not None and message.request_id != self.request_id:
			return False
		if self.product_id is not None and message.product_id != self.product_id:
			return False
		return True
