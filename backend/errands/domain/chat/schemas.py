"""Pydantic schemas for the chat REST API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from errands.domain.chat.models import ConversationSummary, Message


class MessageOut(BaseModel):
	id: str
	sender_id: str
	receiver_id: str
	content: str
	request_id: Optional[str] = None
	product_id: Optional[str] = None
	is_read: bool
	sent_at: datetime

	@classmethod
	def from_domain(cls, message: Message) -> "MessageOut":
		return cls(
			id=message.id,
			sender_id=message.sender_id,
			receiver_id=message.receiver_id,
			content=message.content,
			request_id=message.request_id,
			product_id=message.product_id,
			is_read=message.is_read,
			sent_at=message.sent_at,
		)


class ConversationOut(BaseModel):
	peer_id: str
	last_message: MessageOut
	unread_count: int

	@classmethod
	def from_domain(cls, summary: ConversationSummary) -> "ConversationOut":
		return cls(
			peer_id=summary.peer_id,
			last_message=MessageOut.from_domain(summary.last_message),
			unread_count=summary.unread_count,
		)


class MessageList(BaseModel):
	items: List[MessageOut]


class ConversationList(BaseModel):
	items: List[ConversationOut]
