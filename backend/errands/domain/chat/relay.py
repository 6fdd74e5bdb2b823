"""Message relay: authorize, persist, then push to whoever is connected.

The message row and its notification are written in one transaction. Pushes
happen only after commit: ``message:receive`` to each live connection of the
receiver, and ``message:sent`` back to the sender so every client renders the
same stored message. Typing signals are forwarded, never stored.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

import ulid

from errands.domain.chat.exceptions import ChatForbidden, ChatInvalid, ChatRateLimited, ChatScopeNotFound, ReceiverNotFound
from errands.domain.chat.models import Message
from errands.domain.chat.protocol import MESSAGE_RECEIVE, MESSAGE_SENT, TYPING_START, TYPING_STOP, MessageSend
from errands.domain.common.events import EventBus, MessageSent
from errands.domain.common.models import User, UserRole
from errands.domain.presence.registry import PresenceRegistry
from errands.infra import rate_limit
from errands.infra.auth import AuthenticatedUser
from errands.infra.store import Session, Store
from errands.obs import metrics as obs_metrics
from errands.settings import settings

logger = logging.getLogger(__name__)


class MessageRelay:
	def __init__(self, store: Store, bus: EventBus, registry: PresenceRegistry) -> None:
		self._store = store
		self._bus = bus
		self._registry = registry

	async def send(self, sender: AuthenticatedUser, frame: MessageSend, *, origin_handle: Optional[str] = None) -> Message:
		if frame.receiver_id == sender.id:
			raise ChatInvalid("cannot_message_self")
		if frame.request_id and frame.product_id:
			raise ChatInvalid("single_scope_only")
		async with self._store.transaction() as session:
			await self._authorize(session, sender, frame)
			# only authorized sends spend the budget
			if not await rate_limit.allow("chat_send", sender.id, limit=settings.chat_messages_per_minute):
				obs_metrics.inc_rate_limited("chat_send")
				raise ChatRateLimited()
			sender_row = await session.users.get(sender.id)
			message = await session.messages.insert(
				Message(
					id=str(ulid.new()),
					sender_id=sender.id,
					receiver_id=frame.receiver_id,
					content=frame.content,
					request_id=frame.request_id,
					product_id=frame.product_id,
					sent_at=datetime.now(timezone.utc),
				)
			)
			sender_name = sender_row.name if sender_row else sender.name
			await self._bus.publish(session, MessageSent(message=message, sender_name=sender_name))

		obs_metrics.inc_chat_send(message.scope)
		payload = message.to_dict()
		if frame.client_msg_id:
			payload["client_msg_id"] = frame.client_msg_id
		delivered = 0
		if self._registry.is_online(message.receiver_id):
			delivered = await self._registry.emit_to_user(message.receiver_id, MESSAGE_RECEIVE, payload)
		payload["delivered"] = delivered > 0
		if origin_handle is not None:
			await self._registry.emit_to_handle(origin_handle, MESSAGE_SENT, payload)
		else:
			await self._registry.emit_to_user(sender.id, MESSAGE_SENT, payload)
		logger.info(
			"message_relayed",
			extra={"message_id": message.id, "sender_id": sender.id, "receiver_id": message.receiver_id, "delivered": delivered},
		)
		return message

	async def _authorize(self, session: Session, sender: AuthenticatedUser, frame: MessageSend) -> User:
		receiver = await session.users.get(frame.receiver_id)
		if receiver is None:
			raise ReceiverNotFound()
		if frame.request_id:
			request = await session.requests.get(frame.request_id)
			if request is None:
				raise ChatScopeNotFound("request_not_found")
			if not request.is_party(sender.id):
				raise ChatForbidden("sender_not_a_party")
			if not request.is_party(receiver.id):
				raise ChatForbidden("receiver_not_a_party")
		if frame.product_id:
			product = await session.products.get(frame.product_id)
			if product is None:
				raise ChatScopeNotFound("product_not_found")
			if product.seller_id != sender.id and not sender.has_role(UserRole.HOSTELLER.value):
				raise ChatForbidden("sender_not_a_party")
			if product.seller_id != receiver.id and receiver.role is not UserRole.HOSTELLER:
				raise ChatForbidden("receiver_not_a_party")
		return receiver

	async def typing(self, sender: AuthenticatedUser, receiver_id: str, *, started: bool) -> bool:
		"""Forward a typing signal; returns False when the receiver is not connected."""
		if receiver_id == sender.id or not self._registry.is_online(receiver_id):
			return False
		event = TYPING_START if started else TYPING_STOP
		delivered = await self._registry.emit_to_user(
			receiver_id,
			event,
			{"sender_id": sender.id, "receiver_id": receiver_id},
		)
		return delivered > 0
