"""Chat reads: conversations, per-peer history and scoped threads."""

from __future__ import annotations

from typing import Optional

from errands.domain.chat.exceptions import ChatForbidden, ChatScopeNotFound, ReceiverNotFound
from errands.domain.chat.models import ConversationScope
from errands.domain.chat.schemas import ConversationList, ConversationOut, MessageList, MessageOut
from errands.infra.auth import AuthenticatedUser
from errands.infra.store import Store

DEFAULT_HISTORY_LIMIT = 200


class ChatService:
	def __init__(self, store: Store) -> None:
		self._store = store

	async def conversations(self, actor: AuthenticatedUser) -> ConversationList:
		async with self._store.transaction() as session:
			summaries = await session.messages.conversations(actor.id)
		return ConversationList(items=[ConversationOut.from_domain(s) for s in summaries])

	async def conversation(
		self,
		actor: AuthenticatedUser,
		peer_id: str,
		*,
		request_id: Optional[str] = None,
		product_id: Optional[str] = None,
		limit: int = DEFAULT_HISTORY_LIMIT,
	) -> MessageList:
		"""History with ``peer_id``, oldest first; incoming messages are marked read."""
		scope = ConversationScope(request_id=request_id, product_id=product_id)
		async with self._store.transaction() as session:
			if await session.users.get(peer_id) is None:
				raise ReceiverNotFound("user_not_found")
			messages = await session.messages.conversation(actor.id, peer_id, scope, limit=limit)
			await session.messages.mark_read(actor.id, peer_id, scope)
		return MessageList(items=[MessageOut.from_domain(m) for m in messages])

	async def request_messages(self, actor: AuthenticatedUser, request_id: str, *, limit: int = DEFAULT_HISTORY_LIMIT) -> MessageList:
		scope = ConversationScope(request_id=request_id)
		async with self._store.transaction() as session:
			request = await session.requests.get(request_id)
			if request is None:
				raise ChatScopeNotFound("request_not_found")
			if not request.is_party(actor.id):
				raise ChatForbidden()
			messages = await session.messages.list_scoped(scope, limit=limit)
			await session.messages.mark_scoped_read(actor.id, scope)
		return MessageList(items=[MessageOut.from_domain(m) for m in messages])

	async def product_messages(self, actor: AuthenticatedUser, product_id: str, *, limit: int = DEFAULT_HISTORY_LIMIT) -> MessageList:
		scope = ConversationScope(product_id=product_id)
		async with self._store.transaction() as session:
			product = await session.products.get(product_id)
			if product is None:
				raise ChatScopeNotFound("product_not_found")
			if product.seller_id != actor.id:
				raise ChatForbidden("not_seller")
			messages = await session.messages.list_scoped(scope, limit=limit)
			await session.messages.mark_scoped_read(actor.id, scope)
		return MessageList(items=[MessageOut.from_domain(m) for m in messages])
