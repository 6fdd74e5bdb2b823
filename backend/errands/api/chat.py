"""REST API surface for direct messages."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from errands.api.deps import get_chat_service, get_relay
from errands.api.errors import map_domain_error
from errands.domain.chat.protocol import MessageSend
from errands.domain.chat.relay import MessageRelay
from errands.domain.chat.schemas import ConversationList, MessageList, MessageOut
from errands.domain.chat.service import ChatService
from errands.domain.common.errors import DomainError
from errands.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("/messages", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
async def send_message(
	payload: MessageSend,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	relay: MessageRelay = Depends(get_relay),
) -> MessageOut:
	try:
		message = await relay.send(auth_user, payload)
	except DomainError as exc:
		raise map_domain_error(exc) from None
	return MessageOut.from_domain(message)


@router.get("/conversations", response_model=ConversationList)
async def list_conversations(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: ChatService = Depends(get_chat_service),
) -> ConversationList:
	return await service.conversations(auth_user)


@router.get("/conversations/{user_id}", response_model=MessageList)
async def get_conversation(
	user_id: str,
	request_id: Optional[str] = Query(default=None),
	product_id: Optional[str] = Query(default=None),
	limit: int = Query(default=200, ge=1, le=500),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: ChatService = Depends(get_chat_service),
) -> MessageList:
	try:
		return await service.conversation(auth_user, user_id, request_id=request_id, product_id=product_id, limit=limit)
	except DomainError as exc:
		raise map_domain_error(exc) from None


@router.get("/requests/{request_id}", response_model=MessageList)
async def request_messages(
	request_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: ChatService = Depends(get_chat_service),
) -> MessageList:
	try:
		return await service.request_messages(auth_user, request_id)
	except DomainError as exc:
		raise map_domain_error(exc) from None


@router.get("/products/{product_id}", response_model=MessageList)
async def product_messages(
	product_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: ChatService = Depends(get_chat_service),
) -> MessageList:
	try:
		return await service.product_messages(auth_user, product_id)
	except DomainError as exc:
		raise map_domain_error(exc) from None
