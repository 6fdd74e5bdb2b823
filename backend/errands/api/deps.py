"""Dependency accessors for services hung on ``app.state`` by the factory."""

from __future__ import annotations

from fastapi import Request

from errands.domain.chat.relay import MessageRelay
from errands.domain.chat.service import ChatService
from errands.domain.incentives.service import RatingService
from errands.domain.notifications.service import NotificationService
from errands.domain.presence.registry import PresenceRegistry
from errands.domain.requests.service import RequestService


def get_request_service(request: Request) -> RequestService:
	return request.app.state.request_service


def get_rating_service(request: Request) -> RatingService:
	return request.app.state.rating_service


def get_notification_service(request: Request) -> NotificationService:
	return request.app.state.notification_service


def get_chat_service(request: Request) -> ChatService:
	return request.app.state.chat_service


def get_relay(request: Request) -> MessageRelay:
	return request.app.state.relay


def get_registry(request: Request) -> PresenceRegistry:
	return request.app.state.registry
