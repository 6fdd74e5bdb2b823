"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from errands.api import chat, notifications, ops, presence, ratings, requests
from errands.api.errors import install_error_handlers
from errands.domain.chat.relay import MessageRelay
from errands.domain.chat.service import ChatService
from errands.domain.chat.sockets import RelayNamespace
from errands.domain.common.audit import AuditTrail
from errands.domain.common.events import EventBus
from errands.domain.incentives.ledger import IncentiveLedger
from errands.domain.incentives.service import RatingService
from errands.domain.notifications.fanout import NotificationFanout
from errands.domain.notifications.service import NotificationService
from errands.domain.presence.registry import PresenceRegistry
from errands.domain.requests.service import RequestService
from errands.infra import postgres, schema
from errands.infra.store import PostgresStore, Store, build_store
from errands.obs import init as obs_init
from errands.settings import settings

logger = logging.getLogger(__name__)


def _allowed_origins() -> list[str]:
	allow_origins = list(getattr(settings, "cors_allow_origins", []))
	if not allow_origins:
		allow_origins = ["http://localhost:3000"] if settings.is_dev() else []
	# Starlette disallows wildcard '*' with allow_credentials=True.
	if "*" in allow_origins:
		allow_origins = ["http://localhost:3000", "http://127.0.0.1:3000"] if settings.is_dev() else []
	return allow_origins


def create_app(store: Optional[Store] = None, registry: Optional[PresenceRegistry] = None) -> FastAPI:
	store = store or build_store(settings.storage_backend)
	registry = registry or PresenceRegistry()
	bus = EventBus()
	NotificationFanout(registry).install(bus)
	IncentiveLedger().install(bus)
	if settings.audit_streams_enabled:
		AuditTrail().install(bus)

	relay = MessageRelay(store, bus, registry)

	@asynccontextmanager
	async def lifespan(app: FastAPI):
		if isinstance(store, PostgresStore):
			pool = await postgres.init_pool()
			await schema.apply(pool)
		logger.info("app_started", extra={"storage_backend": store.name})
		try:
			yield
		finally:
			await registry.close()
			await store.close()

	app = FastAPI(title="Errands Marketplace API", lifespan=lifespan)
	app.state.store = store
	app.state.bus = bus
	app.state.registry = registry
	app.state.relay = relay
	app.state.request_service = RequestService(store, bus, registry=registry)
	app.state.rating_service = RatingService(store, bus)
	app.state.notification_service = NotificationService(store)
	app.state.chat_service = ChatService(store)

	install_error_handlers(app)
	for module in (requests, ratings, notifications, chat, presence, ops):
		app.include_router(module.router)

	allow_origins = _allowed_origins()
	app.add_middleware(
		CORSMiddleware,
		allow_origins=allow_origins,
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)
	obs_init(app)

	# Use the same allowed origins for Socket.IO as for the REST API
	sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allow_origins)
	namespace = RelayNamespace(registry, relay)
	sio.register_namespace(namespace)
	registry.attach(namespace)
	app.state.sio = sio
	app.state.relay_namespace = namespace
	return app


app = create_app()
socket_app = socketio.ASGIApp(app.state.sio, other_asgi_app=app)
