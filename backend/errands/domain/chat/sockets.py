"""Socket.IO namespace for the realtime relay.

Identity is fixed at connect time. Every client event is decoded once into a
protocol frame and dispatched on its type; domain errors go back to the
originating connection as ``relay:error`` frames.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import socketio
from pydantic import ValidationError

from errands.domain.chat.protocol import (
	CLIENT_EVENTS,
	PRESENCE_STATUS,
	RELAY_ERROR,
	RELAY_READY,
	MessageSend,
	PresenceQuery,
	PresenceRegister,
	PresenceUnregister,
	Typing,
	decode_frame,
	error_frame,
)
from errands.domain.chat.relay import MessageRelay
from errands.domain.common.errors import DomainError
from errands.domain.presence.registry import PresenceRegistry
from errands.infra.auth import AuthenticatedUser, resolve_socket_user
from errands.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

NAMESPACE = "/relay"

FrameHandler = Callable[[str, AuthenticatedUser, Any], Awaitable[None]]


class RelayNamespace(socketio.AsyncNamespace):
	"""Presence, chat and typing over one namespace."""

	def __init__(self, registry: PresenceRegistry, relay: MessageRelay, namespace: str = NAMESPACE) -> None:
		super().__init__(namespace)
		self._registry = registry
		self._relay = relay
		self._sessions: Dict[str, AuthenticatedUser] = {}
		self._handlers: Dict[type, FrameHandler] = {
			PresenceRegister: self._on_register,
			PresenceUnregister: self._on_unregister,
			PresenceQuery: self._on_query,
			MessageSend: self._on_message_send,
			Typing: self._on_typing,
		}

	async def trigger_event(self, event: str, *args):
		if event in CLIENT_EVENTS:
			sid = args[0]
			data = args[1] if len(args) > 1 else None
			return await self.dispatch(sid, event, data)
		return await super().trigger_event(event, *args)

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		user = resolve_socket_user(environ, auth)
		obs_metrics.socket_connected(self.namespace)
		self._sessions[sid] = user
		await self.emit(RELAY_READY, {"user_id": user.id}, to=sid)

	async def on_disconnect(self, sid: str, reason: Any = None) -> None:
		user = self._sessions.pop(sid, None)
		if user is None:
			return
		obs_metrics.socket_disconnected(self.namespace)
		await self._registry.unregister(sid)

	def session_user(self, sid: str) -> Optional[AuthenticatedUser]:
		return self._sessions.get(sid)

	async def dispatch(self, sid: str, event: str, data: Any) -> None:
		obs_metrics.socket_event(self.namespace, event)
		user = self._sessions.get(sid)
		if user is None:
			await self._send_error(sid, "forbidden", "unauthenticated", event)
			return
		try:
			frame = decode_frame(event, data)
		except ValidationError:
			await self._send_error(sid, "validation", "invalid_frame", event)
			return
		try:
			await self._handlers[type(frame)](sid, user, frame)
		except DomainError as exc:
			await self._send_error(sid, exc.code, exc.reason, event)

	async def _send_error(self, sid: str, code: str, detail: str, event: str) -> None:
		logger.info("relay_frame_rejected", extra={"sid": sid, "event": event, "code": code, "detail": detail})
		await self.emit(RELAY_ERROR, error_frame(code, detail, event=event), to=sid)

	async def _on_register(self, sid: str, user: AuthenticatedUser, frame: PresenceRegister) -> None:
		await self._registry.register(user.id, sid)
		await self.emit(PRESENCE_STATUS, {"statuses": {user.id: True}}, to=sid)

	async def _on_unregister(self, sid: str, user: AuthenticatedUser, frame: PresenceUnregister) -> None:
		await self._registry.unregister(sid)

	async def _on_query(self, sid: str, user: AuthenticatedUser, frame: PresenceQuery) -> None:
		await self.emit(PRESENCE_STATUS, {"statuses": self._registry.query_batch(frame.user_ids)}, to=sid)

	async def _on_message_send(self, sid: str, user: AuthenticatedUser, frame: MessageSend) -> None:
		await self._relay.send(user, frame, origin_handle=sid)

	async def _on_typing(self, sid: str, user: AuthenticatedUser, frame: Typing) -> None:
		await self._relay.typing(user, frame.receiver_id, started=frame.started)
