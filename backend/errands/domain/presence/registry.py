"""Which users are connected right now, and through which socket handles.

One registry exists per process. It is created by the application factory,
handed to the socket namespace and the notification fan-out, and closed on
shutdown. State is in memory only and is lost on restart.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Any, Dict, Iterable, Optional, Protocol, Set

from errands.domain.chat.protocol import PRESENCE_OFFLINE, PRESENCE_ONLINE
from errands.obs import metrics as obs_metrics

_LOGGER = logging.getLogger(__name__)


class Transport(Protocol):
	"""The subset of a Socket.IO server/namespace the registry pushes through."""

	async def emit(self, event: str, data: Any = None, *, to: Optional[str] = None, **kwargs: Any) -> None:
		...


class PresenceRegistry:
	"""user id -> live connection handles, with per-user serialisation."""

	def __init__(self, transport: Optional[Transport] = None) -> None:
		self._transport = transport
		self._handles: Dict[str, Set[str]] = {}
		self._owners: Dict[str, str] = {}
		self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

	def attach(self, transport: Transport) -> None:
		self._transport = transport

	def _lock_for(self, user_id: str) -> asyncio.Lock:
		lock = self._locks.get(user_id)
		if lock is None:
			lock = asyncio.Lock()
			self._locks[user_id] = lock
		return lock

	async def register(self, user_id: str, handle: str) -> bool:
		"""Attach ``handle`` to ``user_id``; returns True when the user just came online."""
		lock = self._lock_for(user_id)
		async with lock:
			owner = self._owners.get(handle)
			if owner is not None and owner != user_id:
				raise ValueError(f"handle {handle} already registered")
			handles = self._handles.setdefault(user_id, set())
			came_online = not handles
			handles.add(handle)
			self._owners[handle] = user_id
			if came_online:
				obs_metrics.set_presence_online(len(self._handles))
				await self._broadcast(PRESENCE_ONLINE, user_id)
			return came_online

	async def unregister(self, handle: str) -> Optional[str]:
		"""Detach ``handle``; returns the owning user id, or None for unknown handles."""
		user_id = self._owners.get(handle)
		if user_id is None:
			return None
		async with self._lock_for(user_id):
			if self._owners.get(handle) != user_id:
				return None
			await self._detach(user_id, handle)
		return user_id

	async def _detach(self, user_id: str, handle: str) -> None:
		self._owners.pop(handle, None)
		handles = self._handles.get(user_id)
		if handles is None:
			return
		handles.discard(handle)
		if not handles:
			del self._handles[user_id]
			obs_metrics.set_presence_online(len(self._handles))
			await self._broadcast(PRESENCE_OFFLINE, user_id)

	def is_online(self, user_id: str) -> bool:
		return bool(self._handles.get(user_id))

	def handles_for(self, user_id: str) -> frozenset[str]:
		return frozenset(self._handles.get(user_id, ()))

	def owner_of(self, handle: str) -> Optional[str]:
		return self._owners.get(handle)

	def query_batch(self, user_ids: Iterable[str]) -> Dict[str, bool]:
		return {user_id: self.is_online(user_id) for user_id in user_ids}

	def online_users(self) -> list[str]:
		return sorted(self._handles)

	async def emit_to_handle(self, handle: str, event: str, payload: dict) -> bool:
		if self._transport is None:
			return False
		try:
			await self._transport.emit(event, payload, to=handle)
		except Exception:
			_LOGGER.warning("presence_emit_failed", exc_info=True, extra={"event": event, "handle": handle})
			return False
		return True

	async def emit_to_user(self, user_id: str, event: str, payload: dict) -> int:
		"""Push to every live connection of ``user_id``; returns how many pushes succeeded."""
		delivered = 0
		for handle in self.handles_for(user_id):
			if await self.emit_to_handle(handle, event, payload):
				delivered += 1
		return delivered

	async def _broadcast(self, event: str, user_id: str) -> None:
		if self._transport is None:
			return
		try:
			await self._transport.emit(event, {"user_id": user_id})
		except Exception:
			_LOGGER.warning("presence_broadcast_failed", exc_info=True, extra={"event": event, "user_id": user_id})

	async def close(self) -> None:
		self._handles.clear()
		self._owners.clear()
		self._transport = None
		obs_metrics.set_presence_online(0)
