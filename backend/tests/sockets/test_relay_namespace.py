from unittest.mock import AsyncMock

import pytest
import socketio

from conftest import DAYSCHOLAR, HOSTELLER
from errands.domain.chat.sockets import RelayNamespace
from errands.infra import jwt as jwt_helper


def _environ(user_id: str | None = None, role: str | None = None) -> dict:
	headers = []
	if user_id:
		headers.append((b"x-user-id", user_id.encode()))
	if role:
		headers.append((b"x-user-role", role.encode()))
	return {"asgi.scope": {"headers": headers}}


@pytest.fixture
def namespace(registry, relay):
	server = socketio.AsyncServer(async_mode="asgi")
	ns = RelayNamespace(registry, relay)
	server.register_namespace(ns)
	ns.emit = AsyncMock()
	registry.attach(ns)
	return ns


def _events(ns, sid=None):
	return [
		(c.args[0], c.args[1] if len(c.args) > 1 else None)
		for c in ns.emit.await_args_list
		if sid is None or c.kwargs.get("to") == sid
	]


@pytest.mark.asyncio
async def test_connect_without_identity_is_refused(namespace):
	with pytest.raises(ConnectionRefusedError):
		await namespace.trigger_event("connect", "sid-1", _environ())


@pytest.mark.asyncio
async def test_connect_with_token_emits_ready(namespace):
	token = jwt_helper.encode_access({"sub": HOSTELLER, "role": "hosteller"})
	await namespace.trigger_event("connect", "sid-1", _environ(), {"token": token})

	assert namespace.session_user("sid-1").id == HOSTELLER
	assert ("relay:ready", {"user_id": HOSTELLER}) in _events(namespace, "sid-1")


@pytest.mark.asyncio
async def test_register_then_disconnect_toggles_presence(namespace, registry):
	await namespace.trigger_event("connect", "sid-1", _environ(HOSTELLER, "hosteller"))
	await namespace.trigger_event("presence:register", "sid-1", {})

	assert registry.is_online(HOSTELLER)
	assert ("presence:status", {"statuses": {HOSTELLER: True}}) in _events(namespace, "sid-1")
	assert ("presence:online", {"user_id": HOSTELLER}) in _events(namespace)

	await namespace.on_disconnect("sid-1")
	assert not registry.is_online(HOSTELLER)
	assert ("presence:offline", {"user_id": HOSTELLER}) in _events(namespace)


@pytest.mark.asyncio
async def test_presence_query_answers_batch(namespace, registry):
	await registry.register(DAYSCHOLAR, "sid-dev")
	await namespace.trigger_event("connect", "sid-1", _environ(HOSTELLER, "hosteller"))

	await namespace.trigger_event("presence:query", "sid-1", {"user_ids": [DAYSCHOLAR, "ghost"]})

	assert ("presence:status", {"statuses": {DAYSCHOLAR: True, "ghost": False}}) in _events(namespace, "sid-1")


@pytest.mark.asyncio
async def test_message_send_reaches_receiver_and_acks_origin(namespace, store):
	await namespace.trigger_event("connect", "sid-hana", _environ(HOSTELLER, "hosteller"))
	await namespace.trigger_event("connect", "sid-dev", _environ(DAYSCHOLAR, "dayscholar"))
	await namespace.trigger_event("presence:register", "sid-hana", {})
	await namespace.trigger_event("presence:register", "sid-dev", {})

	await namespace.trigger_event(
		"message:send",
		"sid-hana",
		{"receiver_id": DAYSCHOLAR, "content": "Outside the gate", "client_msg_id": "tmp-1"},
	)

	received = [payload for event, payload in _events(namespace, "sid-dev") if event == "message:receive"]
	acked = [payload for event, payload in _events(namespace, "sid-hana") if event == "message:sent"]
	assert received and received[0]["content"] == "Outside the gate"
	assert acked and acked[0]["client_msg_id"] == "tmp-1"
	assert acked[0]["delivered"] is True
	assert len(store.state.messages) == 1


@pytest.mark.asyncio
async def test_invalid_frame_returns_relay_error(namespace, store):
	await namespace.trigger_event("connect", "sid-1", _environ(HOSTELLER, "hosteller"))

	await namespace.trigger_event("message:send", "sid-1", {"receiver_id": DAYSCHOLAR, "content": ""})

	errors = [payload for event, payload in _events(namespace, "sid-1") if event == "relay:error"]
	assert errors == [{"code": "validation", "detail": "invalid_frame", "event": "message:send"}]
	assert store.state.messages == {}


@pytest.mark.asyncio
async def test_domain_error_returns_relay_error(namespace):
	await namespace.trigger_event("connect", "sid-1", _environ(HOSTELLER, "hosteller"))

	await namespace.trigger_event("message:send", "sid-1", {"receiver_id": "ghost", "content": "hello?"})

	errors = [payload for event, payload in _events(namespace, "sid-1") if event == "relay:error"]
	assert errors == [{"code": "not_found", "detail": "receiver_not_found", "event": "message:send"}]


@pytest.mark.asyncio
async def test_frames_before_connect_are_rejected(namespace):
	await namespace.trigger_event("presence:register", "sid-unknown", {})
	errors = [payload for event, payload in _events(namespace, "sid-unknown") if event == "relay:error"]
	assert errors[0]["code"] == "forbidden"


@pytest.mark.asyncio
async def test_typing_is_forwarded(namespace, registry):
	await namespace.trigger_event("connect", "sid-hana", _environ(HOSTELLER, "hosteller"))
	await registry.register(DAYSCHOLAR, "sid-dev")

	await namespace.trigger_event("typing:start", "sid-hana", {"receiver_id": DAYSCHOLAR})

	assert ("typing:start", {"sender_id": HOSTELLER, "receiver_id": DAYSCHOLAR}) in _events(namespace, "sid-dev")
