from unittest.mock import AsyncMock

import pytest

from errands.domain.presence.registry import PresenceRegistry


@pytest.mark.asyncio
async def test_user_stays_online_until_last_handle_leaves(registry, transport):
	assert await registry.register("u1", "sid-a") is True
	assert await registry.register("u1", "sid-b") is False
	assert registry.handles_for("u1") == frozenset({"sid-a", "sid-b"})

	assert await registry.unregister("sid-a") == "u1"
	assert registry.is_online("u1")
	assert await registry.unregister("sid-b") == "u1"
	assert not registry.is_online("u1")

	broadcasts = [c.args for c in transport.emit.await_args_list]
	assert broadcasts == [("presence:online", {"user_id": "u1"}), ("presence:offline", {"user_id": "u1"})]


@pytest.mark.asyncio
async def test_unknown_handle_unregisters_to_none(registry):
	assert await registry.unregister("nobody") is None


@pytest.mark.asyncio
async def test_handle_cannot_switch_owner(registry):
	await registry.register("u1", "sid-a")
	with pytest.raises(ValueError):
		await registry.register("u2", "sid-a")
	assert registry.owner_of("sid-a") == "u1"


@pytest.mark.asyncio
async def test_query_batch_and_online_users(registry):
	await registry.register("u2", "sid-2")
	await registry.register("u1", "sid-1")
	assert registry.query_batch(["u1", "u3"]) == {"u1": True, "u3": False}
	assert registry.online_users() == ["u1", "u2"]


@pytest.mark.asyncio
async def test_emit_to_user_counts_successful_pushes(registry, transport):
	await registry.register("u1", "sid-a")
	await registry.register("u1", "sid-b")
	transport.emit.reset_mock()

	delivered = await registry.emit_to_user("u1", "notification:new", {"id": "n1"})

	assert delivered == 2
	targets = {c.kwargs["to"] for c in transport.emit.await_args_list}
	assert targets == {"sid-a", "sid-b"}


@pytest.mark.asyncio
async def test_failed_push_is_reported_not_raised():
	transport = AsyncMock()
	transport.emit = AsyncMock(side_effect=RuntimeError("socket gone"))
	registry = PresenceRegistry(transport)
	await registry.register("u1", "sid-a")

	assert await registry.emit_to_handle("sid-a", "message:receive", {}) is False
	assert await registry.emit_to_user("u1", "message:receive", {}) == 0


@pytest.mark.asyncio
async def test_detached_registry_tracks_presence_without_pushing():
	registry = PresenceRegistry()
	await registry.register("u1", "sid-a")
	assert registry.is_online("u1")
	assert await registry.emit_to_handle("sid-a", "x", {}) is False
	await registry.close()
	assert not registry.is_online("u1")
