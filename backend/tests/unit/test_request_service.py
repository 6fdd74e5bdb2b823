import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from conftest import ADMIN, DAYSCHOLAR, DAYSCHOLAR_2, HOSTELLER, HOSTELLER_2, actor
from errands.domain.common.events import RequestTransitioned
from errands.domain.requests.exceptions import RequestAlreadyAccepted, RequestForbidden, RequestNotFound
from errands.domain.requests.models import RequestCategory, RequestFilters, RequestStatus, Transition
from errands.domain.requests.schemas import RequestCreate

hosteller = actor(HOSTELLER, "hosteller", "Hana")
dayscholar = actor(DAYSCHOLAR, "dayscholar", "Dev")
dayscholar_2 = actor(DAYSCHOLAR_2, "dayscholar", "Dana")


def _payload(**overrides) -> RequestCreate:
	data = {
		"item_name": "Paracetamol",
		"expected_price": Decimal("25.50"),
		"deadline": datetime.now(timezone.utc) + timedelta(hours=3),
		"delivery_location": "Hostel B, Room 12",
		"category": RequestCategory.MEDICINES,
	}
	data.update(overrides)
	return RequestCreate(**data)


def _notifications_for(store, user_id):
	return [n for n in store.state.notifications.values() if n.user_id == user_id]


@pytest.mark.asyncio
async def test_create_request_notifies_every_verified_dayscholar(request_service, store):
	created = await request_service.create_request(hosteller, _payload())

	assert created.status is RequestStatus.PENDING
	assert created.fulfiller_id is None
	for user_id in (DAYSCHOLAR, DAYSCHOLAR_2):
		titles = [n.title for n in _notifications_for(store, user_id)]
		assert titles == ["New Item Request"]
	assert _notifications_for(store, HOSTELLER) == []


@pytest.mark.asyncio
async def test_only_hostellers_create_requests(request_service):
	with pytest.raises(RequestForbidden):
		await request_service.create_request(dayscholar, _payload())


@pytest.mark.asyncio
async def test_accept_assigns_awards_points_and_notifies_requester_once(request_service, store):
	created = await request_service.create_request(hosteller, _payload())

	accepted = await request_service.accept(dayscholar, created.id)

	assert accepted.status is RequestStatus.ACCEPTED
	assert accepted.fulfiller_id == DAYSCHOLAR
	assert accepted.accepted_at is not None
	assert store.state.users[DAYSCHOLAR].points == 5
	assert [n.title for n in _notifications_for(store, HOSTELLER)] == ["Request Accepted"]


@pytest.mark.asyncio
async def test_deliver_completes_and_awards_ten_points(request_service, store):
	created = await request_service.create_request(hosteller, _payload())
	await request_service.accept(dayscholar, created.id)

	delivered = await request_service.deliver(dayscholar, created.id)

	assert delivered.status is RequestStatus.COMPLETED
	assert delivered.completed_at is not None
	assert store.state.users[DAYSCHOLAR].points == 15
	titles = [n.title for n in _notifications_for(store, HOSTELLER)]
	assert sorted(titles) == ["Request Accepted", "Request Completed"]


@pytest.mark.asyncio
async def test_concurrent_accepts_have_exactly_one_winner(request_service, store):
	created = await request_service.create_request(hosteller, _payload())

	results = await asyncio.gather(
		request_service.accept(dayscholar, created.id),
		request_service.accept(dayscholar_2, created.id),
		return_exceptions=True,
	)

	winners = [r for r in results if not isinstance(r, Exception)]
	losers = [r for r in results if isinstance(r, Exception)]
	assert len(winners) == 1
	assert len(losers) == 1
	assert isinstance(losers[0], RequestAlreadyAccepted)
	winner_id = winners[0].fulfiller_id
	assert store.state.requests[created.id].fulfiller_id == winner_id
	points = {uid: store.state.users[uid].points for uid in (DAYSCHOLAR, DAYSCHOLAR_2)}
	assert sorted(points.values()) == [0, 5]
	assert [n.title for n in _notifications_for(store, HOSTELLER)] == ["Request Accepted"]


@pytest.mark.asyncio
async def test_cancel_pending_request_notifies_nobody(request_service, store):
	created = await request_service.create_request(hosteller, _payload())
	before = len(store.state.notifications)

	cancelled = await request_service.cancel(hosteller, created.id)

	assert cancelled.status is RequestStatus.CANCELLED
	assert cancelled.cancelled_at is not None
	assert len(store.state.notifications) == before


@pytest.mark.asyncio
async def test_cancel_accepted_request_notifies_the_fulfiller(request_service, store):
	created = await request_service.create_request(hosteller, _payload())
	await request_service.accept(dayscholar, created.id)

	cancelled = await request_service.cancel(hosteller, created.id)

	assert cancelled.status is RequestStatus.CANCELLED
	assert cancelled.fulfiller_id is None
	titles = [n.title for n in _notifications_for(store, DAYSCHOLAR)]
	assert "Request Cancelled" in titles


@pytest.mark.asyncio
async def test_cancel_delivery_notifies_requester_and_keeps_history(request_service, store):
	created = await request_service.create_request(hosteller, _payload())
	await request_service.accept(dayscholar, created.id)

	cancelled = await request_service.cancel_delivery(dayscholar, created.id)

	assert cancelled.status is RequestStatus.CANCELLED
	assert cancelled.fulfiller_id is None
	assert "Delivery Cancelled" in [n.title for n in _notifications_for(store, HOSTELLER)]
	detail = await request_service.get_request(hosteller, created.id)
	assert [entry.transition for entry in detail.history] == [Transition.ACCEPT, Transition.CANCEL_DELIVERY]
	assert detail.history[-1].fulfiller_id == DAYSCHOLAR


@pytest.mark.asyncio
async def test_failed_subscriber_rolls_back_the_whole_transition(request_service, store, bus):
	created = await request_service.create_request(hosteller, _payload())
	notifications_before = len(store.state.notifications)

	async def explode(session, event):
		raise RuntimeError("subscriber failed")

	bus.subscribe(RequestTransitioned, explode)

	with pytest.raises(RuntimeError):
		await request_service.accept(dayscholar, created.id)

	stored = store.state.requests[created.id]
	assert stored.status is RequestStatus.PENDING
	assert stored.fulfiller_id is None
	assert store.state.users[DAYSCHOLAR].points == 0
	assert len(store.state.notifications) == notifications_before
	assert store.state.transitions == []


@pytest.mark.asyncio
async def test_request_update_is_pushed_to_online_parties(request_service, registry, transport):
	created = await request_service.create_request(hosteller, _payload())
	await registry.register(HOSTELLER, "sid-hana")
	transport.emit.reset_mock()

	await request_service.accept(dayscholar, created.id)

	pushed = [(c.args[0], c.kwargs.get("to")) for c in transport.emit.await_args_list]
	assert ("request:update", "sid-hana") in pushed
	assert ("notification:new", "sid-hana") in pushed
	update = next(c.args[1] for c in transport.emit.await_args_list if c.args[0] == "request:update")
	assert update["status"] == "accepted"
	assert update["transition"] == "accept"


@pytest.mark.asyncio
async def test_listing_open_requests_filters_and_orders_urgent_first(request_service):
	await request_service.create_request(hosteller, _payload(item_name="Bread", category=RequestCategory.GROCERIES))
	urgent = await request_service.create_request(hosteller, _payload(item_name="Inhaler", is_urgent=True))
	finished = await request_service.create_request(hosteller, _payload(item_name="Pens"))
	await request_service.cancel(hosteller, finished.id)

	listed = await request_service.list_open_requests(dayscholar, RequestFilters())
	assert [r.item_name for r in listed][0] == "Inhaler"
	assert {r.item_name for r in listed} == {"Bread", "Inhaler"}

	urgent_only = await request_service.list_open_requests(dayscholar, RequestFilters(urgent_only=True))
	assert [r.id for r in urgent_only] == [urgent.id]

	groceries = await request_service.list_open_requests(dayscholar, RequestFilters(category=RequestCategory.GROCERIES))
	assert [r.item_name for r in groceries] == ["Bread"]

	searched = await request_service.list_open_requests(dayscholar, RequestFilters(search="inha"))
	assert [r.id for r in searched] == [urgent.id]


@pytest.mark.asyncio
async def test_hostellers_cannot_browse_open_requests(request_service):
	with pytest.raises(RequestForbidden):
		await request_service.list_open_requests(hosteller, RequestFilters())


@pytest.mark.asyncio
async def test_my_requests_and_deliveries(request_service):
	first = await request_service.create_request(hosteller, _payload(item_name="Soap"))
	await request_service.create_request(actor(HOSTELLER_2, "hosteller"), _payload(item_name="Tea"))
	await request_service.accept(dayscholar, first.id)

	mine = await request_service.list_my_requests(hosteller, RequestFilters())
	assert [r.item_name for r in mine] == ["Soap"]
	deliveries = await request_service.list_my_deliveries(dayscholar, RequestFilters(status=RequestStatus.ACCEPTED))
	assert [r.id for r in deliveries] == [first.id]
	assert await request_service.list_my_deliveries(dayscholar, RequestFilters(status=RequestStatus.COMPLETED)) == []


@pytest.mark.asyncio
async def test_get_request_visibility(request_service):
	created = await request_service.create_request(hosteller, _payload())

	with pytest.raises(RequestForbidden):
		await request_service.get_request(actor(HOSTELLER_2, "hosteller"), created.id)
	detail = await request_service.get_request(actor(ADMIN, "admin"), created.id)
	assert detail.id == created.id
	with pytest.raises(RequestNotFound):
		await request_service.get_request(hosteller, "missing")


@pytest.mark.asyncio
async def test_stats_are_computed_per_role(request_service):
	done = await request_service.create_request(hosteller, _payload(item_name="Soap", expected_price=Decimal("40.50")))
	running = await request_service.create_request(hosteller, _payload(item_name="Tea", expected_price=Decimal("15")))
	dropped = await request_service.create_request(hosteller, _payload(item_name="Pens"))
	await request_service.create_request(hosteller, _payload(item_name="Bread"))
	await request_service.accept(dayscholar, done.id)
	await request_service.deliver(dayscholar, done.id)
	await request_service.accept(dayscholar, running.id)
	await request_service.cancel(hosteller, dropped.id)

	requester = await request_service.stats(hosteller)
	assert (requester.active, requester.completed, requester.cancelled) == (2, 1, 1)
	assert requester.total_earnings is None
	assert requester.available_requests is None

	fulfiller = await request_service.stats(dayscholar)
	assert (fulfiller.active, fulfiller.completed) == (1, 1)
	assert fulfiller.total_earnings == Decimal("40.50")
	assert fulfiller.available_requests == 1

	idle = await request_service.stats(dayscholar_2)
	assert (idle.active, idle.completed, idle.total_earnings) == (0, 0, Decimal("0"))

	with pytest.raises(RequestForbidden):
		await request_service.stats(actor(ADMIN, "admin"))
