from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from conftest import DAYSCHOLAR, DAYSCHOLAR_2, HOSTELLER, HOSTELLER_2, LISTED_PRODUCT, SOLD_PRODUCT, actor
from errands.domain.common.models import User, UserRole
from errands.domain.common.repo import round_rating
from errands.domain.incentives.exceptions import (
	RatingAlreadySubmitted,
	RatingForbidden,
	RatingInvalid,
	RatingNotAllowed,
	RatingTargetNotFound,
)
from errands.domain.incentives.schemas import ProductRatingCreate, RequestRatingCreate
from errands.domain.requests.schemas import RequestCreate

hosteller = actor(HOSTELLER, "hosteller", "Hana")
dayscholar = actor(DAYSCHOLAR, "dayscholar", "Dev")


async def _completed_request(request_service) -> str:
	created = await request_service.create_request(
		hosteller,
		RequestCreate(
			item_name="Charger",
			expected_price=Decimal("300"),
			deadline=datetime.now(timezone.utc) + timedelta(hours=1),
			delivery_location="Library",
		),
	)
	await request_service.accept(dayscholar, created.id)
	await request_service.deliver(dayscholar, created.id)
	return created.id


def test_round_rating_is_half_up():
	assert round_rating([]) == Decimal("0.0")
	assert round_rating([4, 5]) == Decimal("4.5")
	assert round_rating([1, 1, 1, 2]) == Decimal("1.3")
	assert round_rating([5, 4, 4]) == Decimal("4.3")


@pytest.mark.asyncio
async def test_rating_a_completed_request_updates_average_and_points(request_service, rating_service, store):
	request_id = await _completed_request(request_service)

	summary = await rating_service.rate_request(hosteller, RequestRatingCreate(request_id=request_id, score=4, comment="quick"))

	assert summary.rated_user_id == DAYSCHOLAR
	assert store.state.users[DAYSCHOLAR].average_rating == Decimal("4.0")
	# +2 for the rater; the fulfiller already holds 5 + 10
	assert store.state.users[HOSTELLER].points == 2
	assert store.state.users[DAYSCHOLAR].points == 15
	titles = [n.title for n in store.state.notifications.values() if n.user_id == DAYSCHOLAR]
	assert "New Rating" in titles


@pytest.mark.asyncio
async def test_both_parties_can_rate_each_other_once(request_service, rating_service, store):
	request_id = await _completed_request(request_service)

	await rating_service.rate_request(hosteller, RequestRatingCreate(request_id=request_id, score=5))
	await rating_service.rate_request(dayscholar, RequestRatingCreate(request_id=request_id, score=3))

	assert store.state.users[HOSTELLER].average_rating == Decimal("3.0")
	with pytest.raises(RatingAlreadySubmitted):
		await rating_service.rate_request(hosteller, RequestRatingCreate(request_id=request_id, score=1))
	assert store.state.users[DAYSCHOLAR].average_rating == Decimal("5.0")
	assert len(store.state.ratings) == 2


@pytest.mark.asyncio
async def test_rating_requires_a_party_and_a_completed_request(request_service, rating_service):
	created = await request_service.create_request(
		hosteller,
		RequestCreate(
			item_name="Milk",
			expected_price=Decimal("30"),
			deadline=datetime.now(timezone.utc) + timedelta(hours=1),
			delivery_location="Gate 2",
		),
	)
	with pytest.raises(RatingNotAllowed):
		await rating_service.rate_request(hosteller, RequestRatingCreate(request_id=created.id, score=5))
	with pytest.raises(RatingForbidden):
		await rating_service.rate_request(actor(DAYSCHOLAR_2, "dayscholar"), RequestRatingCreate(request_id=created.id, score=5))
	with pytest.raises(RatingTargetNotFound):
		await rating_service.rate_request(hosteller, RequestRatingCreate(request_id="missing", score=5))


@pytest.mark.asyncio
async def test_buyer_rates_the_seller_of_a_sold_product(rating_service, store):
	summary = await rating_service.rate_product(hosteller, ProductRatingCreate(product_id=SOLD_PRODUCT, score=5))

	assert summary.rated_user_id == DAYSCHOLAR
	assert summary.transaction_type.value == "product"
	notification = next(n for n in store.state.notifications.values() if n.user_id == DAYSCHOLAR)
	assert notification.category.value == "product"


@pytest.mark.asyncio
async def test_seller_rates_the_recorded_buyer(rating_service, store):
	summary = await rating_service.rate_product(dayscholar, ProductRatingCreate(product_id=SOLD_PRODUCT, score=2))
	assert summary.rated_user_id == HOSTELLER
	assert store.state.users[HOSTELLER].average_rating == Decimal("2.0")


@pytest.mark.asyncio
async def test_seller_cannot_redirect_rating_away_from_recorded_buyer(rating_service, store):
	with pytest.raises(RatingForbidden) as exc:
		await rating_service.rate_product(
			dayscholar, ProductRatingCreate(product_id=SOLD_PRODUCT, score=1, buyer_id=HOSTELLER_2)
		)
	assert exc.value.reason == "not_the_buyer"
	assert store.state.ratings == {}
	assert store.state.users[HOSTELLER_2].average_rating == Decimal("0.0")

	summary = await rating_service.rate_product(
		dayscholar, ProductRatingCreate(product_id=SOLD_PRODUCT, score=3, buyer_id=HOSTELLER)
	)
	assert summary.rated_user_id == HOSTELLER


@pytest.mark.asyncio
async def test_product_rating_rules(rating_service, store):
	with pytest.raises(RatingNotAllowed):
		await rating_service.rate_product(hosteller, ProductRatingCreate(product_id=LISTED_PRODUCT, score=4))
	# not the recorded buyer
	with pytest.raises(RatingForbidden):
		await rating_service.rate_product(actor(HOSTELLER_2, "hosteller"), ProductRatingCreate(product_id=SOLD_PRODUCT, score=4))
	with pytest.raises(RatingForbidden):
		await rating_service.rate_product(actor(DAYSCHOLAR_2, "dayscholar"), ProductRatingCreate(product_id=SOLD_PRODUCT, score=4))


@pytest.mark.asyncio
async def test_seller_without_known_buyer_must_name_one(rating_service, store):
	from errands.domain.common.models import Product, ProductStatus

	store.seed_product(Product(id="p-cash", seller_id=HOSTELLER_2, name="Fan", status=ProductStatus.SOLD))
	seller = actor(HOSTELLER_2, "hosteller")
	with pytest.raises(RatingInvalid):
		await rating_service.rate_product(seller, ProductRatingCreate(product_id="p-cash", score=4))
	summary = await rating_service.rate_product(seller, ProductRatingCreate(product_id="p-cash", score=4, buyer_id=HOSTELLER))
	assert summary.rated_user_id == HOSTELLER


@pytest.mark.asyncio
async def test_user_ratings_and_leaderboard(request_service, rating_service, store):
	store.seed_user(User(id="dayscholar-3", name="Zed", role=UserRole.DAYSCHOLAR, points=100))
	request_id = await _completed_request(request_service)
	await rating_service.rate_request(hosteller, RequestRatingCreate(request_id=request_id, score=5))

	ratings = await rating_service.list_user_ratings(DAYSCHOLAR)
	assert ratings.count == 1
	assert ratings.average_rating == Decimal("5.0")

	board = await rating_service.leaderboard(limit=2)
	assert [(row.rank, row.user_id, row.points) for row in board] == [(1, "dayscholar-3", 100), (2, DAYSCHOLAR, 15)]
