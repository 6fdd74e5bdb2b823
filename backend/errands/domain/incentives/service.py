"""Rating submission, rating reads and the points leaderboard."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from errands.domain.common.events import EventBus, RatingSubmitted
from errands.domain.common.models import ProductStatus, UserRole
from errands.domain.incentives.exceptions import (
	RatingForbidden,
	RatingInvalid,
	RatingNotAllowed,
	RatingTargetNotFound,
	UserNotFound,
)
from errands.domain.incentives.models import (
	LEADERBOARD_DEFAULT_LIMIT,
	MAX_SCORE,
	MIN_SCORE,
	Rating,
	TransactionType,
)
from errands.domain.incentives.schemas import (
	LeaderboardRow,
	ProductRatingCreate,
	RatingSummary,
	RequestRatingCreate,
	UserRatings,
)
from errands.domain.requests.models import RequestStatus
from errands.infra.auth import AuthenticatedUser
from errands.infra.store import Session, Store
from errands.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


def _check_score(score: int) -> None:
	if not MIN_SCORE <= score <= MAX_SCORE:
		raise RatingInvalid("score_out_of_range")


class RatingService:
	def __init__(self, store: Store, bus: EventBus) -> None:
		self._store = store
		self._bus = bus

	async def rate_request(self, actor: AuthenticatedUser, payload: RequestRatingCreate) -> RatingSummary:
		_check_score(payload.score)
		async with self._store.transaction() as session:
			request = await session.requests.get(payload.request_id)
			if request is None:
				raise RatingTargetNotFound("request_not_found")
			if not request.is_party(actor.id):
				raise RatingForbidden()
			if request.status is not RequestStatus.COMPLETED:
				raise RatingNotAllowed("not_completed")
			rated_user_id = request.counterpart_of(actor.id)
			if rated_user_id is None:
				raise RatingForbidden()
			rating = await self._submit(
				session,
				actor,
				rated_user_id=rated_user_id,
				transaction_id=request.id,
				transaction_type=TransactionType.REQUEST,
				score=payload.score,
				comment=payload.comment,
			)
		return RatingSummary.from_domain(rating)

	async def rate_product(self, actor: AuthenticatedUser, payload: ProductRatingCreate) -> RatingSummary:
		_check_score(payload.score)
		async with self._store.transaction() as session:
			product = await session.products.get(payload.product_id)
			if product is None:
				raise RatingTargetNotFound("product_not_found")
			is_seller = product.seller_id == actor.id
			if not is_seller:
				if not actor.has_role(UserRole.HOSTELLER.value):
					raise RatingForbidden()
				if product.buyer_id is not None and product.buyer_id != actor.id:
					raise RatingForbidden()
			if product.status is not ProductStatus.SOLD:
				raise RatingNotAllowed("not_sold")
			if is_seller:
				if product.buyer_id is not None and payload.buyer_id not in (None, product.buyer_id):
					raise RatingForbidden("not_the_buyer")
				rated_user_id = product.buyer_id or payload.buyer_id
				if not rated_user_id:
					raise RatingInvalid("buyer_id_required")
				if rated_user_id == actor.id:
					raise RatingInvalid("cannot_rate_self")
				if await session.users.get(rated_user_id) is None:
					raise UserNotFound()
			else:
				rated_user_id = product.seller_id
			rating = await self._submit(
				session,
				actor,
				rated_user_id=rated_user_id,
				transaction_id=product.id,
				transaction_type=TransactionType.PRODUCT,
				score=payload.score,
				comment=payload.comment,
			)
		return RatingSummary.from_domain(rating)

	async def _submit(
		self,
		session: Session,
		actor: AuthenticatedUser,
		*,
		rated_user_id: str,
		transaction_id: str,
		transaction_type: TransactionType,
		score: int,
		comment: Optional[str],
	) -> Rating:
		rating = await session.ratings.insert(
			Rating(
				id=str(uuid.uuid4()),
				rater_id=actor.id,
				rated_user_id=rated_user_id,
				transaction_id=transaction_id,
				transaction_type=transaction_type,
				score=score,
				comment=comment,
				created_at=datetime.now(timezone.utc),
			)
		)
		await self._bus.publish(session, RatingSubmitted(rating=rating, rater_name=actor.name))
		obs_metrics.inc_rating_submitted(transaction_type.value)
		logger.info(
			"rating_submitted",
			extra={"rating_id": rating.id, "rater_id": actor.id, "rated_user_id": rated_user_id, "type": transaction_type.value},
		)
		return rating

	async def list_user_ratings(self, user_id: str) -> UserRatings:
		async with self._store.transaction() as session:
			user = await session.users.get(user_id)
			if user is None:
				raise UserNotFound()
			ratings = await session.ratings.list_for_user(user_id)
		return UserRatings(
			user_id=user.id,
			average_rating=user.average_rating,
			count=len(ratings),
			ratings=[RatingSummary.from_domain(r) for r in ratings],
		)

	async def leaderboard(self, limit: int = LEADERBOARD_DEFAULT_LIMIT) -> List[LeaderboardRow]:
		async with self._store.transaction() as session:
			users = await session.users.top_by_points(max(1, min(limit, 100)))
		return [LeaderboardRow.from_domain(rank, user) for rank, user in enumerate(users, start=1)]
