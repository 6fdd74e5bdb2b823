"""Incentive ledger: point awards and rating averages."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from errands.domain.common.events import EventBus, RatingSubmitted, RequestTransitioned
from errands.domain.incentives.models import POINT_AWARDS, AwardReason
from errands.domain.requests.models import Transition
from errands.obs import metrics as obs_metrics

if TYPE_CHECKING:
    from errands.infra.store import Session

logger = logging.getLogger(__name__)

_TRANSITION_AWARDS = {
    Transition.ACCEPT: AwardReason.REQUEST_ACCEPTED,
    Transition.DELIVER: AwardReason.REQUEST_COMPLETED,
}


class IncentiveLedger:
    """Awards points and keeps users' average rating in step with their ratings."""

    def install(self, bus: EventBus) -> None:
        bus.subscribe(RequestTransitioned, self.on_request_transitioned)
        bus.subscribe(RatingSubmitted, self.on_rating_submitted)

    async def award(self, session: "Session", user_id: str, reason: AwardReason) -> int:
        amount = POINT_AWARDS[reason]
        total = await session.users.add_points(user_id, amount)
        obs_metrics.inc_points_awarded(reason.value, amount)
        logger.info("points_awarded", extra={"user_id": user_id, "reason": reason.value, "amount": amount, "total": total})
        return total

    async def on_request_transitioned(self, session: "Session", event: RequestTransitioned) -> None:
        reason = _TRANSITION_AWARDS.get(event.transition)
        if reason is None:
            return
        # accept and deliver are both performed by the fulfiller
        await self.award(session, event.actor_id, reason)

    async def on_rating_submitted(self, session: "Session", event: RatingSubmitted) -> None:
        rating = event.rating
        await self.award(session, rating.rater_id, AwardReason.RATING_SUBMITTED)
        await session.users.refresh_average_rating(rating.rated_user_id)
