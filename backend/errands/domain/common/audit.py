"""Audit trail of lifecycle and rating events on Redis streams.

Entries are appended after commit so the stream never records a change that
was rolled back.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Optional

from errands.domain.common.events import EventBus, RatingSubmitted, RequestCreated, RequestTransitioned
from errands.infra.redis import redis_client
from errands.settings import settings

if TYPE_CHECKING:
	from errands.infra.store import Session

REQUESTS_STREAM = "x:requests.events"
RATINGS_STREAM = "x:ratings.events"


async def log_event(stream: str, event: str, fields: Dict[str, Optional[object]]) -> None:
	if not settings.audit_streams_enabled:
		return
	payload = {"event": event}
	payload.update({key: str(value) for key, value in fields.items() if value is not None})
	await redis_client.xadd_capped(stream, payload)


class AuditTrail:
	def install(self, bus: EventBus) -> None:
		bus.subscribe(RequestCreated, self.on_request_created)
		bus.subscribe(RequestTransitioned, self.on_request_transitioned)
		bus.subscribe(RatingSubmitted, self.on_rating_submitted)

	async def on_request_created(self, session: "Session", event: RequestCreated) -> None:
		request = event.request

		async def _append() -> None:
			await log_event(
				REQUESTS_STREAM,
				"created",
				{"request_id": request.id, "requester_id": request.requester_id, "category": request.category.value},
			)

		session.on_commit(_append)

	async def on_request_transitioned(self, session: "Session", event: RequestTransitioned) -> None:
		async def _append() -> None:
			await log_event(
				REQUESTS_STREAM,
				event.transition.value,
				{
					"request_id": event.request.id,
					"actor_id": event.actor_id,
					"from": event.previous_status.value,
					"to": event.request.status.value,
					"fulfiller_id": event.previous_fulfiller_id or event.request.fulfiller_id,
				},
			)

		session.on_commit(_append)

	async def on_rating_submitted(self, session: "Session", event: RatingSubmitted) -> None:
		rating = event.rating

		async def _append() -> None:
			await log_event(
				RATINGS_STREAM,
				"submitted",
				{
					"rating_id": rating.id,
					"rater_id": rating.rater_id,
					"rated_user_id": rating.rated_user_id,
					"transaction_type": rating.transaction_type.value,
					"score": rating.score,
				},
			)

		session.on_commit(_append)
