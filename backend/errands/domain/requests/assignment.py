"""Race-free application of lifecycle transitions.

The coordinator plans a transition against the row it observed and then
writes it with a single conditional update guarded by that observation. When
the guard misses, someone else changed the row in between; the coordinator
re-reads it and re-plans, which turns the lost race into the precise domain
error (``already_accepted`` for competing accepts).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from errands.domain.requests.exceptions import RequestConflict, RequestNotFound
from errands.domain.requests.models import DeliveryRequest, RequestTransitionRecord, Transition
from errands.domain.requests.transitions import TransitionPlan, plan_transition
from errands.infra.auth import AuthenticatedUser

if TYPE_CHECKING:
	from errands.infra.store import Session

logger = logging.getLogger(__name__)


class AssignmentCoordinator:
	async def apply(
		self,
		session: "Session",
		request_id: str,
		transition: Transition,
		actor: AuthenticatedUser,
		*,
		now: Optional[datetime] = None,
	) -> tuple[DeliveryRequest, TransitionPlan]:
		"""Return the updated request and the plan it was written with.

		Raises RequestNotFound, RequestForbidden or RequestConflict; nothing is
		written in those cases.
		"""
		observed = await self._load(session, request_id)
		plan = plan_transition(observed, transition, actor)
		stamp = now or datetime.now(timezone.utc)
		updated = await session.requests.compare_and_set(request_id, plan, stamp)
		if updated is None:
			current = await self._load(session, request_id)
			logger.info(
				"transition_guard_missed",
				extra={"request_id": request_id, "transition": transition.value, "status": current.status.value},
			)
			# re-planning against the fresh row raises the error the caller would have seen had it been first
			plan_transition(current, transition, actor)
			raise RequestConflict("concurrent_update")
		await session.requests.log_transition(
			RequestTransitionRecord(
				request_id=request_id,
				transition=transition,
				from_status=plan.expected_status,
				to_status=plan.target,
				actor_id=actor.id,
				fulfiller_id=plan.expected_fulfiller_id or plan.fulfiller_id,
				created_at=stamp,
			)
		)
		return updated, plan

	async def _load(self, session: "Session", request_id: str) -> DeliveryRequest:
		request = await session.requests.get(request_id)
		if request is None:
			raise RequestNotFound()
		return request
