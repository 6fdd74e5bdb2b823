"""The request state machine.

Every legal move is declared once in ``TRANSITIONS``; ``plan_transition`` is the
only place that interprets it. Authorization is checked before status so that a
stranger poking a finished request learns nothing about its state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, FrozenSet, Optional

from errands.domain.common.models import UserRole
from errands.domain.requests.exceptions import (
	RequestAlreadyAccepted,
	RequestConflict,
	RequestForbidden,
)
from errands.domain.requests.models import DeliveryRequest, RequestStatus, Transition
from errands.infra.auth import AuthenticatedUser

ActorRule = Callable[[DeliveryRequest, AuthenticatedUser], bool]


def _any_fulfiller(request: DeliveryRequest, actor: AuthenticatedUser) -> bool:
	return actor.role == UserRole.DAYSCHOLAR.value


def _the_assignee(request: DeliveryRequest, actor: AuthenticatedUser) -> bool:
	return request.fulfiller_id is not None and request.fulfiller_id == actor.id


def _the_requester(request: DeliveryRequest, actor: AuthenticatedUser) -> bool:
	return request.requester_id == actor.id


@dataclass(frozen=True, slots=True)
class TransitionRule:
	sources: FrozenSet[RequestStatus]
	target: RequestStatus
	actor_rule: ActorRule
	forbidden_reason: str
	conflict_reason: str
	# which timestamp column the transition stamps
	stamp: str
	assigns: bool = False
	clears_assignment: bool = False


TRANSITIONS: Dict[Transition, TransitionRule] = {
	Transition.ACCEPT: TransitionRule(
		sources=frozenset({RequestStatus.PENDING}),
		target=RequestStatus.ACCEPTED,
		actor_rule=_any_fulfiller,
		forbidden_reason="fulfiller_role_required",
		conflict_reason="already_accepted",
		stamp="accepted_at",
		assigns=True,
	),
	Transition.DELIVER: TransitionRule(
		sources=frozenset({RequestStatus.ACCEPTED}),
		target=RequestStatus.COMPLETED,
		actor_rule=_the_assignee,
		forbidden_reason="not_assignee",
		conflict_reason="not_accepted",
		stamp="completed_at",
	),
	Transition.CANCEL: TransitionRule(
		sources=frozenset({RequestStatus.PENDING, RequestStatus.ACCEPTED}),
		target=RequestStatus.CANCELLED,
		actor_rule=_the_requester,
		forbidden_reason="not_requester",
		conflict_reason="not_cancellable",
		stamp="cancelled_at",
		clears_assignment=True,
	),
	Transition.CANCEL_DELIVERY: TransitionRule(
		sources=frozenset({RequestStatus.ACCEPTED}),
		target=RequestStatus.CANCELLED,
		actor_rule=_the_assignee,
		forbidden_reason="not_assignee",
		conflict_reason="not_accepted",
		stamp="cancelled_at",
		clears_assignment=True,
	),
}


@dataclass(frozen=True, slots=True)
class TransitionPlan:
	"""The outcome of planning a transition against an observed request."""

	transition: Transition
	expected_status: RequestStatus
	expected_fulfiller_id: Optional[str]
	target: RequestStatus
	fulfiller_id: Optional[str]
	stamp: str

	def apply(self, request: DeliveryRequest, now: datetime) -> None:
		request.status = self.target
		request.fulfiller_id = self.fulfiller_id
		request.updated_at = now
		setattr(request, self.stamp, now)


def plan_transition(
	request: DeliveryRequest,
	transition: Transition,
	actor: AuthenticatedUser,
) -> TransitionPlan:
	"""Validate ``transition`` for ``actor`` against the observed ``request``.

	Raises RequestForbidden when the actor may not perform the move and
	RequestConflict (or RequestAlreadyAccepted) when the status precondition fails.
	"""
	rule = TRANSITIONS[transition]
	if not rule.actor_rule(request, actor):
		raise RequestForbidden(rule.forbidden_reason)
	if request.status not in rule.sources:
		if transition is Transition.ACCEPT:
			if request.status is RequestStatus.ACCEPTED:
				raise RequestAlreadyAccepted(rule.conflict_reason)
			raise RequestAlreadyAccepted("not_available")
		raise RequestConflict(rule.conflict_reason)
	if rule.assigns:
		if request.fulfiller_id is not None:
			raise RequestAlreadyAccepted(rule.conflict_reason)
		fulfiller_id: Optional[str] = actor.id
	elif rule.clears_assignment:
		fulfiller_id = None
	else:
		fulfiller_id = request.fulfiller_id
	return TransitionPlan(
		transition=transition,
		expected_status=request.status,
		expected_fulfiller_id=request.fulfiller_id,
		target=rule.target,
		fulfiller_id=fulfiller_id,
		stamp=rule.stamp,
	)


def allowed_targets(status: RequestStatus) -> FrozenSet[RequestStatus]:
	"""Statuses reachable from ``status`` in one step."""
	return frozenset(rule.target for rule in TRANSITIONS.values() if status in rule.sources)
