"""Service layer for the delivery request lifecycle."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from errands.domain.chat.protocol import REQUEST_UPDATE
from errands.domain.common.events import EventBus, RequestCreated, RequestTransitioned
from errands.domain.common.models import UserRole
from errands.domain.requests.assignment import AssignmentCoordinator
from errands.domain.requests.exceptions import RequestAlreadyAccepted, RequestForbidden, RequestNotFound
from errands.domain.requests.models import DeliveryRequest, RequestFilters, RequestStatus, Transition
from errands.domain.requests.schemas import RequestCreate, RequestDetail, RequestStats, RequestSummary, TransitionEntry
from errands.infra.auth import AuthenticatedUser
from errands.infra.store import Store
from errands.obs import metrics as obs_metrics

if TYPE_CHECKING:
	from errands.domain.presence.registry import PresenceRegistry

logger = logging.getLogger(__name__)


class RequestService:
	def __init__(
		self,
		store: Store,
		bus: EventBus,
		*,
		coordinator: Optional[AssignmentCoordinator] = None,
		registry: Optional["PresenceRegistry"] = None,
	) -> None:
		self._store = store
		self._bus = bus
		self._coordinator = coordinator or AssignmentCoordinator()
		self._registry = registry

	async def create_request(self, actor: AuthenticatedUser, payload: RequestCreate) -> RequestSummary:
		if not actor.has_role(UserRole.HOSTELLER.value):
			raise RequestForbidden("requester_role_required")
		now = datetime.now(timezone.utc)
		request = DeliveryRequest(
			id=str(uuid.uuid4()),
			requester_id=actor.id,
			item_name=payload.item_name,
			description=payload.description,
			quantity=payload.quantity,
			expected_price=payload.expected_price,
			deadline=payload.deadline,
			delivery_location=payload.delivery_location,
			is_urgent=payload.is_urgent,
			category=payload.category,
			created_at=now,
			updated_at=now,
		)
		async with self._store.transaction() as session:
			created = await session.requests.insert(request)
			await self._bus.publish(session, RequestCreated(request=created))
		obs_metrics.inc_request_created(created.category.value)
		logger.info("request_created", extra={"request_id": created.id, "requester_id": actor.id})
		return RequestSummary.from_domain(created)

	async def list_open_requests(self, actor: AuthenticatedUser, filters: RequestFilters) -> List[RequestSummary]:
		if not actor.has_role(UserRole.DAYSCHOLAR.value, UserRole.ADMIN.value):
			raise RequestForbidden("fulfiller_role_required")
		async with self._store.transaction() as session:
			requests = await session.requests.list_open(filters)
		return [RequestSummary.from_domain(r) for r in requests]

	async def list_my_requests(self, actor: AuthenticatedUser, filters: RequestFilters) -> List[RequestSummary]:
		if not actor.has_role(UserRole.HOSTELLER.value):
			raise RequestForbidden("requester_role_required")
		async with self._store.transaction() as session:
			requests = await session.requests.list_by_requester(actor.id, filters)
		return [RequestSummary.from_domain(r) for r in requests]

	async def list_my_deliveries(self, actor: AuthenticatedUser, filters: RequestFilters) -> List[RequestSummary]:
		if not actor.has_role(UserRole.DAYSCHOLAR.value):
			raise RequestForbidden("fulfiller_role_required")
		async with self._store.transaction() as session:
			requests = await session.requests.list_by_fulfiller(actor.id, filters)
		return [RequestSummary.from_domain(r) for r in requests]

	async def stats(self, actor: AuthenticatedUser) -> RequestStats:
		async with self._store.transaction() as session:
			if actor.has_role(UserRole.HOSTELLER.value):
				counts = await session.requests.status_counts("requester_id", actor.id)
				return RequestStats(
					role=actor.role,
					active=counts.get(RequestStatus.PENDING, 0) + counts.get(RequestStatus.ACCEPTED, 0),
					completed=counts.get(RequestStatus.COMPLETED, 0),
					cancelled=counts.get(RequestStatus.CANCELLED, 0),
				)
			if actor.has_role(UserRole.DAYSCHOLAR.value):
				counts = await session.requests.status_counts("fulfiller_id", actor.id)
				return RequestStats(
					role=actor.role,
					active=counts.get(RequestStatus.ACCEPTED, 0),
					completed=counts.get(RequestStatus.COMPLETED, 0),
					total_earnings=await session.requests.completed_earnings(actor.id),
					available_requests=await session.requests.count_available(),
				)
		raise RequestForbidden("participant_role_required")

	async def get_request(self, actor: AuthenticatedUser, request_id: str) -> RequestDetail:
		async with self._store.transaction() as session:
			request = await session.requests.get(request_id)
			if request is None:
				raise RequestNotFound()
			if actor.has_role(UserRole.HOSTELLER.value) and request.requester_id != actor.id:
				raise RequestForbidden("not_requester")
			history = await session.requests.history(request_id)
		summary = RequestSummary.from_domain(request)
		return RequestDetail(
			**summary.model_dump(),
			history=[TransitionEntry.from_domain(record) for record in history],
		)

	async def accept(self, actor: AuthenticatedUser, request_id: str) -> RequestSummary:
		return await self._transition(actor, request_id, Transition.ACCEPT)

	async def deliver(self, actor: AuthenticatedUser, request_id: str) -> RequestSummary:
		return await self._transition(actor, request_id, Transition.DELIVER)

	async def cancel(self, actor: AuthenticatedUser, request_id: str) -> RequestSummary:
		return await self._transition(actor, request_id, Transition.CANCEL)

	async def cancel_delivery(self, actor: AuthenticatedUser, request_id: str) -> RequestSummary:
		return await self._transition(actor, request_id, Transition.CANCEL_DELIVERY)

	async def _transition(self, actor: AuthenticatedUser, request_id: str, transition: Transition) -> RequestSummary:
		try:
			async with self._store.transaction() as session:
				updated, plan = await self._coordinator.apply(session, request_id, transition, actor)
				event = RequestTransitioned(
					request=updated,
					transition=transition,
					actor_id=actor.id,
					previous_status=plan.expected_status,
					previous_fulfiller_id=plan.expected_fulfiller_id,
				)
				await self._bus.publish(session, event)
				session.on_commit(lambda: self._push_update(event))
		except RequestAlreadyAccepted:
			obs_metrics.inc_accept_conflict()
			obs_metrics.inc_transition(transition.value, "conflict")
			raise
		except Exception:
			obs_metrics.inc_transition(transition.value, "rejected")
			raise
		obs_metrics.inc_transition(transition.value, "ok")
		logger.info(
			"request_transitioned",
			extra={"request_id": request_id, "transition": transition.value, "actor_id": actor.id, "status": updated.status.value},
		)
		return RequestSummary.from_domain(updated)

	async def _push_update(self, event: RequestTransitioned) -> None:
		if self._registry is None:
			return
		payload = RequestSummary.from_domain(event.request).model_dump(mode="json")
		payload["transition"] = event.transition.value
		parties = {event.request.requester_id, event.previous_fulfiller_id, event.request.fulfiller_id}
		for user_id in parties - {None}:
			await self._registry.emit_to_user(user_id, REQUEST_UPDATE, payload)
