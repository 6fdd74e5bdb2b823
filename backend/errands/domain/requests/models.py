"""Domain models for delivery requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class RequestStatus(str, Enum):
	"""Lifecycle states of a delivery request."""

	PENDING = "pending"
	ACCEPTED = "accepted"
	COMPLETED = "completed"
	CANCELLED = "cancelled"

	@property
	def is_terminal(self) -> bool:
		return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({RequestStatus.COMPLETED, RequestStatus.CANCELLED})
ASSIGNED_STATUSES = frozenset({RequestStatus.ACCEPTED, RequestStatus.COMPLETED})


class Transition(str, Enum):
	ACCEPT = "accept"
	DELIVER = "deliver"
	CANCEL = "cancel"
	CANCEL_DELIVERY = "cancel_delivery"


class RequestCategory(str, Enum):
	GROCERIES = "groceries"
	MEDICINES = "medicines"
	STATIONERY = "stationery"
	FOOD = "food"
	OTHER = "other"


@dataclass(slots=True)
class DeliveryRequest:
	"""A delivery task posted by a requester and optionally claimed by a fulfiller."""

	id: str
	requester_id: str
	item_name: str
	expected_price: Decimal
	deadline: datetime
	delivery_location: str
	created_at: datetime
	updated_at: datetime
	status: RequestStatus = RequestStatus.PENDING
	fulfiller_id: Optional[str] = None
	description: Optional[str] = None
	quantity: int = 1
	is_urgent: bool = False
	category: RequestCategory = RequestCategory.OTHER
	accepted_at: Optional[datetime] = None
	completed_at: Optional[datetime] = None
	cancelled_at: Optional[datetime] = None

	@classmethod
	def from_record(cls, record) -> "DeliveryRequest":
		return cls(
			id=str(record["id"]),
			requester_id=str(record["requester_id"]),
			fulfiller_id=str(record["fulfiller_id"]) if record.get("fulfiller_id") else None,
			item_name=record["item_name"],
			description=record.get("description"),
			quantity=int(record["quantity"]),
			expected_price=Decimal(str(record["expected_price"])),
			deadline=record["deadline"],
			delivery_location=record["delivery_location"],
			is_urgent=bool(record["is_urgent"]),
			category=RequestCategory(record["category"]),
			status=RequestStatus(record["status"]),
			created_at=record["created_at"],
			updated_at=record["updated_at"],
			accepted_at=record.get("accepted_at"),
			completed_at=record.get("completed_at"),
			cancelled_at=record.get("cancelled_at"),
		)

	def is_party(self, user_id: str) -> bool:
		return user_id in (self.requester_id, self.fulfiller_id)

	def counterpart_of(self, user_id: str) -> Optional[str]:
		if user_id == self.requester_id:
			return self.fulfiller_id
		if user_id == self.fulfiller_id:
			return self.requester_id
		return None


@dataclass(slots=True)
class RequestTransitionRecord:
	"""One committed row of the request transition log."""

	request_id: str
	transition: Transition
	from_status: RequestStatus
	to_status: RequestStatus
	actor_id: str
	fulfiller_id: Optional[str]
	created_at: datetime

	@classmethod
	def from_record(cls, record) -> "RequestTransitionRecord":
		return cls(
			request_id=str(record["request_id"]),
			transition=Transition(record["transition"]),
			from_status=RequestStatus(record["from_status"]),
			to_status=RequestStatus(record["to_status"]),
			actor_id=str(record["actor_id"]),
			fulfiller_id=str(record["fulfiller_id"]) if record.get("fulfiller_id") else None,
			created_at=record["created_at"],
		)


@dataclass(slots=True)
class RequestFilters:
	category: Optional[RequestCategory] = None
	urgent_only: bool = False
	search: Optional[str] = None
	status: Optional[RequestStatus] = None
	limit: int = field(default=100)
