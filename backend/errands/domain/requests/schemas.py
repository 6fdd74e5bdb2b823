"""Pydantic schemas for delivery requests."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from errands.domain.requests.models import (
	DeliveryRequest,
	RequestCategory,
	RequestStatus,
	RequestTransitionRecord,
	Transition,
)


class RequestCreate(BaseModel):
	model_config = ConfigDict(str_strip_whitespace=True)

	item_name: str = Field(..., min_length=1, max_length=200)
	description: Optional[str] = Field(default=None, max_length=2000)
	quantity: int = Field(default=1, ge=1, le=1000)
	expected_price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
	deadline: datetime
	delivery_location: str = Field(..., min_length=1, max_length=255)
	is_urgent: bool = False
	category: RequestCategory = RequestCategory.OTHER

	@field_validator("deadline")
	@classmethod
	def _assume_utc(cls, value: datetime) -> datetime:
		if value.tzinfo is None:
			return value.replace(tzinfo=timezone.utc)
		return value


class RequestSummary(BaseModel):
	id: str
	requester_id: str
	fulfiller_id: Optional[str] = None
	item_name: str
	description: Optional[str] = None
	quantity: int
	expected_price: Decimal
	deadline: datetime
	delivery_location: str
	is_urgent: bool
	category: RequestCategory
	status: RequestStatus
	created_at: datetime
	updated_at: datetime
	accepted_at: Optional[datetime] = None
	completed_at: Optional[datetime] = None
	cancelled_at: Optional[datetime] = None

	@classmethod
	def from_domain(cls, request: DeliveryRequest) -> "RequestSummary":
		return cls(
			id=request.id,
			requester_id=request.requester_id,
			fulfiller_id=request.fulfiller_id,
			item_name=request.item_name,
			description=request.description,
			quantity=request.quantity,
			expected_price=request.expected_price,
			deadline=request.deadline,
			delivery_location=request.delivery_location,
			is_urgent=request.is_urgent,
			category=request.category,
			status=request.status,
			created_at=request.created_at,
			updated_at=request.updated_at,
			accepted_at=request.accepted_at,
			completed_at=request.completed_at,
			cancelled_at=request.cancelled_at,
		)


class TransitionEntry(BaseModel):
	transition: Transition
	from_status: RequestStatus
	to_status: RequestStatus
	actor_id: str
	fulfiller_id: Optional[str] = None
	created_at: datetime

	@classmethod
	def from_domain(cls, record: RequestTransitionRecord) -> "TransitionEntry":
		return cls(
			transition=record.transition,
			from_status=record.from_status,
			to_status=record.to_status,
			actor_id=record.actor_id,
			fulfiller_id=record.fulfiller_id,
			created_at=record.created_at,
		)


class RequestDetail(RequestSummary):
	history: List[TransitionEntry] = Field(default_factory=list)


class RequestStats(BaseModel):
	"""Dashboard counters; the earnings and availability fields are only set for fulfillers."""

	role: str
	active: int = 0
	completed: int = 0
	cancelled: int = 0
	total_earnings: Optional[Decimal] = None
	available_requests: Optional[int] = None
