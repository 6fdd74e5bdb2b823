"""Pydantic schemas for ratings and the leaderboard."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from errands.domain.common.models import User
from errands.domain.incentives.models import MAX_SCORE, MIN_SCORE, Rating, TransactionType


class RequestRatingCreate(BaseModel):
	model_config = ConfigDict(str_strip_whitespace=True)

	request_id: str = Field(..., min_length=1)
	score: int = Field(..., ge=MIN_SCORE, le=MAX_SCORE)
	comment: Optional[str] = Field(default=None, max_length=1000)


class ProductRatingCreate(BaseModel):
	model_config = ConfigDict(str_strip_whitespace=True)

	product_id: str = Field(..., min_length=1)
	score: int = Field(..., ge=MIN_SCORE, le=MAX_SCORE)
	comment: Optional[str] = Field(default=None, max_length=1000)
	buyer_id: Optional[str] = Field(default=None, description="Required when the seller rates the buyer")


class RatingSummary(BaseModel):
	id: str
	rater_id: str
	rated_user_id: str
	transaction_id: str
	transaction_type: TransactionType
	score: int
	comment: Optional[str] = None
	created_at: datetime

	@classmethod
	def from_domain(cls, rating: Rating) -> "RatingSummary":
		return cls(
			id=rating.id,
			rater_id=rating.rater_id,
			rated_user_id=rating.rated_user_id,
			transaction_id=rating.transaction_id,
			transaction_type=rating.transaction_type,
			score=rating.score,
			comment=rating.comment,
			created_at=rating.created_at,
		)


class UserRatings(BaseModel):
	user_id: str
	average_rating: Decimal
	count: int
	ratings: List[RatingSummary]


class LeaderboardRow(BaseModel):
	rank: int
	user_id: str
	name: str
	role: str
	points: int
	average_rating: Decimal

	@classmethod
	def from_domain(cls, rank: int, user: User) -> "LeaderboardRow":
		return cls(
			rank=rank,
			user_id=user.id,
			name=user.name,
			role=user.role.value,
			points=user.points,
			average_rating=user.average_rating,
		)
