"""REST API surface for ratings and the points leaderboard."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, status

from errands.api.deps import get_rating_service
from errands.api.errors import map_domain_error
from errands.domain.common.errors import DomainError
from errands.domain.incentives.models import LEADERBOARD_DEFAULT_LIMIT
from errands.domain.incentives.schemas import (
	LeaderboardRow,
	ProductRatingCreate,
	RatingSummary,
	RequestRatingCreate,
	UserRatings,
)
from errands.domain.incentives.service import RatingService
from errands.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["ratings"])


@router.post("/ratings/request", response_model=RatingSummary, status_code=status.HTTP_201_CREATED)
async def rate_request(
	payload: RequestRatingCreate,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: RatingService = Depends(get_rating_service),
) -> RatingSummary:
	try:
		return await service.rate_request(auth_user, payload)
	except DomainError as exc:
		raise map_domain_error(exc) from None


@router.post("/ratings/product", response_model=RatingSummary, status_code=status.HTTP_201_CREATED)
async def rate_product(
	payload: ProductRatingCreate,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: RatingService = Depends(get_rating_service),
) -> RatingSummary:
	try:
		return await service.rate_product(auth_user, payload)
	except DomainError as exc:
		raise map_domain_error(exc) from None


@router.get("/ratings/user/{user_id}", response_model=UserRatings)
async def user_ratings(
	user_id: str,
	_: AuthenticatedUser = Depends(get_current_user),
	service: RatingService = Depends(get_rating_service),
) -> UserRatings:
	try:
		return await service.list_user_ratings(user_id)
	except DomainError as exc:
		raise map_domain_error(exc) from None


@router.get("/leaderboard", response_model=List[LeaderboardRow])
async def leaderboard(
	limit: int = Query(default=LEADERBOARD_DEFAULT_LIMIT, ge=1, le=100),
	_: AuthenticatedUser = Depends(get_current_user),
	service: RatingService = Depends(get_rating_service),
) -> List[LeaderboardRow]:
	return await service.leaderboard(limit)
