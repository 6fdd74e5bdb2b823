"""REST API surface for the delivery request lifecycle."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from errands.api.deps import get_request_service
from errands.api.errors import map_domain_error
from errands.domain.common.errors import DomainError
from errands.domain.requests.models import RequestCategory, RequestFilters, RequestStatus
from errands.domain.requests.schemas import RequestCreate, RequestDetail, RequestStats, RequestSummary
from errands.domain.requests.service import RequestService
from errands.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/requests", tags=["requests"])


@router.post("", response_model=RequestSummary, status_code=status.HTTP_201_CREATED)
async def create_request(
	payload: RequestCreate,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: RequestService = Depends(get_request_service),
) -> RequestSummary:
	try:
		return await service.create_request(auth_user, payload)
	except DomainError as exc:
		raise map_domain_error(exc) from None


@router.get("", response_model=List[RequestSummary])
async def list_open_requests(
	category: Optional[RequestCategory] = Query(default=None),
	urgent: bool = Query(default=False),
	search: Optional[str] = Query(default=None, max_length=100),
	limit: int = Query(default=100, ge=1, le=200),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: RequestService = Depends(get_request_service),
) -> List[RequestSummary]:
	filters = RequestFilters(category=category, urgent_only=urgent, search=(search or "").strip() or None, limit=limit)
	try:
		return await service.list_open_requests(auth_user, filters)
	except DomainError as exc:
		raise map_domain_error(exc) from None


@router.get("/mine", response_model=List[RequestSummary])
async def list_my_requests(
	status_filter: Optional[RequestStatus] = Query(default=None, alias="status"),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: RequestService = Depends(get_request_service),
) -> List[RequestSummary]:
	try:
		return await service.list_my_requests(auth_user, RequestFilters(status=status_filter))
	except DomainError as exc:
		raise map_domain_error(exc) from None


@router.get("/stats", response_model=RequestStats)
async def request_stats(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: RequestService = Depends(get_request_service),
) -> RequestStats:
	try:
		return await service.stats(auth_user)
	except DomainError as exc:
		raise map_domain_error(exc) from None


@router.get("/deliveries", response_model=List[RequestSummary])
async def list_my_deliveries(
	status_filter: Optional[RequestStatus] = Query(default=None, alias="status"),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: RequestService = Depends(get_request_service),
) -> List[RequestSummary]:
	try:
		return await service.list_my_deliveries(auth_user, RequestFilters(status=status_filter))
	except DomainError as exc:
		raise map_domain_error(exc) from None


@router.get("/{request_id}", response_model=RequestDetail)
async def get_request(
	request_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: RequestService = Depends(get_request_service),
) -> RequestDetail:
	try:
		return await service.get_request(auth_user, request_id)
	except DomainError as exc:
		raise map_domain_error(exc) from None


@router.put("/{request_id}/accept", response_model=RequestSummary)
async def accept_request(
	request_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: RequestService = Depends(get_request_service),
) -> RequestSummary:
	try:
		return await service.accept(auth_user, request_id)
	except DomainError as exc:
		raise map_domain_error(exc, conflict_status=status.HTTP_409_CONFLICT) from None


@router.put("/{request_id}/deliver", response_model=RequestSummary)
async def deliver_request(
	request_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: RequestService = Depends(get_request_service),
) -> RequestSummary:
	try:
		return await service.deliver(auth_user, request_id)
	except DomainError as exc:
		raise map_domain_error(exc) from None


@router.put("/{request_id}/cancel", response_model=RequestSummary)
async def cancel_request(
	request_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: RequestService = Depends(get_request_service),
) -> RequestSummary:
	try:
		return await service.cancel(auth_user, request_id)
	except DomainError as exc:
		raise map_domain_error(exc) from None


@router.put("/{request_id}/cancel-delivery", response_model=RequestSummary)
async def cancel_delivery(
	request_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: RequestService = Depends(get_request_service),
) -> RequestSummary:
	try:
		return await service.cancel_delivery(auth_user, request_id)
	except DomainError as exc:
		raise map_domain_error(exc) from None
