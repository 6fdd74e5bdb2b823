"""REST API surface for notifications (owner only)."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from errands.api.deps import get_notification_service
from errands.api.errors import map_domain_error
from errands.domain.common.errors import DomainError
from errands.domain.notifications.schemas import MarkAllReadResult, NotificationList, NotificationOut, UnreadCount
from errands.domain.notifications.service import NotificationService
from errands.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationList)
async def list_notifications(
	limit: Optional[int] = Query(default=None, ge=1, le=200),
	unread_only: bool = Query(default=False),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: NotificationService = Depends(get_notification_service),
) -> NotificationList:
	return await service.list_notifications(auth_user, limit=limit, unread_only=unread_only)


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: NotificationService = Depends(get_notification_service),
) -> UnreadCount:
	return await service.unread_count(auth_user)


@router.put("/read-all", response_model=MarkAllReadResult)
async def mark_all_read(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: NotificationService = Depends(get_notification_service),
) -> MarkAllReadResult:
	return await service.mark_all_read(auth_user)


@router.put("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
	notification_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: NotificationService = Depends(get_notification_service),
) -> NotificationOut:
	try:
		return await service.mark_read(auth_user, notification_id)
	except DomainError as exc:
		raise map_domain_error(exc) from None


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
	notification_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	service: NotificationService = Depends(get_notification_service),
) -> Response:
	try:
		await service.delete(auth_user, notification_id)
	except DomainError as exc:
		raise map_domain_error(exc) from None
	return Response(status_code=status.HTTP_204_NO_CONTENT)
