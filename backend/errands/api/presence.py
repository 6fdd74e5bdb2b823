"""REST API surface for batch presence lookups."""

from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from errands.api.deps import get_registry
from errands.domain.chat.protocol import MAX_QUERY_IDS
from errands.domain.presence.registry import PresenceRegistry
from errands.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/presence", tags=["presence"])


class PresenceStatus(BaseModel):
	statuses: Dict[str, bool]


@router.get("/status", response_model=PresenceStatus)
async def presence_status(
	user_ids: str = Query(..., description="Comma separated user ids"),
	_: AuthenticatedUser = Depends(get_current_user),
	registry: PresenceRegistry = Depends(get_registry),
) -> PresenceStatus:
	ids = [part.strip() for part in user_ids.split(",") if part.strip()]
	if len(ids) > MAX_QUERY_IDS:
		raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="too_many_ids")
	return PresenceStatus(statuses=registry.query_batch(ids))
