"""Turns domain events into notifications for the interested parties.

Rows are written with the publisher's session so they share its transaction.
The realtime ``notification:new`` push is deferred until after commit and is
best effort: an offline user simply finds the notification on next fetch.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from errands.domain.chat.protocol import NOTIFICATION_NEW
from errands.domain.common.events import EventBus, MessageSent, RatingSubmitted, RequestCreated, RequestTransitioned
from errands.domain.common.models import UserRole
from errands.domain.incentives.models import TransactionType
from errands.domain.notifications.models import Notification, NotificationCategory
from errands.domain.requests.models import Transition
from errands.obs import metrics as obs_metrics

if TYPE_CHECKING:
    from errands.domain.presence.registry import PresenceRegistry
    from errands.infra.store import Session

_LOGGER = logging.getLogger(__name__)

_TRANSITION_COPY = {
    Transition.ACCEPT: ("Request Accepted", "Your request for {item} has been accepted by a day scholar."),
    Transition.DELIVER: ("Request Completed", "Your request for {item} has been completed."),
    Transition.CANCEL: ("Request Cancelled", "The request for {item} has been cancelled by the requester."),
    Transition.CANCEL_DELIVERY: (
        "Delivery Cancelled",
        'The delivery for your request "{item}" has been cancelled by the day scholar. Your request has been cancelled.',
    ),
}


def _transition_recipient(event: RequestTransitioned) -> Optional[str]:
    """The counterpart of the actor, judged by who held the request at transition time."""
    request = event.request
    if event.actor_id == request.requester_id:
        return event.previous_fulfiller_id
    return request.requester_id


class NotificationFanout:
    def __init__(self, registry: Optional["PresenceRegistry"] = None) -> None:
        self._registry = registry

    def install(self, bus: EventBus) -> None:
        bus.subscribe(RequestCreated, self.on_request_created)
        bus.subscribe(RequestTransitioned, self.on_request_transitioned)
        bus.subscribe(MessageSent, self.on_message_sent)
        bus.subscribe(RatingSubmitted, self.on_rating_submitted)

    async def notify(
        self,
        session: "Session",
        *,
        user_id: str,
        category: NotificationCategory,
        title: str,
        message: str,
        related_id: Optional[str] = None,
    ) -> Notification:
        notification = await session.notifications.create(
            Notification(
                id=str(uuid.uuid4()),
                user_id=user_id,
                category=category,
                title=title,
                message=message,
                related_id=related_id,
                created_at=datetime.now(timezone.utc),
            )
        )
        obs_metrics.inc_notification_created(category.value)

        async def _push() -> None:
            await self._push(notification)

        session.on_commit(_push)
        return notification

    async def _push(self, notification: Notification) -> None:
        if self._registry is None or not self._registry.is_online(notification.user_id):
            return
        delivered = await self._registry.emit_to_user(
            notification.user_id, NOTIFICATION_NEW, notification.to_dict()
        )
        if not delivered:
            obs_metrics.inc_notification_push_failure()

    async def on_request_created(self, session: "Session", event: RequestCreated) -> None:
        request = event.request
        for fulfiller in await session.users.list_verified(UserRole.DAYSCHOLAR):
            await self.notify(
                session,
                user_id=fulfiller.id,
                category=NotificationCategory.REQUEST,
                title="New Item Request",
                message=f"A new request for {request.item_name} has been posted.",
                related_id=request.id,
            )

    async def on_request_transitioned(self, session: "Session", event: RequestTransitioned) -> None:
        recipient = _transition_recipient(event)
        if recipient is None or recipient == event.actor_id:
            return
        title, template = _TRANSITION_COPY[event.transition]
        await self.notify(
            session,
            user_id=recipient,
            category=NotificationCategory.REQUEST,
            title=title,
            message=template.format(item=event.request.item_name),
            related_id=event.request.id,
        )

    async def on_message_sent(self, session: "Session", event: MessageSent) -> None:
        message = event.message
        sender = event.sender_name or "a user"
        await self.notify(
            session,
            user_id=message.receiver_id,
            category=NotificationCategory.MESSAGE,
            title="New Message",
            message=f"You have a new message from {sender}.",
            related_id=message.id,
        )

    async def on_rating_submitted(self, session: "Session", event: RatingSubmitted) -> None:
        rating = event.rating
        is_product = rating.transaction_type is TransactionType.PRODUCT
        await self.notify(
            session,
            user_id=rating.rated_user_id,
            category=NotificationCategory.PRODUCT if is_product else NotificationCategory.REQUEST,
            title="New Rating",
            message=f"You have received a new rating for a {rating.transaction_type.value}.",
            related_id=rating.transaction_id,
        )
