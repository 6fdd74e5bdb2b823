"""In-process domain events and the bus that dispatches them.

Handlers run inside the publisher's storage transaction and receive the open
session, so anything they write commits or rolls back with the triggering
change. Work that must only happen after commit is registered through
``session.on_commit``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, DefaultDict, List, Optional, Type, TypeVar

if TYPE_CHECKING:
	from errands.domain.chat.models import Message
	from errands.domain.incentives.models import Rating
	from errands.domain.requests.models import DeliveryRequest, RequestStatus, Transition
	from errands.infra.store import Session

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RequestCreated:
	request: "DeliveryRequest"


@dataclass(slots=True, frozen=True)
class RequestTransitioned:
	request: "DeliveryRequest"
	transition: "Transition"
	actor_id: str
	previous_status: "RequestStatus"
	# assignee at the time of the transition (already cleared on the row for cancellations)
	previous_fulfiller_id: Optional[str]


@dataclass(slots=True, frozen=True)
class MessageSent:
	message: "Message"
	sender_name: Optional[str] = None


@dataclass(slots=True, frozen=True)
class RatingSubmitted:
	rating: "Rating"
	rater_name: Optional[str] = None


E = TypeVar("E")
Handler = Callable[["Session", E], Awaitable[None]]


class EventBus:
	"""Type-keyed publish/subscribe; handlers are awaited in subscription order."""

	def __init__(self) -> None:
		self._handlers: DefaultDict[type, List[Handler]] = defaultdict(list)

	def subscribe(self, event_type: Type[E], handler: Handler) -> None:
		self._handlers[event_type].append(handler)

	async def publish(self, session: "Session", event: object) -> None:
		handlers = self._handlers.get(type(event), [])
		_LOGGER.debug("event_publish", extra={"event": type(event).__name__, "handlers": len(handlers)})
		for handler in handlers:
			await handler(session, event)


__all__ = [
	"EventBus",
	"MessageSent",
	"RatingSubmitted",
	"RequestCreated",
	"RequestTransitioned",
]
