"""Domain-level exceptions for the request lifecycle."""

from __future__ import annotations

from errands.domain.common.errors import Conflict, Forbidden, NotFound


class RequestNotFound(NotFound):
	reason = "request_not_found"


class RequestForbidden(Forbidden):
	reason = "forbidden"


class RequestConflict(Conflict):
	reason = "invalid_state"


class RequestAlreadyAccepted(RequestConflict):
	reason = "already_accepted"
