"""Domain-level exceptions for chat."""

from __future__ import annotations

from errands.domain.common.errors import Forbidden, NotFound, RateLimited, ValidationFailed


class ReceiverNotFound(NotFound):
	reason = "receiver_not_found"


class ChatScopeNotFound(NotFound):
	reason = "scope_not_found"


class ChatForbidden(Forbidden):
	reason = "not_a_party"


class ChatInvalid(ValidationFailed):
	reason = "invalid_message"


class ChatRateLimited(RateLimited):
	reason = "rate_limited"
