"""Domain-level exceptions for ratings."""

from __future__ import annotations

from errands.domain.common.errors import Conflict, Forbidden, NotFound, ValidationFailed


class RatingTargetNotFound(NotFound):
	reason = "transaction_not_found"


class UserNotFound(NotFound):
	reason = "user_not_found"


class RatingForbidden(Forbidden):
	reason = "not_a_party"


class RatingNotAllowed(Conflict):
	reason = "not_completed"


class RatingAlreadySubmitted(Conflict):
	reason = "already_rated"


class RatingInvalid(ValidationFailed):
	reason = "invalid_rating"
