"""Domain-level exceptions for notifications."""

from __future__ import annotations

from errands.domain.common.errors import Forbidden, NotFound


class NotificationNotFound(NotFound):
    reason = "notification_not_found"


class NotificationForbidden(Forbidden):
    reason = "not_owner"
