"""Request ID helper for error responses.

The observability middleware binds the request id into the logging context and
stores it on ``request.state``; either source is accepted here.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request

from errands.obs import logging as obs_logging


def get_request_id(request: Optional[Request] = None, default: str = "unknown") -> str:
    rid = obs_logging.current_request_id()
    if not rid and request is not None:
        rid = getattr(request.state, "request_id", None) or request.headers.get("X-Request-Id")
    return rid or default
