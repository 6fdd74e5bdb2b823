"""Translation of domain errors into HTTP responses.

Every error body has the shape ``{"detail": reason, "code": family, "request_id": id}``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from errands.api.request_id import get_request_id
from errands.domain.common.errors import Conflict, DomainError, Forbidden, NotFound, RateLimited, ValidationFailed

logger = logging.getLogger(__name__)

_CODES_BY_STATUS = {
    status.HTTP_400_BAD_REQUEST: "validation",
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
    status.HTTP_409_CONFLICT: "conflict",
    422: "validation",
    status.HTTP_429_TOO_MANY_REQUESTS: "rate_limited",
}


class DomainHTTPException(HTTPException):
    """HTTPException that remembers which domain error family produced it."""

    def __init__(self, status_code: int, detail: str, code: str) -> None:
        super().__init__(status_code=status_code, detail=detail)
        self.code = code


def map_domain_error(exc: DomainError, *, conflict_status: int = status.HTTP_400_BAD_REQUEST) -> DomainHTTPException:
    """Map a domain error to its HTTP form.

    State-precondition conflicts answer 400 by default; endpoints whose contract
    promises 409 (the accept race) pass ``conflict_status``.
    """
    if isinstance(exc, NotFound):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, Forbidden):
        status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, Conflict):
        status_code = conflict_status
    elif isinstance(exc, ValidationFailed):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, RateLimited):
        status_code = status.HTTP_429_TOO_MANY_REQUESTS
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return DomainHTTPException(status_code, exc.reason, exc.code)


def _body(request: Request, detail, code: str) -> dict:
    return {"detail": detail, "code": code, "request_id": get_request_id(request)}


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        code = getattr(exc, "code", None) or _CODES_BY_STATUS.get(exc.status_code, "error")
        return JSONResponse(status_code=exc.status_code, content=_body(request, exc.detail, code), headers=exc.headers)

    @app.exception_handler(DomainError)
    async def domain_exc_handler(request: Request, exc: DomainError):  # type: ignore[override]
        mapped = map_domain_error(exc)
        return JSONResponse(status_code=mapped.status_code, content=_body(request, mapped.detail, mapped.code))

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        payload = _body(request, "validation_error", "validation")
        payload["errors"] = jsonable_errors(exc)
        return JSONResponse(status_code=422, content=payload)

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):  # type: ignore[override]
        logger.exception("unhandled_error", extra={"path": request.url.path, "method": request.method})
        return JSONResponse(status_code=500, content=_body(request, "internal_error", "internal"))


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    errors = []
    for err in exc.errors():
        errors.append({"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg"), "type": err.get("type")})
    return errors
