"""Error taxonomy shared by the server and the client.

Every failure leaves the service as ``{"error": {"code", "message", "details"?}}``.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    code = "INTERNAL"
    status_code = 500
    default_message = "Internal error"
    retryable = False

    def __init__(self, message: Optional[str] = None, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_envelope(self) -> dict:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return {"error": error}


class BadRequest(ApiError):
    code = "BAD_REQUEST"
    status_code = 400
    default_message = "Invalid input"


class InvalidPermutation(BadRequest):
    """The supplied id list is not exactly the required membership."""

    default_message = "Ids do not match the current members of the collection"

    def __init__(
        self,
        missing: Sequence[str] = (),
        extra: Sequence[str] = (),
        duplicates: Sequence[str] = (),
        message: Optional[str] = None,
    ) -> None:
        self.missing = list(missing)
        self.extra = list(extra)
        self.duplicates = list(duplicates)
        super().__init__(
            message,
            {"missing": self.missing, "extra": self.extra, "duplicates": self.duplicates},
        )


class Unauthorized(ApiError):
    code = "UNAUTHORIZED"
    status_code = 401
    default_message = "Authentication required"


class Forbidden(ApiError):
    code = "FORBIDDEN"
    status_code = 403
    default_message = "Forbidden"


class NotFound(ApiError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Not found"


class Conflict(ApiError):
    code = "CONFLICT"
    status_code = 409
    default_message = "The collection was changed concurrently; refetch and retry"
    retryable = True


class Internal(ApiError):
    pass


ERRORS_BY_CODE: dict[str, type[ApiError]] = {
    cls.code: cls for cls in (BadRequest, Unauthorized, Forbidden, NotFound, Conflict, Internal)
}

_CODES_BY_STATUS = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "BAD_REQUEST",
    409: "CONFLICT",
}


def error_from_envelope(status_code: int, body: Any) -> ApiError:
    """Rebuild the raised error from a failure response body."""
    error = body.get("error") if isinstance(body, dict) else None
    if not isinstance(error, dict):
        code = _CODES_BY_STATUS.get(status_code, "INTERNAL")
        return ERRORS_BY_CODE[code](f"HTTP {status_code}")
    code = error.get("code", "INTERNAL")
    message = error.get("message")
    details = error.get("details")
    if code == "BAD_REQUEST" and isinstance(details, dict) and "missing" in details:
        return InvalidPermutation(
            missing=details.get("missing", ()),
            extra=details.get("extra", ()),
            duplicates=details.get("duplicates", ()),
            message=message,
        )
    return ERRORS_BY_CODE.get(code, Internal)(message, details)


def _envelope(status_code: int, code: str, message: str, details: Any = None) -> JSONResponse:
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error})


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_envelope())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = []
        for issue in exc.errors():
            loc = [str(part) for part in issue.get("loc", ())]
            if loc and loc[0] in ("body", "query", "path", "header"):
                loc = loc[1:]
            details.append({"path": ".".join(loc), "issue": issue.get("msg", "invalid")})
        return _envelope(400, "BAD_REQUEST", "Invalid input", details)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = _CODES_BY_STATUS.get(exc.status_code, "INTERNAL" if exc.status_code >= 500 else "BAD_REQUEST")
        if exc.status_code == 404:
            message = f"Route not found: {request.method} {request.url.path}"
        else:
            message = str(exc.detail)
        return _envelope(exc.status_code, code, message)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return _envelope(500, "INTERNAL", Internal.default_message)
