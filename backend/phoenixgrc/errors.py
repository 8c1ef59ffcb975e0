"""
Domain errors raised by services and rendered by the application.

Services never build HTTP responses themselves; they raise one of the
exceptions below and ``install_error_handlers`` maps it to a status code and a
``{"detail": ...}`` body, the same shape FastAPI uses for ``HTTPException``.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class GRCError(Exception):
    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidInput(GRCError):
    status_code = 400
    default_detail = "Invalid input"


class InvalidState(GRCError):
    status_code = 400
    default_detail = "Operation not allowed in the current state"


class Forbidden(GRCError):
    status_code = 403
    default_detail = "Access denied"


class NotFound(GRCError):
    status_code = 404
    default_detail = "Not found"


class Conflict(GRCError):
    status_code = 409
    default_detail = "Conflict"


async def _grc_error_handler(request: Request, exc: GRCError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def _db_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GRCError, _grc_error_handler)
    app.add_exception_handler(SQLAlchemyError, _db_error_handler)
