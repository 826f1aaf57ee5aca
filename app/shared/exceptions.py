"""Custom exception hierarchy and handlers."""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    status_code = 400
    code = "app_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class UnauthenticatedException(AppException):
    """Raised when request carries no valid principal."""

    status_code = 401
    code = "unauthenticated"


class NotFoundException(AppException):
    """Raised when entity is not found."""

    status_code = 404
    code = "not_found"


class ConflictException(AppException):
    """Raised when entity conflicts with current state."""

    status_code = 409
    code = "conflict"


class SlotUnavailableException(ConflictException):
    """Raised when the requested time overlaps a scheduled booking."""

    code = "slot_unavailable"


class BusinessRuleException(AppException):
    """Raised when business rule validation fails."""

    status_code = 422
    code = "business_rule_violation"


class InvalidPayloadException(BusinessRuleException):
    """Raised when an action payload fails validation."""

    code = "validation_error"


class IneligibleException(BusinessRuleException):
    """Raised when student is not eligible for the requested lesson."""

    code = "ineligible"


class InvalidLessonTypeException(BusinessRuleException):
    """Raised for lesson types the pricing rules do not know."""

    code = "invalid_lesson_type"


class InvalidActionException(AppException):
    """Raised for unknown booking actions."""

    status_code = 400
    code = "invalid_action"


class CalendarException(AppException):
    """Raised when the calendar service rejects or fails a request."""

    status_code = 502
    code = "calendar_error"


class PersistenceException(AppException):
    """Raised when the booking ledger write fails."""

    status_code = 500
    code = "persistence_error"


def _failure(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"code": code, "message": message}},
    )


async def app_exception_handler(_: Request, exc: AppException) -> JSONResponse:
    """Handle custom domain exceptions."""
    return _failure(exc.status_code, exc.code, exc.message)


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions in unified shape."""
    return _failure(exc.status_code, "http_error", str(exc.detail))


async def validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request payload validation errors in unified shape."""
    first_error = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first_error.get("loc", ()))
    message = first_error.get("msg", "Invalid request")
    return _failure(422, "validation_error", f"{location}: {message}" if location else message)


async def unhandled_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception("Unhandled error: %s", exc)
    return _failure(500, "internal_error", "Internal server error")


def register_exception_handlers(app) -> None:
    """Register global exception handlers."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
