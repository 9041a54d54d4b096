# app/core/errors.py
"""
Application error taxonomy and the FastAPI handlers that render it.

Every error carries a category, an HTTP status and a public message. The
internal message and details are logged; only the public message reaches
the client, so classification detail never leaks through the API.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorCategory:
    """Error categories for structured error responses"""
    VALIDATION = "validation_error"
    PRICING = "pricing_error"
    DATABASE = "database_error"
    EXTERNAL_SERVICE = "external_service_error"
    NOT_FOUND = "not_found_error"
    CONFLICT = "conflict_error"
    FORBIDDEN = "authorization_error"
    INTERNAL = "internal_error"


class AppError(Exception):
    """Base application error with structured information"""

    public_message = "An unexpected error occurred"

    def __init__(
        self,
        message: str,
        category: str = ErrorCategory.INTERNAL,
        status_code: int = 500,
        details: Optional[dict] = None,
        retry_after: Optional[int] = None,
        public_message: Optional[str] = None,
    ):
        self.message = message
        self.category = category
        self.status_code = status_code
        self.details = details or {}
        self.retry_after = retry_after
        if public_message is not None:
            self.public_message = public_message
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return self.retry_after is not None


class PricingRuleError(AppError):
    """A price rule definition is structurally invalid."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            message=message,
            category=ErrorCategory.PRICING,
            status_code=500,
            details=details,
            public_message="Pricing is temporarily unavailable for this area",
        )


class PriceNotApplicableError(AppError):
    """The rule is valid but cannot price this selection."""

    def __init__(self, message: str = "No price applies to this selection"):
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            status_code=400,
            public_message="Pricing unavailable for this selection",
        )


class OccupancyQueryError(AppError):
    """Occupancy could not be computed; capacity must be treated as unknown."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            message=message,
            category=ErrorCategory.DATABASE,
            status_code=503,
            details=details,
            retry_after=30,
            public_message="Booking could not be processed, please retry",
        )


class BookingPersistenceError(AppError):
    """A write in the confirmation flow failed and was rolled back."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            message=message,
            category=ErrorCategory.DATABASE,
            status_code=503,
            details=details,
            retry_after=30,
            public_message="Booking could not be processed, please retry",
        )


class InvalidBookingError(AppError):
    def __init__(self, message: str):
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            status_code=400,
            public_message=message,
        )


class AreaFullError(AppError):
    """No room left in the window and the area does not take overflow requests."""

    def __init__(self, area_id: str, occupancy: int, capacity: int):
        super().__init__(
            message=f"Area {area_id} is full: {occupancy}/{capacity} guests",
            category=ErrorCategory.CONFLICT,
            status_code=409,
            details={"area_id": area_id, "occupancy": occupancy, "capacity": capacity},
            public_message="This area is fully booked for this time window",
        )


class NotFoundError(AppError):
    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            message=f"{resource} {resource_id} not found",
            category=ErrorCategory.NOT_FOUND,
            status_code=404,
            details={"resource_id": resource_id},
            public_message=f"{resource} not found",
        )


class BookingNotFoundError(NotFoundError):
    def __init__(self, booking_id: str):
        super().__init__("Booking", booking_id)


class AreaNotFoundError(NotFoundError):
    def __init__(self, area_id: str):
        super().__init__("Area", area_id)


class PriceRuleNotFoundError(NotFoundError):
    def __init__(self, rule_id: str):
        super().__init__("Price rule", rule_id)


class BookingStateError(AppError):
    """A booking is not in a state that allows the requested change."""

    def __init__(self, booking_id: str, status: str, action: str):
        super().__init__(
            message=f"Cannot {action} booking {booking_id} in status '{status}'",
            category=ErrorCategory.CONFLICT,
            status_code=409,
            details={"status": status},
            public_message=f"Booking cannot be {action}d in its current state",
        )


class PriceRuleSupersededError(AppError):
    """An edit targeted a rule version that already has a successor."""

    def __init__(self, rule_id: str, successor_id: str):
        super().__init__(
            message=f"Price rule {rule_id} was superseded by {successor_id}",
            category=ErrorCategory.CONFLICT,
            status_code=409,
            details={"rule_id": rule_id, "successor_id": successor_id},
            public_message=f"This rule has a newer version ({successor_id}); edit that instead",
        )


class ForbiddenError(AppError):
    def __init__(self, message: str = "Not allowed to manage this resource"):
        super().__init__(
            message=message,
            category=ErrorCategory.FORBIDDEN,
            status_code=403,
            public_message=message,
        )


class PaymentProviderError(AppError):
    """The payment provider rejected or failed a request."""

    def __init__(self, code: str, message: str, retryable: bool = False):
        self.code = code
        super().__init__(
            message=message,
            category=ErrorCategory.EXTERNAL_SERVICE,
            status_code=502,
            details={"code": code},
            retry_after=10 if retryable else None,
            public_message="Payment service temporarily unavailable",
        )


def _error_body(category: str, message: str, request: Request) -> dict:
    return {
        "error": {
            "category": category,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "path": request.url.path,
        }
    }


async def handle_app_error(request: Request, error: AppError) -> JSONResponse:
    """Render a structured application error."""
    log = logger.error if error.status_code >= 500 else logger.warning
    log(
        f"{error.category} on {request.method} {request.url.path}: {error.message}",
        extra={"category": error.category, "details": error.details},
    )

    headers = {}
    if error.retry_after:
        headers["Retry-After"] = str(error.retry_after)

    return JSONResponse(
        status_code=error.status_code,
        content=_error_body(error.category, error.public_message, request),
        headers=headers,
    )


async def handle_unexpected_error(request: Request, error: Exception) -> JSONResponse:
    """Catch-all: log the traceback, return a generic message."""
    logger.exception(
        f"Unhandled error on {request.method} {request.url.path}: {type(error).__name__}"
    )
    return JSONResponse(
        status_code=500,
        content=_error_body(ErrorCategory.INTERNAL, AppError.public_message, request),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, handle_app_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
