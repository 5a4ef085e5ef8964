"""
Domain errors for Tix and their HTTP translation.

Every error carries a human-readable message, an HTTP status code and a
stable machine-readable ``code``. API responses render as
``{"detail": message, "code": code}``.
"""

import logging
from typing import Any, Callable, Dict, Optional, Type

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class TixError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "tix_error"
    default_message: str = "Request could not be processed"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        super().__init__(self.message)


class ValidationError(TixError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"
    default_message = "Invalid request"


class Unauthorized(TixError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"
    default_message = "Unauthorized"


class Forbidden(TixError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_message = "Access denied"


class NotFound(TixError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Resource not found"


class EventNotFound(NotFound):
    code = "event_not_found"
    default_message = "Event not found"


class TicketTypeNotFound(NotFound):
    code = "ticket_type_not_found"
    default_message = "Ticket type not found"


class BookingNotFound(NotFound):
    code = "booking_not_found"
    default_message = "Booking not found"


class InsufficientInventory(TixError):
    status_code = status.HTTP_409_CONFLICT
    code = "insufficient_inventory"
    default_message = "Not enough tickets available"


class InvalidBookingState(TixError):
    status_code = status.HTTP_409_CONFLICT
    code = "invalid_booking_state"
    default_message = "Booking is not in a state that allows this operation"


class NotConfirmed(TixError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "booking_not_confirmed"
    default_message = "Ticket is only available for confirmed bookings"


class PaymentProcessingError(TixError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "payment_processing_error"
    default_message = "Payment processor error"


class ImageUploadError(TixError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "image_upload_error"
    default_message = "Image upload failed"


async def tix_error_handler(request: Request, exc: TixError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "%s on %s %s: %s",
        exc.__class__.__name__,
        request.method,
        request.url.path,
        exc.message,
        extra={"status_code": exc.status_code, "code": exc.code},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": jsonable_encoder(exc.errors()),
            "code": ValidationError.code,
        },
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception occurred: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error", "code": "internal_error"},
    )


EXCEPTION_HANDLERS: Dict[Type[Exception], Callable[..., Any]] = {
    TixError: tix_error_handler,
    RequestValidationError: request_validation_error_handler,
    Exception: unhandled_error_handler,
}
