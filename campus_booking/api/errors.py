"""
Exception handlers mapping engine errors to HTTP responses.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from campus_booking.core.exceptions import BookingEngineError
from campus_booking.core.logging import get_logger

logger = get_logger(__name__)


async def booking_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, BookingEngineError) else BookingEngineError(str(exc))
    return JSONResponse(status_code=error.status_code, content={"detail": error.message})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Storage and other infrastructure failures: the transaction is already
    # rolled back, the caller only gets an opaque 500
    logger.error("unhandled_error", error_type=type(exc).__name__, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingEngineError, booking_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
