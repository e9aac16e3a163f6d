"""Mapping of notification domain errors to HTTP responses."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from infrastructure.logging import get_module_logger
from infrastructure.notifications import (
    InvalidStatusTransitionError,
    NoEligibleChannelError,
    NotFoundOrForbiddenError,
    NotificationError,
    ScheduleInPastError,
    TemplateNotFoundError,
)

logger = get_module_logger()

ERROR_STATUS_CODES = {
    NotFoundOrForbiddenError: 404,
    NoEligibleChannelError: 422,
    TemplateNotFoundError: 422,
    ScheduleInPastError: 422,
    InvalidStatusTransitionError: 409,
}


def status_code_for(exc: NotificationError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return 400


async def notification_error_handler(request: Request, exc: Exception):
    """Translate a NotificationError into a JSON error response."""
    status_code = status_code_for(exc) if isinstance(exc, NotificationError) else 500
    logger.info(
        "notification_request_rejected",
        path=request.url.path,
        error_type=type(exc).__name__,
        status_code=status_code,
    )
    return JSONResponse(
        status_code=status_code,
        content={"message": str(exc), "error": type(exc).__name__},
    )


def setup_error_handlers(app: FastAPI):
    """
    Register domain error handlers on the FastAPI application.
    """
    app.add_exception_handler(NotificationError, notification_error_handler)
