"""Request and notification context binding for structured logging.

Binds request-scoped or notification-scoped values to structlog's context
variables so every log entry written inside the block carries them. The
dispatch workers use ``bind_notification_context`` so channel send logs can
be traced back to the notification and recipient that produced them.

Usage:
    from infrastructure.logging import bind_request_context

    with bind_request_context(correlation_id="req-123", recipient_id="u-1"):
        logger.info("processing_request")

Dependencies:
    - structlog.contextvars
"""

import uuid
from contextlib import contextmanager
from typing import Optional, Any, Generator
import structlog


@contextmanager
def _bound(context: dict[str, Any]) -> Generator[None, None, None]:
    structlog.contextvars.bind_contextvars(**context)
    try:
        yield
    finally:
        structlog.contextvars.unbind_contextvars(*context.keys())


@contextmanager
def bind_request_context(
    correlation_id: Optional[str] = None,
    recipient_id: Optional[str] = None,
    request_path: Optional[str] = None,
    request_method: Optional[str] = None,
    **extra_context: Any,
) -> Generator[None, None, None]:
    """Bind request-scoped context to all logs within the context manager.

    Args:
        correlation_id: Unique request identifier. Auto-generated if not provided.
        recipient_id: Recipient the request acts on behalf of (if known).
        request_path: HTTP request path (e.g., "/api/v1/notifications").
        request_method: HTTP method (e.g., "GET", "POST").
        **extra_context: Additional key-value pairs to include in logs.

    Yields:
        None - context is automatically bound to structlog's context vars.

    Example:
        @app.middleware("http")
        async def logging_middleware(request: Request, call_next):
            with bind_request_context(
                correlation_id=request.headers.get("X-Correlation-ID"),
                request_path=request.url.path,
                request_method=request.method,
            ):
                return await call_next(request)
    """
    context: dict[str, Any] = {"correlation_id": correlation_id or str(uuid.uuid4())}

    if recipient_id is not None:
        context["recipient_id"] = recipient_id

    if request_path is not None:
        context["request_path"] = request_path

    if request_method is not None:
        context["request_method"] = request_method

    context.update(extra_context)

    with _bound(context):
        yield


@contextmanager
def bind_notification_context(
    notification_id: str,
    recipient_id: Optional[str] = None,
    **extra_context: Any,
) -> Generator[None, None, None]:
    """Bind a notification's identity to all logs within the block.

    Used by background dispatch, where there is no HTTP request to inherit
    a correlation id from.

    Example:
        with bind_notification_context(notification.id, notification.recipient_id):
            dispatcher.dispatch(notification)
    """
    context: dict[str, Any] = {"notification_id": notification_id}
    if recipient_id is not None:
        context["recipient_id"] = recipient_id
    context.update(extra_context)

    with _bound(context):
        yield


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from the logging context.

    Returns:
        The correlation ID if set, None otherwise.
    """
    ctx = structlog.contextvars.get_contextvars()
    return ctx.get("correlation_id")


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID in the current logging context."""
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


def clear_request_context() -> None:
    """Clear all request-scoped context from the logging context.

    Should be called at the end of request processing to prevent
    context leakage between requests.
    """
    structlog.contextvars.clear_contextvars()
