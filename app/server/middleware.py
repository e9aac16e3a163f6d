from starlette.middleware.base import BaseHTTPMiddleware

from infrastructure.logging import bind_request_context, get_correlation_id

CORRELATION_HEADER = "X-Correlation-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a correlation id to every log written while serving a request.

    The id comes from the ``X-Correlation-ID`` header when the caller sends
    one and is echoed back on the response.
    """

    async def dispatch(self, request, call_next):
        with bind_request_context(
            correlation_id=request.headers.get(CORRELATION_HEADER),
            recipient_id=request.headers.get("X-Recipient-ID"),
            request_path=request.url.path,
            request_method=request.method,
        ):
            correlation_id = get_correlation_id()
            response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response
