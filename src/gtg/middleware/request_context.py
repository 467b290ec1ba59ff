"""Per-request logging context: request id, route, caller and timing."""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-Id"

# Health checks are not access-logged
_QUIET_PATHS = frozenset({"/health", "/ready"})


def bind_caller(request: Request, user_id: uuid.UUID) -> None:
    """Attach the authenticated caller to the request and to later log lines."""
    request.state.user_id = str(user_id)
    structlog.contextvars.bind_contextvars(user_id=str(user_id))


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a fresh structlog context per request and log its outcome.

    The request id is taken from ``X-Request-Id`` or generated, and echoed
    back. The caller's user id is read from ``request.state`` after the
    endpoint ran, since context variables set inside the endpoint do not
    flow back out to the middleware.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        started = time.perf_counter()
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id

        if request.url.path not in _QUIET_PATHS:
            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
                user_id=getattr(request.state, "user_id", None),
            )
        return response
