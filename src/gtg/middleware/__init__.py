"""Middleware registration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gtg.config import Settings
from gtg.middleware.error_handler import setup_error_handlers
from gtg.middleware.logging import setup_logging
from gtg.middleware.rate_limit import RateLimitMiddleware
from gtg.middleware.request_context import REQUEST_ID_HEADER, RequestContextMiddleware

# Readable by browser clients, including Retry-After on HTTP and event-fetch 429s
EXPOSED_HEADERS = [REQUEST_ID_HEADER, "Retry-After", "X-RateLimit-Remaining", "X-RateLimit-Limit"]
ALLOWED_METHODS = ["GET", "POST", "PATCH", "DELETE", "OPTIONS"]


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware.

    Starlette runs middleware in reverse-add order, so CORS is added last to
    wrap the 429 responses produced further in.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=ALLOWED_METHODS,
        allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
        expose_headers=EXPOSED_HEADERS,
    )
