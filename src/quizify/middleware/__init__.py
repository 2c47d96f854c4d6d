"""Middleware and exception handler registration."""

from fastapi import FastAPI

from quizify.config import Settings
from quizify.middleware.cors import setup_cors
from quizify.middleware.error_handler import setup_error_handlers
from quizify.middleware.logging import setup_logging
from quizify.middleware.rate_limit import RateLimitMiddleware
from quizify.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register middleware; the last one added is the outermost.

    CORS goes last so 429 responses from the rate limiter still carry CORS headers.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
