"""Middleware registration."""

from fastapi import FastAPI

from mastery.config import Settings
from mastery.middleware.error_handler import setup_error_handlers
from mastery.middleware.logging import setup_logging
from mastery.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure logging, register error handlers and request-scoped context."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
