"""Middleware registration."""

from fastapi import FastAPI

from levelup.config import Settings
from levelup.middleware.cors import setup_cors
from levelup.middleware.error_handler import setup_error_handlers
from levelup.middleware.logging import setup_logging
from levelup.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware in the correct order.

    Starlette executes middleware in reverse-add order (last added = outermost),
    so CORS is added last to wrap every error response.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
