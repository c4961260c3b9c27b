"""FastAPI application entrypoint for the top-up service."""

from fastapi import FastAPI

from .api.v1.router import api_router
from .core.logging_config import setup_logging
from .jobs import register_scheduler


def create_app(*, with_scheduler: bool = True) -> FastAPI:
    """Instantiate and configure the FastAPI application."""
    setup_logging()
    app = FastAPI(title="Top-up API", version="0.1.0")
    app.include_router(api_router, prefix="/api/v1")
    if with_scheduler:
        register_scheduler(app)
    return app


app = create_app()
