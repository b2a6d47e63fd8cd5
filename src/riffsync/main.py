"""FastAPI application factory.

Run with ``uvicorn riffsync.main:app`` or ``uvicorn --factory riffsync.main:create_app``.
"""

from fastapi import FastAPI

from riffsync import __version__
from riffsync.api import api_router, register_exception_handlers
from riffsync.config import Settings
from riffsync.infrastructure.lifecycle import lifespan
from riffsync.infrastructure.observability.middleware import RequestLoggingMiddleware


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the application.

    Args:
        settings: Explicit settings (tests); the lifespan falls back to the
            cached environment settings when None
    """
    app = FastAPI(
        title="riffsync",
        version=__version__,
        lifespan=lifespan,
    )
    if settings is not None:
        app.state.settings = settings

    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
