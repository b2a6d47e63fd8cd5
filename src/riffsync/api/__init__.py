"""HTTP API: routers, schemas, dependency wiring and exception handlers."""

from riffsync.api.exception_handlers import register_exception_handlers
from riffsync.api.routers import api_router

__all__ = ["api_router", "register_exception_handlers"]
