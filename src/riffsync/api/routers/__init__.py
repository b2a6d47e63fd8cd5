"""API router initialization."""

from fastapi import APIRouter

from riffsync.api.routers import sync

# Mounted at /api in main.py.
api_router = APIRouter()

api_router.include_router(sync.router, tags=["Sync"])

__all__ = ["api_router"]
