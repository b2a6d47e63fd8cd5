"""Configuration module for riffsync."""

from .settings import (
    ContentFetchSettings,
    DatabaseSettings,
    MediaSearchSettings,
    Settings,
    SyncSettings,
    get_settings,
)

__all__ = [
    "Settings",
    "DatabaseSettings",
    "ContentFetchSettings",
    "MediaSearchSettings",
    "SyncSettings",
    "get_settings",
]
