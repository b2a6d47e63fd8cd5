"""Persistence layer: ORM models, session management, repositories."""

from riffsync.infrastructure.persistence.database import Database
from riffsync.infrastructure.persistence.models import (
    AlbumBundleMappingModel,
    Base,
    FallbackTrackMappingModel,
    TrackFileMappingModel,
)
from riffsync.infrastructure.persistence.repositories import MappingRepository
from riffsync.infrastructure.persistence.retry import with_db_retry

__all__ = [
    "AlbumBundleMappingModel",
    "Base",
    "Database",
    "FallbackTrackMappingModel",
    "MappingRepository",
    "TrackFileMappingModel",
    "with_db_retry",
]
