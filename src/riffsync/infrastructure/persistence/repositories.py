"""Repository implementations for the mapping store."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from riffsync.domain.entities import AlbumMapping, FallbackMapping, TrackMapping
from riffsync.domain.exceptions import EntityNotFoundException
from riffsync.domain.ports import IMappingRepository

from .database import Database
from .models import (
    AlbumBundleMappingModel,
    FallbackTrackMappingModel,
    TrackFileMappingModel,
    ensure_utc_aware,
    utc_now,
)
from .retry import with_db_retry

logger = logging.getLogger(__name__)


def _album_to_entity(model: AlbumBundleMappingModel) -> AlbumMapping:
    return AlbumMapping(
        id=model.id,
        album_id=model.album_id,
        bundle_id=model.bundle_id,
        bundle_title=model.bundle_title,
        album_title=model.album_title,
        artist_name=model.artist_name,
        created_at=ensure_utc_aware(model.created_at),
    )


def _track_to_entity(model: TrackFileMappingModel) -> TrackMapping:
    return TrackMapping(
        album_mapping_id=model.album_mapping_id,
        track_id=model.track_id,
        file_id=model.file_id,
        file_path=model.file_path,
        file_name=model.file_name,
        direct_link=model.direct_link,
        track_title=model.track_title,
        track_position=model.track_position,
    )


def _fallback_to_entity(model: FallbackTrackMappingModel) -> FallbackMapping:
    return FallbackMapping(
        track_id=model.track_id,
        external_reference_id=model.external_reference_id,
        title=model.title,
        duration_seconds=model.duration_seconds,
        uploader_label=model.uploader_label,
    )


def _upsert(session: AsyncSession, model: type[Any]) -> Any:
    """Dialect-specific INSERT supporting ON CONFLICT."""
    if session.get_bind().dialect.name == "postgresql":
        return postgresql.insert(model)
    return sqlite.insert(model)


class MappingRepository(IMappingRepository):
    """Album/track/fallback mappings on top of async SQLAlchemy.

    Hey future me - unlike request-scoped repositories this one opens a short
    transaction per call. A sync run lives for minutes (polling, pacing) and
    must not hold a SQLite write lock for that long. Each write is durable as
    soon as the call returns, which is also what makes a crashed run resumable:
    the next run's already-synced check sees everything written so far.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def get_album_mapping(self, album_id: str) -> AlbumMapping | None:
        async with self._db.session_scope() as session:
            result = await session.execute(
                select(AlbumBundleMappingModel).where(
                    AlbumBundleMappingModel.album_id == album_id
                )
            )
            model = result.scalar_one_or_none()
            return _album_to_entity(model) if model else None

    @with_db_retry(max_attempts=3)
    async def create_album_mapping(
        self,
        album_id: str,
        bundle_id: str,
        bundle_title: str,
        album_title: str = "",
        artist_name: str = "",
    ) -> AlbumMapping:
        async with self._db.session_scope() as session:
            model = AlbumBundleMappingModel(
                album_id=album_id,
                bundle_id=bundle_id,
                bundle_title=bundle_title,
                album_title=album_title,
                artist_name=artist_name,
            )
            session.add(model)
            await session.flush()
            return _album_to_entity(model)

    @with_db_retry(max_attempts=3)
    async def replace_album_mapping(
        self,
        album_id: str,
        bundle_id: str,
        bundle_title: str,
        album_title: str = "",
        artist_name: str = "",
    ) -> AlbumMapping:
        """Delete the album's mapping (its track mappings cascade) and insert a new one."""
        async with self._db.session_scope() as session:
            deleted = await session.execute(
                delete(AlbumBundleMappingModel).where(
                    AlbumBundleMappingModel.album_id == album_id
                )
            )
            if deleted.rowcount:
                logger.info(f"Replacing bundle mapping of album {album_id}")

            model = AlbumBundleMappingModel(
                album_id=album_id,
                bundle_id=bundle_id,
                bundle_title=bundle_title,
                album_title=album_title,
                artist_name=artist_name,
            )
            session.add(model)
            await session.flush()
            return _album_to_entity(model)

    @with_db_retry(max_attempts=3)
    async def upsert_track_mapping(self, mapping: TrackMapping) -> None:
        async with self._db.session_scope() as session:
            stmt = _upsert(session, TrackFileMappingModel).values(
                album_mapping_id=mapping.album_mapping_id,
                track_id=mapping.track_id,
                track_title=mapping.track_title,
                track_position=mapping.track_position,
                file_id=mapping.file_id,
                file_path=mapping.file_path,
                file_name=mapping.file_name,
                direct_link=mapping.direct_link,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["track_id"],
                set_={
                    "album_mapping_id": stmt.excluded.album_mapping_id,
                    "track_title": stmt.excluded.track_title,
                    "track_position": stmt.excluded.track_position,
                    "file_id": stmt.excluded.file_id,
                    "file_path": stmt.excluded.file_path,
                    "file_name": stmt.excluded.file_name,
                    "direct_link": stmt.excluded.direct_link,
                    "updated_at": utc_now(),
                },
            )
            await session.execute(stmt)

    @with_db_retry(max_attempts=3)
    async def set_direct_link(self, track_id: str, direct_link: str) -> None:
        async with self._db.session_scope() as session:
            result = await session.execute(
                update(TrackFileMappingModel)
                .where(TrackFileMappingModel.track_id == track_id)
                .values(direct_link=direct_link, updated_at=utc_now())
            )
            if not result.rowcount:
                raise EntityNotFoundException("TrackMapping", track_id)

    @with_db_retry(max_attempts=3)
    async def upsert_fallback_mapping(self, mapping: FallbackMapping) -> None:
        async with self._db.session_scope() as session:
            stmt = _upsert(session, FallbackTrackMappingModel).values(
                track_id=mapping.track_id,
                external_reference_id=mapping.external_reference_id,
                title=mapping.title,
                duration_seconds=mapping.duration_seconds,
                uploader_label=mapping.uploader_label,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["track_id"],
                set_={
                    "external_reference_id": stmt.excluded.external_reference_id,
                    "title": stmt.excluded.title,
                    "duration_seconds": stmt.excluded.duration_seconds,
                    "uploader_label": stmt.excluded.uploader_label,
                    "updated_at": utc_now(),
                },
            )
            await session.execute(stmt)

    async def get_resolved_track_ids(self, track_ids: list[str]) -> set[str]:
        if not track_ids:
            return set()
        async with self._db.session_scope() as session:
            primary = await session.execute(
                select(TrackFileMappingModel.track_id).where(
                    TrackFileMappingModel.track_id.in_(track_ids),
                    TrackFileMappingModel.direct_link.is_not(None),
                )
            )
            fallback = await session.execute(
                select(FallbackTrackMappingModel.track_id).where(
                    FallbackTrackMappingModel.track_id.in_(track_ids)
                )
            )
            return set(primary.scalars().all()) | set(fallback.scalars().all())

    async def get_track_mappings(self, track_ids: list[str]) -> list[TrackMapping]:
        if not track_ids:
            return []
        async with self._db.session_scope() as session:
            result = await session.execute(
                select(TrackFileMappingModel).where(
                    TrackFileMappingModel.track_id.in_(track_ids)
                )
            )
            return [_track_to_entity(m) for m in result.scalars().all()]

    async def get_track_mappings_for_album(
        self, album_mapping_id: str
    ) -> list[TrackMapping]:
        async with self._db.session_scope() as session:
            result = await session.execute(
                select(TrackFileMappingModel)
                .where(TrackFileMappingModel.album_mapping_id == album_mapping_id)
                .order_by(
                    TrackFileMappingModel.track_position,
                    TrackFileMappingModel.file_name,
                )
            )
            return [_track_to_entity(m) for m in result.scalars().all()]

    async def get_fallback_mappings(self, track_ids: list[str]) -> list[FallbackMapping]:
        if not track_ids:
            return []
        async with self._db.session_scope() as session:
            result = await session.execute(
                select(FallbackTrackMappingModel).where(
                    FallbackTrackMappingModel.track_id.in_(track_ids)
                )
            )
            return [_fallback_to_entity(m) for m in result.scalars().all()]


__all__ = ["MappingRepository"]
