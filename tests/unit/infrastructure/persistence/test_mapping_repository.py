"""Tests for MappingRepository against a real SQLite file.

Hey future me - these run on aiosqlite with foreign keys ON, the same setup as
production, so the cascade from album mapping to track mappings is the real
database behaviour and not an ORM emulation.
"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

from riffsync.config import DatabaseSettings
from riffsync.domain.entities import FallbackMapping, TrackMapping
from riffsync.domain.exceptions import EntityNotFoundException
from riffsync.infrastructure.persistence import Database, MappingRepository


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    db = Database(DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'riffsync.db'}"))
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
def repository(database: Database) -> MappingRepository:
    return MappingRepository(database)


def _track_mapping(
    album_mapping_id: str,
    track_id: str,
    file_id: int,
    position: int | None = None,
    direct_link: str | None = None,
) -> TrackMapping:
    return TrackMapping(
        album_mapping_id=album_mapping_id,
        track_id=track_id,
        file_id=file_id,
        file_path=f"Album/{file_id:02d}.flac",
        file_name=f"{file_id:02d}.flac",
        direct_link=direct_link,
        track_title=f"Track {track_id}",
        track_position=position,
    )


class TestAlbumMappings:
    """Test album -> bundle mappings."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, repository: MappingRepository) -> None:
        created = await repository.create_album_mapping(
            "album-1", "bundle-1", "Abbey Road [FLAC]", "Abbey Road", "The Beatles"
        )

        loaded = await repository.get_album_mapping("album-1")

        assert loaded is not None
        assert loaded.id == created.id
        assert loaded.bundle_id == "bundle-1"
        assert loaded.artist_name == "The Beatles"
        assert loaded.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_get_unknown_album(self, repository: MappingRepository) -> None:
        assert await repository.get_album_mapping("nope") is None

    @pytest.mark.asyncio
    async def test_replace_cascades_to_track_mappings(
        self, repository: MappingRepository
    ) -> None:
        """Re-pointing an album at another bundle drops every old track mapping."""
        old = await repository.create_album_mapping("album-1", "bundle-1", "Old")
        await repository.upsert_track_mapping(_track_mapping(old.id, "t1", 1, direct_link="https://x/1"))
        await repository.upsert_track_mapping(_track_mapping(old.id, "t2", 2))

        new = await repository.replace_album_mapping("album-1", "bundle-2", "New")

        assert new.id != old.id
        assert (await repository.get_album_mapping("album-1")).bundle_id == "bundle-2"
        assert await repository.get_track_mappings(["t1", "t2"]) == []
        assert await repository.get_resolved_track_ids(["t1", "t2"]) == set()

    @pytest.mark.asyncio
    async def test_replace_without_existing_mapping(self, repository: MappingRepository) -> None:
        mapping = await repository.replace_album_mapping("album-9", "bundle-9", "Fresh")
        assert (await repository.get_album_mapping("album-9")).id == mapping.id


class TestTrackMappings:
    """Test track -> file mappings."""

    @pytest.mark.asyncio
    async def test_upsert_overwrites_by_track_id(self, repository: MappingRepository) -> None:
        album = await repository.create_album_mapping("album-1", "bundle-1", "B")
        await repository.upsert_track_mapping(_track_mapping(album.id, "t1", 1))
        await repository.upsert_track_mapping(
            _track_mapping(album.id, "t1", 7, direct_link="https://cdn/7.flac")
        )

        mappings = await repository.get_track_mappings(["t1"])

        assert len(mappings) == 1
        assert mappings[0].file_id == 7
        assert mappings[0].direct_link == "https://cdn/7.flac"

    @pytest.mark.asyncio
    async def test_set_direct_link(self, repository: MappingRepository) -> None:
        album = await repository.create_album_mapping("album-1", "bundle-1", "B")
        await repository.upsert_track_mapping(_track_mapping(album.id, "t1", 1))

        await repository.set_direct_link("t1", "https://cdn/1.flac")

        assert (await repository.get_track_mappings(["t1"]))[0].direct_link == "https://cdn/1.flac"

    @pytest.mark.asyncio
    async def test_set_direct_link_unknown_track(self, repository: MappingRepository) -> None:
        with pytest.raises(EntityNotFoundException):
            await repository.set_direct_link("ghost", "https://cdn/x.flac")

    @pytest.mark.asyncio
    async def test_album_tracks_ordered_by_position(self, repository: MappingRepository) -> None:
        album = await repository.create_album_mapping("album-1", "bundle-1", "B")
        await repository.upsert_track_mapping(_track_mapping(album.id, "t3", 3, position=3))
        await repository.upsert_track_mapping(_track_mapping(album.id, "t1", 1, position=1))
        await repository.upsert_track_mapping(_track_mapping(album.id, "t2", 2, position=2))

        mappings = await repository.get_track_mappings_for_album(album.id)

        assert [m.track_id for m in mappings] == ["t1", "t2", "t3"]


class TestResolvedTracks:
    """Test the already-synced lookup."""

    @pytest.mark.asyncio
    async def test_link_or_fallback_counts_as_resolved(
        self, repository: MappingRepository
    ) -> None:
        """A track mapping without a link is NOT resolved; any fallback mapping is."""
        album = await repository.create_album_mapping("album-1", "bundle-1", "B")
        await repository.upsert_track_mapping(_track_mapping(album.id, "t1", 1, direct_link="https://x/1"))
        await repository.upsert_track_mapping(_track_mapping(album.id, "t2", 2))
        await repository.upsert_fallback_mapping(
            FallbackMapping(track_id="t3", external_reference_id="abc", title="Song")
        )

        resolved = await repository.get_resolved_track_ids(["t1", "t2", "t3", "t4"])

        assert resolved == {"t1", "t3"}

    @pytest.mark.asyncio
    async def test_empty_input(self, repository: MappingRepository) -> None:
        assert await repository.get_resolved_track_ids([]) == set()


class TestFallbackMappings:
    @pytest.mark.asyncio
    async def test_upsert_overwrites(self, repository: MappingRepository) -> None:
        await repository.upsert_fallback_mapping(
            FallbackMapping(track_id="t1", external_reference_id="old", title="Old")
        )
        await repository.upsert_fallback_mapping(
            FallbackMapping(
                track_id="t1",
                external_reference_id="new",
                title="New",
                duration_seconds=200,
                uploader_label="Topic",
            )
        )

        mappings = await repository.get_fallback_mappings(["t1"])

        assert mappings == [
            FallbackMapping(
                track_id="t1",
                external_reference_id="new",
                title="New",
                duration_seconds=200,
                uploader_label="Topic",
            )
        ]

    @pytest.mark.asyncio
    async def test_fallback_survives_album_replace(self, repository: MappingRepository) -> None:
        """Fallback mappings are independent of album mappings."""
        await repository.create_album_mapping("album-1", "bundle-1", "B")
        await repository.upsert_fallback_mapping(
            FallbackMapping(track_id="t1", external_reference_id="abc", title="Song")
        )

        await repository.replace_album_mapping("album-1", "bundle-2", "B2")

        assert await repository.get_resolved_track_ids(["t1"]) == {"t1"}
