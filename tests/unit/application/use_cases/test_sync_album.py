"""Tests for SyncAlbumUseCase.

Runs the real pipeline, resolver tiers and status repository; only the
provider-facing ports (source resolver, fallback resolver) and the mapping
repository are mocked.
"""

from unittest.mock import AsyncMock

import pytest

from riffsync.application.services import (
    FallbackSearchResolver,
    PrimaryBundleResolver,
    TrackStatusRepository,
)
from riffsync.application.services.sync_pipeline import SyncPipeline
from riffsync.application.use_cases import SyncAlbumRequest, SyncAlbumUseCase
from riffsync.application.use_cases.sync_album import album_key
from riffsync.domain.entities import (
    AlbumMapping,
    BundleSearchResult,
    CandidateFile,
    CanonicalTrack,
    FallbackReference,
    ResolutionSource,
    ResolveResponse,
    ResolveStatus,
    RunOutcome,
    TrackMapping,
    TrackSyncState,
)
from riffsync.domain.exceptions import PreconditionError, ProviderError
from riffsync.domain.ports import (
    IFallbackResolver,
    IMappingRepository,
    ISourceResolver,
    ISyncReporter,
    PollResult,
)
from riffsync.infrastructure.rate_limiter import FixedIntervalPacer

# Hey future me - these tests walk whole album runs:
# 1. Exact-match bundle -> every track primary, one file per track
# 2. No bundle -> fallback called once per track
# 3. Downloading then stalled -> fallback tier, then failed if it finds nothing
# 4. Already-synced tracks -> no provider call at all
# 5. Preconditions fail before any I/O

TITLES = ["Come Together", "Something", "Maxwell's Silver Hammer", "Oh! Darling", "Octopus's Garden"]


def _tracks(count: int = 5) -> list[CanonicalTrack]:
    return [
        CanonicalTrack(id=f"t{i}", title=TITLES[i - 1], position=i, album_id="album-1")
        for i in range(1, count + 1)
    ]


def _bundle(titles: list[str]) -> BundleSearchResult:
    return BundleSearchResult(
        bundle_id="bundle-1",
        title="The Beatles - Abbey Road [FLAC]",
        candidate_files=[
            CandidateFile(
                id=100 + i,
                filename=f"{i:02d} - {title}.flac",
                path=f"Abbey Road/{i:02d} - {title}.flac",
                parent_bundle_id="bundle-1",
            )
            for i, title in enumerate(titles, start=1)
        ],
    )


def _ready(_credential: str, _bundle_id: str, file_ids: list[int]) -> ResolveResponse:
    return ResolveResponse(status=ResolveStatus.READY, streams=(f"https://cdn/{file_ids[0]}.flac",))


@pytest.fixture
def source() -> AsyncMock:
    source = AsyncMock(spec=ISourceResolver)
    source.search.return_value = [_bundle(TITLES)]
    source.select_and_resolve.side_effect = _ready
    return source


@pytest.fixture
def repository() -> AsyncMock:
    repository = AsyncMock(spec=IMappingRepository)
    repository.get_resolved_track_ids.return_value = set()
    repository.get_album_mapping.return_value = None
    repository.create_album_mapping.return_value = AlbumMapping(
        id="map-1", album_id="album-1", bundle_id="bundle-1", bundle_title="Abbey Road"
    )
    return repository


@pytest.fixture
def fallback() -> AsyncMock:
    fallback = AsyncMock(spec=IFallbackResolver)
    fallback.search.return_value = None
    return fallback


@pytest.fixture
def status() -> TrackStatusRepository:
    return TrackStatusRepository()


@pytest.fixture
def reporter() -> AsyncMock:
    return AsyncMock(spec=ISyncReporter)


@pytest.fixture
def use_case(
    source: AsyncMock,
    repository: AsyncMock,
    fallback: AsyncMock,
    status: TrackStatusRepository,
    reporter: AsyncMock,
) -> SyncAlbumUseCase:
    pipeline = SyncPipeline(
        source,
        repository,
        status,
        [PrimaryBundleResolver(source, repository), FallbackSearchResolver(fallback)],
    )
    return SyncAlbumUseCase(
        "secret", pipeline, pacer=FixedIntervalPacer(delay_seconds=0), reporter=reporter
    )


class TestPreconditions:
    """Preconditions fail before any I/O."""

    @pytest.mark.asyncio
    async def test_missing_credential(
        self, source: AsyncMock, repository: AsyncMock, status: TrackStatusRepository
    ) -> None:
        pipeline = SyncPipeline(source, repository, status, [])
        use_case = SyncAlbumUseCase(None, pipeline)

        with pytest.raises(PreconditionError, match="credential"):
            await use_case.sync_album(_tracks(), "Abbey Road", "The Beatles")

        source.search.assert_not_awaited()
        repository.get_resolved_track_ids.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_track_list(self, use_case: SyncAlbumUseCase, source: AsyncMock) -> None:
        with pytest.raises(PreconditionError, match="empty"):
            await use_case.sync_album([], "Abbey Road", "The Beatles")

        source.search.assert_not_awaited()


class TestAlbumKey:
    def test_explicit_id_wins(self) -> None:
        assert album_key(SyncAlbumRequest(_tracks(1), "A", "B", album_id="x")) == "x"

    def test_first_track_album_id(self) -> None:
        assert album_key(SyncAlbumRequest(_tracks(1), "A", "B")) == "album-1"

    def test_derived_from_names(self) -> None:
        tracks = [CanonicalTrack(id="t1", title="Song", position=1)]
        assert album_key(SyncAlbumRequest(tracks, "Abbey Road", "The Beatles")) == (
            "the-beatles-abbey-road"
        )


class TestSyncAlbum:
    """Test whole album runs."""

    @pytest.mark.asyncio
    async def test_exact_match_bundle_syncs_every_track(
        self,
        use_case: SyncAlbumUseCase,
        source: AsyncMock,
        repository: AsyncMock,
        fallback: AsyncMock,
        status: TrackStatusRepository,
        reporter: AsyncMock,
    ) -> None:
        summary = await use_case.sync_album(_tracks(), "Abbey Road", "The Beatles")

        assert summary.outcome == RunOutcome.SUCCESS
        assert summary.synced_primary == 5
        assert summary.message == "5/5 synced"
        source.search.assert_awaited_once_with("secret", "Abbey Road The Beatles")
        repository.create_album_mapping.assert_awaited_once()

        selected = [c.args[2][0] for c in source.select_and_resolve.await_args_list]
        assert selected == [101, 102, 103, 104, 105]
        assert [m.file_id for m in summary.matches] == [101, 102, 103, 104, 105]
        assert all(m.status == TrackSyncState.SYNCED for m in summary.matches)
        assert all(m.source == ResolutionSource.PRIMARY for m in summary.matches)
        fallback.search.assert_not_awaited()

        assert all(status.is_synced(f"t{i}") for i in range(1, 6))
        reporter.on_complete.assert_awaited_once_with(summary)
        assert reporter.on_progress.await_count == 5

    @pytest.mark.asyncio
    async def test_no_bundle_uses_fallback_once_per_track(
        self,
        use_case: SyncAlbumUseCase,
        source: AsyncMock,
        fallback: AsyncMock,
        repository: AsyncMock,
    ) -> None:
        source.search.return_value = []
        fallback.search.side_effect = lambda query: FallbackReference(
            external_id=query[:8], title=query, duration_seconds=200, uploader_label="Topic"
        )

        summary = await use_case.sync_album(_tracks(3), "Abbey Road", "The Beatles")

        assert summary.outcome == RunOutcome.SUCCESS
        assert summary.synced_fallback == 3
        assert fallback.search.await_count == 3
        assert fallback.search.await_args_list[0].args == ("Come Together The Beatles",)
        assert fallback.persist.await_count == 3
        source.select_and_resolve.assert_not_awaited()
        repository.create_album_mapping.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_search_failure_counts_as_no_bundle(
        self, use_case: SyncAlbumUseCase, source: AsyncMock, fallback: AsyncMock
    ) -> None:
        source.search.side_effect = ProviderError("content_fetch", "HTTP 502")

        summary = await use_case.sync_album(_tracks(2), "Abbey Road", "The Beatles")

        assert summary.outcome == RunOutcome.FAILURE
        assert fallback.search.await_count == 2

    @pytest.mark.asyncio
    async def test_downloading_then_stalled_marks_failed(
        self,
        use_case: SyncAlbumUseCase,
        source: AsyncMock,
        repository: AsyncMock,
        fallback: AsyncMock,
        status: TrackStatusRepository,
    ) -> None:
        source.select_and_resolve.side_effect = None
        source.select_and_resolve.return_value = ResolveResponse(
            status=ResolveStatus.DOWNLOADING, progress=0
        )
        source.poll.return_value = PollResult(
            success=False, reason="stalled at 0% progress", elapsed_seconds=10.5, timed_out=True
        )
        seen_downloading: list[bool] = []
        status.subscribe(lambda snap: seen_downloading.append("t1" in snap.downloading))

        summary = await use_case.sync_album(_tracks(1), "Abbey Road", "The Beatles")

        assert summary.outcome == RunOutcome.FAILURE
        assert summary.message == "0/1 — sync failed"
        match = summary.matches[0]
        assert match.status == TrackSyncState.FAILED
        assert "stalled" in (match.error or "")
        assert any(seen_downloading)
        assert status.snapshot().status_of("t1") is None
        # The pairing is stored even though the link never came
        assert repository.upsert_track_mapping.await_args.args[0].direct_link is None
        fallback.search.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stalled_primary_recovered_by_fallback(
        self, use_case: SyncAlbumUseCase, source: AsyncMock, fallback: AsyncMock
    ) -> None:
        source.select_and_resolve.side_effect = None
        source.select_and_resolve.return_value = ResolveResponse(status=ResolveStatus.QUEUED)
        source.poll.return_value = PollResult(success=False, reason="timed out", timed_out=True)
        fallback.search.return_value = FallbackReference("abc", "Come Together", 259, "Topic")

        summary = await use_case.sync_album(_tracks(1), "Abbey Road", "The Beatles")

        assert summary.synced_fallback == 1
        assert summary.matches[0].source == ResolutionSource.FALLBACK

    @pytest.mark.asyncio
    async def test_already_synced_tracks_make_no_network_call(
        self,
        use_case: SyncAlbumUseCase,
        source: AsyncMock,
        fallback: AsyncMock,
        repository: AsyncMock,
        status: TrackStatusRepository,
    ) -> None:
        repository.get_resolved_track_ids.return_value = {"t1", "t2", "t3"}

        summary = await use_case.sync_album(_tracks(3), "Abbey Road", "The Beatles")

        assert summary.already_synced == 3
        assert summary.outcome == RunOutcome.SUCCESS
        source.search.assert_not_awaited()
        source.select_and_resolve.assert_not_awaited()
        fallback.search.assert_not_awaited()
        assert status.is_synced("t2")

    @pytest.mark.asyncio
    async def test_no_file_is_shared_between_tracks(
        self, use_case: SyncAlbumUseCase, source: AsyncMock, fallback: AsyncMock
    ) -> None:
        """Two titles matching the same file: the second track does not get it."""
        source.search.return_value = [_bundle(["Intro"])]
        tracks = [
            CanonicalTrack(id="a", title="Intro", position=1),
            CanonicalTrack(id="b", title="Intro (Reprise)", position=2),
        ]

        summary = await use_case.sync_album(tracks, "Album", "Artist")

        assert source.select_and_resolve.await_count == 1
        file_ids = [m.file_id for m in summary.matches if m.file_id is not None]
        assert len(file_ids) == len(set(file_ids)) == 1
        assert summary.outcome == RunOutcome.PARTIAL
        assert summary.message == "1/2 synced, 1 not found"
        fallback.search.assert_awaited_once_with("Intro (Reprise) Artist")

    @pytest.mark.asyncio
    async def test_mismatched_album_mapping_is_replaced(
        self, use_case: SyncAlbumUseCase, repository: AsyncMock
    ) -> None:
        repository.get_album_mapping.return_value = AlbumMapping(
            id="old", album_id="album-1", bundle_id="other-bundle", bundle_title="Other"
        )
        repository.get_track_mappings_for_album.return_value = []
        repository.replace_album_mapping.return_value = AlbumMapping(
            id="new", album_id="album-1", bundle_id="bundle-1", bundle_title="Abbey Road"
        )

        await use_case.sync_album(_tracks(1), "Abbey Road", "The Beatles", album_id="album-1")

        repository.replace_album_mapping.assert_awaited_once()
        assert repository.upsert_track_mapping.await_args.args[0].album_mapping_id == "new"

    @pytest.mark.asyncio
    async def test_mapping_with_linked_tracks_is_kept(
        self, use_case: SyncAlbumUseCase, repository: AsyncMock, fallback: AsyncMock
    ) -> None:
        repository.get_album_mapping.return_value = AlbumMapping(
            id="old", album_id="album-1", bundle_id="other-bundle", bundle_title="Other"
        )
        repository.get_track_mappings_for_album.return_value = [
            TrackMapping(
                album_mapping_id="old",
                track_id="t9",
                file_id=7,
                file_path="Other/07.flac",
                file_name="07.flac",
                direct_link="https://cdn/7.flac",
            )
        ]
        fallback.search.return_value = FallbackReference("abc", "Come Together", 259, "Topic")

        summary = await use_case.sync_album(
            _tracks(1), "Abbey Road", "The Beatles", album_id="album-1"
        )

        repository.replace_album_mapping.assert_not_awaited()
        repository.upsert_track_mapping.assert_not_awaited()
        assert summary.synced_fallback == 1

    @pytest.mark.asyncio
    async def test_stored_bundle_is_preferred_on_resync(
        self, use_case: SyncAlbumUseCase, source: AsyncMock, repository: AsyncMock
    ) -> None:
        stored = _bundle(TITLES)
        newer = BundleSearchResult(
            bundle_id="bundle-2", title="Abbey Road (2019 Mix)", candidate_files=stored.candidate_files
        )
        source.search.return_value = [newer, stored]
        repository.get_album_mapping.return_value = AlbumMapping(
            id="map-1", album_id="album-1", bundle_id="bundle-1", bundle_title="Abbey Road"
        )

        summary = await use_case.sync_album(_tracks(1), "Abbey Road", "The Beatles")

        assert summary.synced_primary == 1
        repository.replace_album_mapping.assert_not_awaited()
        assert source.select_and_resolve.await_args.args[1] == "bundle-1"

    @pytest.mark.asyncio
    async def test_repository_failure_marks_track_failed_and_continues(
        self, use_case: SyncAlbumUseCase, repository: AsyncMock
    ) -> None:
        from sqlalchemy.exc import OperationalError

        repository.upsert_track_mapping.side_effect = [
            OperationalError("INSERT", {}, Exception("disk I/O error")),
            None,
        ]

        summary = await use_case.sync_album(_tracks(2), "Abbey Road", "The Beatles")

        assert summary.failed == 1
        assert summary.synced_primary == 1
        assert summary.matches[0].status == TrackSyncState.FAILED

    @pytest.mark.asyncio
    async def test_duplicate_tracks_are_synced_once(
        self, use_case: SyncAlbumUseCase, source: AsyncMock
    ) -> None:
        tracks = _tracks(2) + _tracks(1)

        summary = await use_case.sync_album(tracks, "Abbey Road", "The Beatles")

        assert summary.total == 2
        assert source.select_and_resolve.await_count == 2

    @pytest.mark.asyncio
    async def test_broken_reporter_does_not_lose_result(
        self, use_case: SyncAlbumUseCase, reporter: AsyncMock
    ) -> None:
        reporter.on_progress.side_effect = RuntimeError("socket closed")
        reporter.on_complete.side_effect = RuntimeError("socket closed")

        summary = await use_case.sync_album(_tracks(2), "Abbey Road", "The Beatles")

        assert summary.outcome == RunOutcome.SUCCESS

    @pytest.mark.asyncio
    async def test_execute_uses_album_key(
        self, use_case: SyncAlbumUseCase, repository: AsyncMock
    ) -> None:
        summary = await use_case.execute(
            SyncAlbumRequest(tracks=_tracks(1), album_title="Abbey Road", artist_name="The Beatles")
        )

        assert summary.album_id == "album-1"
        repository.get_album_mapping.assert_awaited_with("album-1")
