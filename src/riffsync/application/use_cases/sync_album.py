"""Use case for syncing every track of an album for offline playback.

Hey future me - this is THE album sync. The user taps "sync album" and we:
1. Skip tracks that already have a direct link or a fallback mapping
2. Search the content-fetch provider for "<album> <artist>" and pick a bundle
3. Create the album -> bundle mapping, or reuse the stored one. A mapping to
   another bundle is only replaced while none of its tracks has a direct link;
   replacing cascades to its track mappings
4. Walk the remaining tracks ONE AT A TIME, paced, through the resolver chain
   (bundle file + poll, then media-search fallback)
5. Hand back one RunSummary; the reporter gets one terminal notification

Strictly sequential on purpose: the debrid API rate-limits hard and the
provider prepares files one selection at a time. The pacer decides how long to
wait between tracks.

A failure on one track (provider down, poll timeout, DB hiccup) marks that
track failed and the loop moves on. Only PreconditionError escapes, and it is
raised before any network call.
"""

import logging
import time
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from riffsync.application.services.sync_pipeline import SyncPipeline, count_source
from riffsync.application.use_cases import UseCase
from riffsync.domain.entities import (
    CanonicalTrack,
    ResolutionSource,
    ResolveOutcome,
    RunSummary,
    SyncProgress,
    TrackMatch,
    TrackSyncState,
)
from riffsync.domain.exceptions import DomainException, PreconditionError
from riffsync.domain.ports import ISyncReporter, ITrackPacer
from riffsync.domain.value_objects.track_matching import normalize
from riffsync.infrastructure.observability.log_messages import LogMessages
from riffsync.infrastructure.observability.logging import (
    get_correlation_id,
    set_correlation_id,
)
from riffsync.infrastructure.rate_limiter import FixedIntervalPacer

logger = logging.getLogger(__name__)


@dataclass
class SyncAlbumRequest:
    """Request to sync an album.

    album_id falls back to the first track's album_id, then to a key derived
    from artist and album title.
    """

    tracks: list[CanonicalTrack]
    album_title: str
    artist_name: str
    album_id: str | None = None


class LoggingSyncReporter(ISyncReporter):
    """Default reporter: progress at DEBUG, the run summary at INFO."""

    async def on_progress(self, progress: SyncProgress) -> None:
        logger.debug(
            f"Sync progress: {progress.done}/{progress.total} "
            f"({progress.synced} synced, {progress.failed} failed)"
        )

    async def on_complete(self, summary: RunSummary) -> None:
        logger.info(f"Sync of album {summary.album_id}: {summary.message}")


def album_key(request: SyncAlbumRequest) -> str:
    if request.album_id:
        return request.album_id
    for track in request.tracks:
        if track.album_id:
            return track.album_id
    return normalize(f"{request.artist_name} {request.album_title}").replace(" ", "-")


class SyncAlbumUseCase(UseCase[SyncAlbumRequest, RunSummary]):
    """Resolve every track of an album to a playable reference."""

    def __init__(
        self,
        credential: str | None,
        pipeline: SyncPipeline,
        pacer: ITrackPacer | None = None,
        reporter: ISyncReporter | None = None,
    ) -> None:
        """
        Args:
            credential: Content-fetch API key of the current user
            pipeline: Shared resolution steps (resolver chain, status mirror)
            pacer: Backpressure between tracks (default: fixed 2s)
            reporter: Progress and completion sink (default: log lines)
        """
        self._credential = credential
        self._pipeline = pipeline
        self._pacer = pacer or FixedIntervalPacer(delay_seconds=2.0)
        self._reporter = reporter or LoggingSyncReporter()

    async def execute(self, request: SyncAlbumRequest) -> RunSummary:
        return await self.sync_album(
            request.tracks,
            request.album_title,
            request.artist_name,
            album_id=album_key(request),
        )

    async def sync_album(
        self,
        tracks: Sequence[CanonicalTrack],
        album_title: str,
        artist_name: str,
        album_id: str | None = None,
    ) -> RunSummary:
        """Run one album sync.

        Raises:
            PreconditionError: No credential or no tracks
        """
        if not self._credential:
            raise PreconditionError("Content-fetch credential is missing")
        if not tracks:
            raise PreconditionError("Track list is empty")

        if album_id is None:
            album_id = album_key(SyncAlbumRequest(list(tracks), album_title, artist_name))

        unique: dict[str, CanonicalTrack] = {}
        for track in tracks:
            unique.setdefault(track.id, track)
        if len(unique) != len(tracks):
            logger.warning(f"Album {album_id}: dropped {len(tracks) - len(unique)} duplicate tracks")
        tracks = list(unique.values())

        set_correlation_id(get_correlation_id() or None)
        started = time.monotonic()
        pipeline = self._pipeline

        matches: dict[str, TrackMatch] = {t.id: TrackMatch(track_id=t.id) for t in tracks}
        summary = RunSummary(album_id=album_id, total=len(tracks))

        resolved_ids = await pipeline.already_resolved(tracks)
        for track in tracks:
            if track.id in resolved_ids:
                pipeline.mark_already_synced(matches[track.id])
                summary.already_synced += 1
        pending = [t for t in tracks if t.id not in resolved_ids]

        logger.info(
            LogMessages.album_sync_started(
                album_title, artist_name, len(tracks), summary.already_synced
            )
        )

        context = pipeline.make_context(self._credential, album_title, artist_name, matches)

        if pending:
            try:
                current = await pipeline.repository.get_album_mapping(album_id)
            except SQLAlchemyError as e:
                logger.error(f"Could not read bundle mapping for album {album_id}: {e}")
                current = None
            bundle = await pipeline.find_bundle(
                self._credential,
                f"{album_title} {artist_name}",
                len(tracks),
                prefer_bundle_id=current.bundle_id if current else None,
            )
            if bundle is not None:
                try:
                    context.album_mapping = await pipeline.ensure_album_mapping(
                        album_id, bundle, album_title, artist_name
                    )
                    if context.album_mapping is not None:
                        context.bundle = bundle
                except (DomainException, SQLAlchemyError) as e:
                    logger.error(f"Could not store bundle mapping for album {album_id}: {e}")

        for index, track in enumerate(pending):
            await self._pacer.wait_turn(index)
            match = matches[track.id]
            pipeline.start_track(match)

            try:
                outcome = await pipeline.resolve(track, context)
            except (DomainException, SQLAlchemyError) as e:
                logger.error(LogMessages.track_failed(track.title, track.id, str(e)))
                outcome = ResolveOutcome.not_found(str(e))

            pipeline.finish_track(match, outcome)
            if not outcome.resolved:
                summary.failed += 1
                logger.info(f"Track {track.id} '{track.title}' not found: {outcome.reason}")

            await self._report_progress(summary, matches)

        summary.matches = [matches[t.id] for t in tracks]
        summary.synced_primary = count_source(
            [matches[t.id] for t in pending], ResolutionSource.PRIMARY
        )
        summary.synced_fallback = count_source(
            [matches[t.id] for t in pending], ResolutionSource.FALLBACK
        )

        logger.info(
            LogMessages.album_sync_completed(
                album_id,
                summary.outcome.value,
                summary.message,
                summary.synced_primary,
                summary.synced_fallback,
                summary.failed,
                time.monotonic() - started,
            )
        )
        await self._notify(self._reporter.on_complete(summary))
        return summary

    async def _report_progress(
        self, summary: RunSummary, matches: dict[str, TrackMatch]
    ) -> None:
        synced = sum(1 for m in matches.values() if m.status == TrackSyncState.SYNCED)
        await self._notify(
            self._reporter.on_progress(
                SyncProgress(synced=synced, failed=summary.failed, total=summary.total)
            )
        )

    @staticmethod
    async def _notify(call: Awaitable[None]) -> None:
        # A broken progress sink must not lose the run result.
        try:
            await call
        except Exception as e:
            logger.warning(f"Sync reporter failed: {e}")


__all__ = ["LoggingSyncReporter", "SyncAlbumRequest", "SyncAlbumUseCase", "album_key"]
