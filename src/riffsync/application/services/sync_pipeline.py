"""Steps shared by album and single-track sync.

Both use cases do the same per-track work: short-circuit tracks that already
have a mapping, find a bundle, walk the resolver chain, mirror every state
change into the status repository. They differ only in how many tracks they
walk and how the album mapping is handled.
"""

import logging
from collections.abc import Sequence

from riffsync.application.services.status_broadcaster import TrackStatusRepository
from riffsync.domain.entities import (
    AlbumMapping,
    BundleSearchResult,
    CanonicalTrack,
    ResolutionSource,
    ResolveOutcome,
    TrackMatch,
    TrackSyncState,
)
from riffsync.domain.exceptions import ExternalServiceError, SyncTimeoutError
from riffsync.domain.ports import (
    IMappingRepository,
    ISourceResolver,
    ITrackResolver,
    ResolveContext,
)
from riffsync.domain.value_objects.track_matching import select_bundle
from riffsync.infrastructure.observability.log_messages import LogMessages

logger = logging.getLogger(__name__)


class SyncPipeline:
    """Per-track resolution plumbing around an ordered resolver chain."""

    def __init__(
        self,
        source_resolver: ISourceResolver,
        repository: IMappingRepository,
        status: TrackStatusRepository,
        strategies: Sequence[ITrackResolver],
        bundle_coverage_ratio: float = 0.5,
    ) -> None:
        self.source = source_resolver
        self.repository = repository
        self.status = status
        self.strategies = list(strategies)
        self.bundle_coverage_ratio = bundle_coverage_ratio

    async def already_resolved(self, tracks: Sequence[CanonicalTrack]) -> set[str]:
        """Ids of tracks with a stored direct link or fallback mapping."""
        return await self.repository.get_resolved_track_ids([t.id for t in tracks])

    async def find_bundle(
        self,
        credential: str,
        query: str,
        track_count: int,
        prefer_bundle_id: str | None = None,
    ) -> BundleSearchResult | None:
        """Search and select a bundle; a failing search means "no bundle".

        A result with ``prefer_bundle_id`` (the bundle the album is already
        mapped to) wins over the coverage rule as long as it has audio files.
        """
        try:
            bundles = await self.source.search(credential, query)
        except ExternalServiceError as e:
            logger.warning(LogMessages.no_bundle(query, reason=str(e)))
            return None

        preferred = [b for b in bundles if b.bundle_id == prefer_bundle_id and b.candidate_files]
        bundle = (
            preferred[0]
            if preferred
            else select_bundle(bundles, track_count, self.bundle_coverage_ratio)
        )
        if bundle is None:
            logger.info(LogMessages.no_bundle(query, reason=f"{len(bundles)} bundles, none with audio"))
        else:
            logger.info(LogMessages.bundle_selected(bundle.title, bundle.file_count, track_count))
        return bundle

    async def ensure_album_mapping(
        self,
        album_id: str,
        bundle: BundleSearchResult,
        album_title: str,
        artist_name: str,
        replace_mismatch: bool = True,
    ) -> AlbumMapping | None:
        """Return the album mapping pointing at ``bundle``.

        A mapping to a different bundle is replaced (its track mappings go with
        it) only when ``replace_mismatch`` is set and none of its tracks holds a
        direct link yet. Otherwise it stays, None is returned and the primary
        tier is skipped for this run.
        """
        existing = await self.repository.get_album_mapping(album_id)
        if existing is None:
            return await self.repository.create_album_mapping(
                album_id, bundle.bundle_id, bundle.title, album_title, artist_name
            )
        if existing.bundle_id == bundle.bundle_id:
            return existing

        if replace_mismatch:
            linked = [
                m.track_id
                for m in await self.repository.get_track_mappings_for_album(existing.id)
                if m.direct_link
            ]
            if not linked:
                return await self.repository.replace_album_mapping(
                    album_id, bundle.bundle_id, bundle.title, album_title, artist_name
                )
            logger.warning(
                f"Album {album_id} stays on bundle {existing.bundle_id}: "
                f"{len(linked)} tracks already play from it"
            )
        else:
            logger.info(
                f"Album {album_id} is mapped to bundle {existing.bundle_id}, "
                f"not {bundle.bundle_id}; leaving it alone"
            )
        return None

    def make_context(
        self,
        credential: str,
        album_title: str,
        artist_name: str,
        matches: dict[str, TrackMatch],
    ) -> ResolveContext:
        def on_state_change(track: CanonicalTrack, state: TrackSyncState) -> None:
            matches[track.id].advance(state)
            if state == TrackSyncState.DOWNLOADING:
                self.status.mark_downloading(track.id)

        return ResolveContext(
            credential=credential,
            album_title=album_title,
            artist_name=artist_name,
            on_state_change=on_state_change,
        )

    def mark_already_synced(self, match: TrackMatch) -> None:
        match.advance(TrackSyncState.SYNCED)
        self.status.mark_synced(match.track_id)

    def start_track(self, match: TrackMatch) -> None:
        match.advance(TrackSyncState.SYNCING)
        self.status.mark_syncing(match.track_id)

    async def resolve(self, track: CanonicalTrack, context: ResolveContext) -> ResolveOutcome:
        """Walk the resolver chain until one tier resolves the track.

        Provider and timeout errors only end the current tier; the next tier
        still gets its chance. Anything else propagates to the caller.
        """
        reasons: list[str] = []
        for strategy in self.strategies:
            try:
                outcome = await strategy.try_resolve(track, context)
            except (ExternalServiceError, SyncTimeoutError) as e:
                logger.warning(
                    LogMessages.provider_failed(strategy.name, f"resolve track {track.id}", str(e))
                )
                reasons.append(f"{strategy.name}: {e}")
                continue
            if outcome.resolved:
                return outcome
            reasons.append(f"{strategy.name}: {outcome.reason}")
        return ResolveOutcome.not_found("; ".join(reasons) or "no resolver configured")

    def finish_track(self, match: TrackMatch, outcome: ResolveOutcome) -> None:
        """Apply a terminal outcome to the run's match and the status repository."""
        if outcome.resolved:
            match.source = outcome.source
            if outcome.file is not None:
                match.file_id = outcome.file.id
                match.file_name = outcome.file.filename
                match.file_path = outcome.file.path
                match.confidence = min(1.0, max(0.0, outcome.confidence))
            match.advance(TrackSyncState.SYNCED)
            self.status.mark_synced(match.track_id)
            return

        match.error = outcome.reason
        match.advance(TrackSyncState.FAILED)
        self.status.clear(match.track_id)


def count_source(matches: Sequence[TrackMatch], source: ResolutionSource) -> int:
    return sum(1 for m in matches if m.status == TrackSyncState.SYNCED and m.source == source)


__all__ = ["SyncPipeline", "count_source"]
