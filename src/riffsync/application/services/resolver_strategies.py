"""Resolution tiers tried in order for every track of a sync run.

Hey future me - the orchestrator does not know about bundles or fallbacks. It
walks a list of ITrackResolver and stops at the first resolved outcome:

    [PrimaryBundleResolver, FallbackSearchResolver]

A third source is a new class in this list, nothing else. A strategy either
returns ResolveOutcome.not_found(reason) to hand the track to the next tier, or
raises ProviderError / SyncTimeoutError, which the orchestrator treats the same
way (log, next tier).
"""

import logging
from dataclasses import replace

from riffsync.domain.entities import (
    CanonicalTrack,
    ResolveOutcome,
    ResolveStatus,
    TrackMapping,
    TrackSyncState,
)
from riffsync.domain.exceptions import SyncTimeoutError
from riffsync.domain.ports import (
    IFallbackResolver,
    IMappingRepository,
    ISourceResolver,
    ITrackResolver,
    ResolveContext,
)
from riffsync.domain.value_objects.track_matching import find_candidate

logger = logging.getLogger(__name__)


class PrimaryBundleResolver(ITrackResolver):
    """Resolve a track to a direct link from a file of the selected bundle."""

    def __init__(
        self,
        source_resolver: ISourceResolver,
        repository: IMappingRepository,
        poll_max_wait_ms: int = 30000,
    ) -> None:
        self._source = source_resolver
        self._repository = repository
        self._poll_max_wait_ms = poll_max_wait_ms

    @property
    def name(self) -> str:
        return "primary"

    async def try_resolve(
        self, track: CanonicalTrack, context: ResolveContext
    ) -> ResolveOutcome:
        if context.bundle is None or context.album_mapping is None:
            return ResolveOutcome.not_found("no bundle")

        match = find_candidate(track, context.files, context.claimed_file_ids)
        if match is None:
            return ResolveOutcome.not_found("no matching file in bundle")

        candidate, confidence = match
        # Claimed before any I/O: even a failed attempt keeps the file away
        # from the remaining tracks of this run.
        context.claimed_file_ids.add(candidate.id)
        logger.debug(
            f"Track {track.id} '{track.title}' -> file {candidate.id} "
            f"'{candidate.filename}' (confidence {confidence:.2f})"
        )

        response = await self._source.select_and_resolve(
            context.credential, context.bundle.bundle_id, [candidate.id]
        )

        mapping = TrackMapping(
            album_mapping_id=context.album_mapping.id,
            track_id=track.id,
            file_id=candidate.id,
            file_path=candidate.path,
            file_name=candidate.filename,
            direct_link=None,
            track_title=track.title,
            track_position=track.position,
        )

        if response.status == ResolveStatus.READY and response.direct_link:
            await self._repository.upsert_track_mapping(
                replace(mapping, direct_link=response.direct_link)
            )
            return ResolveOutcome.primary(response.direct_link, candidate, confidence)

        if not response.status.is_pending:
            return ResolveOutcome.not_found(
                f"provider {response.status.value}: {response.error or 'no link'}"
            )

        # Provider is preparing the file: remember the pairing, then wait.
        await self._repository.upsert_track_mapping(mapping)
        context.report_state(track, TrackSyncState.DOWNLOADING)

        result = await self._source.poll(
            context.credential,
            context.bundle.bundle_id,
            candidate.id,
            max_wait_ms=self._poll_max_wait_ms,
        )
        if result.success and result.direct_link:
            await self._repository.set_direct_link(track.id, result.direct_link)
            return ResolveOutcome.primary(result.direct_link, candidate, confidence)

        reason = result.reason or "file never became ready"
        if result.timed_out:
            raise SyncTimeoutError(reason, result.elapsed_seconds)
        return ResolveOutcome.not_found(reason)


class FallbackSearchResolver(ITrackResolver):
    """Resolve a track to an alternate reference from the media-search provider."""

    def __init__(self, fallback_resolver: IFallbackResolver) -> None:
        self._fallback = fallback_resolver

    @property
    def name(self) -> str:
        return "fallback"

    @staticmethod
    def build_query(track: CanonicalTrack, context: ResolveContext) -> str:
        return f"{track.title} {context.artist_name}".strip()

    async def try_resolve(
        self, track: CanonicalTrack, context: ResolveContext
    ) -> ResolveOutcome:
        reference = await self._fallback.search(self.build_query(track, context))
        if reference is None:
            return ResolveOutcome.not_found("no fallback result")

        await self._fallback.persist(track.id, reference)
        return ResolveOutcome.from_fallback(reference)


__all__ = ["FallbackSearchResolver", "PrimaryBundleResolver"]
