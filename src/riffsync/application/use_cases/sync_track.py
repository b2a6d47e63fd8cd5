"""Use case for syncing a single track in the background.

Same resolver chain as the album sync, for one track: used when the user
plays or saves a track that was never part of an album sync. The difference is
the album mapping: an existing mapping to another bundle is NOT replaced,
because that would cascade away every other track of the album. In that case
the primary tier is skipped and the fallback gets the track.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from riffsync.application.services.sync_pipeline import SyncPipeline
from riffsync.application.use_cases import UseCase
from riffsync.domain.entities import CanonicalTrack, ResolveOutcome, TrackMatch
from riffsync.domain.exceptions import DomainException, PreconditionError
from riffsync.infrastructure.observability.log_messages import LogMessages

logger = logging.getLogger(__name__)


@dataclass
class SyncTrackRequest:
    """Request to sync one track."""

    track: CanonicalTrack
    album_title: str | None
    artist_name: str


class SyncTrackUseCase(UseCase[SyncTrackRequest, TrackMatch]):
    """Resolve one track to a playable reference."""

    def __init__(self, credential: str | None, pipeline: SyncPipeline) -> None:
        self._credential = credential
        self._pipeline = pipeline

    async def execute(self, request: SyncTrackRequest) -> TrackMatch:
        """
        Raises:
            PreconditionError: No credential
        """
        if not self._credential:
            raise PreconditionError("Content-fetch credential is missing")

        track = request.track
        pipeline = self._pipeline
        match = TrackMatch(track_id=track.id)

        if track.id in await pipeline.already_resolved([track]):
            pipeline.mark_already_synced(match)
            return match

        pipeline.start_track(match)
        album_title = request.album_title or ""
        context = pipeline.make_context(
            self._credential, album_title, request.artist_name, {track.id: match}
        )

        try:
            # Album query first, it finds bundles for whole albums; a bare
            # track query is the only option for loose singles.
            query = (
                f"{album_title} {request.artist_name}"
                if album_title
                else f"{track.title} {request.artist_name}"
            )
            bundle = await pipeline.find_bundle(self._credential, query, 1)
            if bundle is not None and track.album_id:
                context.album_mapping = await pipeline.ensure_album_mapping(
                    track.album_id,
                    bundle,
                    album_title or track.title,
                    request.artist_name,
                    replace_mismatch=False,
                )
                if context.album_mapping is not None:
                    context.bundle = bundle

            outcome = await pipeline.resolve(track, context)
        except (DomainException, SQLAlchemyError) as e:
            logger.error(LogMessages.track_failed(track.title, track.id, str(e)))
            outcome = ResolveOutcome.not_found(str(e))

        pipeline.finish_track(match, outcome)
        return match


__all__ = ["SyncTrackRequest", "SyncTrackUseCase"]
