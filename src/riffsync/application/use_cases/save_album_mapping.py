"""Use case for saving a user-picked bundle for an album.

The user browsed the bundles of an album search and picked one by hand. We
pair the whole track list against its files in one bulk pass (track number
first, then title similarity), replace whatever mapping the album had and store
one TrackMapping per paired track. Links are fetched later, on play or on the
next album sync.
"""

import logging
from dataclasses import dataclass

from riffsync.application.services.status_broadcaster import TrackStatusRepository
from riffsync.application.use_cases import UseCase
from riffsync.domain.entities import (
    BundleSearchResult,
    CanonicalTrack,
    ResolutionSource,
    TrackMapping,
    TrackMatch,
    TrackSyncState,
)
from riffsync.domain.exceptions import PreconditionError
from riffsync.domain.ports import IMappingRepository
from riffsync.domain.value_objects.track_matching import match_tracks_to_files

logger = logging.getLogger(__name__)


@dataclass
class SaveAlbumMappingRequest:
    album_id: str
    album_title: str
    artist_name: str
    bundle: BundleSearchResult
    tracks: list[CanonicalTrack]


class SaveAlbumMappingUseCase(UseCase[SaveAlbumMappingRequest, list[TrackMatch]]):
    """Replace an album's bundle mapping with a hand-picked bundle."""

    def __init__(
        self,
        repository: IMappingRepository,
        status: TrackStatusRepository,
    ) -> None:
        self._repository = repository
        self._status = status

    async def execute(self, request: SaveAlbumMappingRequest) -> list[TrackMatch]:
        """
        Returns:
            One TrackMatch per track, in track order; unpaired tracks stay pending

        Raises:
            PreconditionError: Empty track list or bundle without files
        """
        if not request.tracks:
            raise PreconditionError("Track list is empty")
        if not request.bundle.candidate_files:
            raise PreconditionError(f"Bundle {request.bundle.bundle_id} has no audio files")

        matches = match_tracks_to_files(request.tracks, request.bundle.candidate_files)

        album_mapping = await self._repository.replace_album_mapping(
            request.album_id,
            request.bundle.bundle_id,
            request.bundle.title,
            request.album_title,
            request.artist_name,
        )

        files = {f.id: f for f in request.bundle.candidate_files}
        for track, match in zip(request.tracks, matches, strict=True):
            if match.file_id is None:
                continue
            candidate = files[match.file_id]
            await self._repository.upsert_track_mapping(
                TrackMapping(
                    album_mapping_id=album_mapping.id,
                    track_id=track.id,
                    file_id=candidate.id,
                    file_path=candidate.path,
                    file_name=candidate.filename,
                    track_title=track.title,
                    track_position=track.position,
                )
            )
            match.source = ResolutionSource.PRIMARY
            match.advance(TrackSyncState.SYNCED)
            self._status.mark_synced(track.id)

        paired = sum(1 for m in matches if m.file_id is not None)
        logger.info(
            f"Album {request.album_id} mapped to bundle '{request.bundle.title}': "
            f"{paired}/{len(request.tracks)} tracks paired"
        )
        return matches


__all__ = ["SaveAlbumMappingRequest", "SaveAlbumMappingUseCase"]
