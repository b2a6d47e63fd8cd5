"""Album and track sync endpoints."""

import logging

from fastapi import APIRouter, Depends, Query

from riffsync.api.dependencies import (
    get_mapping_repository,
    get_save_album_mapping_use_case,
    get_status_repository,
    get_sync_album_use_case,
    get_sync_track_use_case,
)
from riffsync.api.schemas import (
    AlbumMappingOut,
    FallbackMappingOut,
    RunSummaryOut,
    SaveAlbumMappingBody,
    SyncAlbumBody,
    SyncTrackBody,
    TrackMappingOut,
    TrackMatchOut,
    TrackStatusOut,
)
from riffsync.application.services import TrackStatusRepository
from riffsync.application.use_cases import (
    SaveAlbumMappingRequest,
    SaveAlbumMappingUseCase,
    SyncAlbumRequest,
    SyncAlbumUseCase,
    SyncTrackRequest,
    SyncTrackUseCase,
)
from riffsync.domain.exceptions import EntityNotFoundException
from riffsync.domain.ports import IMappingRepository

logger = logging.getLogger(__name__)

router = APIRouter()


# Hey future me - this call blocks until the whole album is done (tracks are paced,
# so a 12-track album takes 20s+ even when everything is cached). Clients that
# want live progress poll GET /tracks/status with the album's track ids meanwhile.
@router.post("/albums/{album_id}/sync", response_model=RunSummaryOut)
async def sync_album(
    album_id: str,
    body: SyncAlbumBody,
    use_case: SyncAlbumUseCase = Depends(get_sync_album_use_case),
) -> RunSummaryOut:
    """Resolve every track of an album to a playable reference."""
    summary = await use_case.execute(
        SyncAlbumRequest(
            tracks=[t.to_entity() for t in body.tracks],
            album_title=body.album_title,
            artist_name=body.artist_name,
            album_id=album_id,
        )
    )
    return RunSummaryOut.from_entity(summary)


@router.post("/tracks/{track_id}/sync", response_model=TrackMatchOut)
async def sync_track(
    track_id: str,
    body: SyncTrackBody,
    use_case: SyncTrackUseCase = Depends(get_sync_track_use_case),
) -> TrackMatchOut:
    """Resolve a single track in the background of playback."""
    track = body.track.model_copy(update={"id": track_id}).to_entity()
    match = await use_case.execute(
        SyncTrackRequest(
            track=track, album_title=body.album_title, artist_name=body.artist_name
        )
    )
    return TrackMatchOut.from_entity(match)


@router.get("/tracks/status", response_model=TrackStatusOut)
async def get_track_status(
    ids: str = Query(..., description="Comma-separated track ids"),
    status: TrackStatusRepository = Depends(get_status_repository),
    repository: IMappingRepository = Depends(get_mapping_repository),
) -> TrackStatusOut:
    """Live sync status per track: syncing, downloading, synced or null.

    Tracks with a stored direct link or fallback count as synced even when no
    run has touched them since startup.
    """
    track_ids = [i.strip() for i in ids.split(",") if i.strip()]
    status.hydrate_synced(await repository.get_resolved_track_ids(track_ids))
    snapshot = status.snapshot()
    return TrackStatusOut(statuses={i: snapshot.status_of(i) for i in track_ids})


@router.get("/albums/{album_id}/mapping", response_model=AlbumMappingOut)
async def get_album_mapping(
    album_id: str,
    repository: IMappingRepository = Depends(get_mapping_repository),
) -> AlbumMappingOut:
    """Stored bundle mapping of an album with its track mappings."""
    mapping = await repository.get_album_mapping(album_id)
    if mapping is None:
        raise EntityNotFoundException("AlbumMapping", album_id)
    tracks = await repository.get_track_mappings_for_album(mapping.id)
    return AlbumMappingOut.from_entity(mapping, tracks)


@router.put("/albums/{album_id}/mapping", response_model=list[TrackMatchOut])
async def save_album_mapping(
    album_id: str,
    body: SaveAlbumMappingBody,
    use_case: SaveAlbumMappingUseCase = Depends(get_save_album_mapping_use_case),
) -> list[TrackMatchOut]:
    """Replace an album's mapping with a hand-picked bundle."""
    matches = await use_case.execute(
        SaveAlbumMappingRequest(
            album_id=album_id,
            album_title=body.album_title,
            artist_name=body.artist_name,
            bundle=body.bundle.to_entity(),
            tracks=[t.to_entity() for t in body.tracks],
        )
    )
    return [TrackMatchOut.from_entity(m) for m in matches]


@router.get("/tracks/fallbacks", response_model=list[FallbackMappingOut])
async def get_fallback_mappings(
    ids: str = Query(..., description="Comma-separated track ids"),
    repository: IMappingRepository = Depends(get_mapping_repository),
) -> list[FallbackMappingOut]:
    """Stored media-search references for the given tracks."""
    track_ids = [i.strip() for i in ids.split(",") if i.strip()]
    mappings = await repository.get_fallback_mappings(track_ids)
    return [FallbackMappingOut.from_entity(m) for m in mappings]


@router.get("/tracks/mappings", response_model=list[TrackMappingOut])
async def get_track_mappings(
    ids: str = Query(..., description="Comma-separated track ids"),
    repository: IMappingRepository = Depends(get_mapping_repository),
) -> list[TrackMappingOut]:
    """Stored bundle-file pairings for the given tracks, whatever album they came from."""
    track_ids = [i.strip() for i in ids.split(",") if i.strip()]
    mappings = await repository.get_track_mappings(track_ids)
    return [TrackMappingOut.from_entity(m) for m in mappings]
