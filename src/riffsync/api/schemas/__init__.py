"""API request/response schemas."""

from riffsync.api.schemas.sync import (
    AlbumMappingOut,
    BundleIn,
    CandidateFileIn,
    FallbackMappingOut,
    RunSummaryOut,
    SaveAlbumMappingBody,
    SyncAlbumBody,
    SyncTrackBody,
    TrackIn,
    TrackMappingOut,
    TrackMatchOut,
    TrackStatusOut,
)

__all__ = [
    "AlbumMappingOut",
    "BundleIn",
    "CandidateFileIn",
    "FallbackMappingOut",
    "RunSummaryOut",
    "SaveAlbumMappingBody",
    "SyncAlbumBody",
    "SyncTrackBody",
    "TrackIn",
    "TrackMappingOut",
    "TrackMatchOut",
    "TrackStatusOut",
]
