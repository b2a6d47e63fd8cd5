"""API schemas for album and track sync."""

from pydantic import BaseModel, Field

from riffsync.domain.entities import (
    AlbumMapping,
    BundleSearchResult,
    CandidateFile,
    CanonicalTrack,
    FallbackMapping,
    RunSummary,
    TrackMapping,
    TrackMatch,
)


class TrackIn(BaseModel):
    """One track of the canonical track list."""

    id: str = Field(..., min_length=1, description="Catalog track id")
    title: str = Field(..., description="Track title")
    position: int = Field(..., ge=0, description="1-based position on the album")
    album_id: str | None = Field(default=None, description="Catalog album id")

    def to_entity(self) -> CanonicalTrack:
        return CanonicalTrack(
            id=self.id, title=self.title, position=self.position, album_id=self.album_id
        )


class SyncAlbumBody(BaseModel):
    """Request body for an album sync."""

    album_title: str = Field(..., description="Album title as shown to the user")
    artist_name: str = Field(..., description="Primary artist name")
    tracks: list[TrackIn] = Field(default_factory=list)


class SyncTrackBody(BaseModel):
    """Request body for a single-track sync."""

    track: TrackIn
    artist_name: str
    album_title: str | None = None


class CandidateFileIn(BaseModel):
    id: int
    filename: str
    path: str = ""


class BundleIn(BaseModel):
    """A bundle the user picked by hand."""

    bundle_id: str = Field(..., min_length=1)
    title: str
    files: list[CandidateFileIn] = Field(default_factory=list)

    def to_entity(self) -> BundleSearchResult:
        return BundleSearchResult(
            bundle_id=self.bundle_id,
            title=self.title,
            candidate_files=[
                CandidateFile(
                    id=f.id,
                    filename=f.filename,
                    path=f.path or f.filename,
                    parent_bundle_id=self.bundle_id,
                )
                for f in self.files
            ],
        )


class SaveAlbumMappingBody(BaseModel):
    """Request body for replacing an album's bundle mapping."""

    album_title: str
    artist_name: str
    bundle: BundleIn
    tracks: list[TrackIn] = Field(default_factory=list)


class TrackMatchOut(BaseModel):
    track_id: str
    status: str
    source: str | None = None
    file_id: int | None = None
    file_name: str | None = None
    confidence: float = 0.0
    error: str | None = None

    @classmethod
    def from_entity(cls, match: TrackMatch) -> "TrackMatchOut":
        return cls(
            track_id=match.track_id,
            status=match.status.value,
            source=match.source.value if match.source else None,
            file_id=match.file_id,
            file_name=match.file_name,
            confidence=match.confidence,
            error=match.error,
        )


class RunSummaryOut(BaseModel):
    """Result of one album sync run."""

    album_id: str | None
    outcome: str
    message: str
    total: int
    already_synced: int
    synced_primary: int
    synced_fallback: int
    failed: int
    matches: list[TrackMatchOut]

    @classmethod
    def from_entity(cls, summary: RunSummary) -> "RunSummaryOut":
        return cls(
            album_id=summary.album_id,
            outcome=summary.outcome.value,
            message=summary.message,
            total=summary.total,
            already_synced=summary.already_synced,
            synced_primary=summary.synced_primary,
            synced_fallback=summary.synced_fallback,
            failed=summary.failed,
            matches=[TrackMatchOut.from_entity(m) for m in summary.matches],
        )


class TrackStatusOut(BaseModel):
    """Live status per requested track id; ``None`` means idle."""

    statuses: dict[str, str | None]


class TrackMappingOut(BaseModel):
    track_id: str
    track_title: str
    track_position: int | None
    file_id: int
    file_name: str
    file_path: str
    has_direct_link: bool

    @classmethod
    def from_entity(cls, mapping: TrackMapping) -> "TrackMappingOut":
        return cls(
            track_id=mapping.track_id,
            track_title=mapping.track_title,
            track_position=mapping.track_position,
            file_id=mapping.file_id,
            file_name=mapping.file_name,
            file_path=mapping.file_path,
            has_direct_link=mapping.direct_link is not None,
        )


class FallbackMappingOut(BaseModel):
    track_id: str
    external_reference_id: str
    title: str
    duration_seconds: int
    uploader_label: str | None

    @classmethod
    def from_entity(cls, mapping: FallbackMapping) -> "FallbackMappingOut":
        return cls(
            track_id=mapping.track_id,
            external_reference_id=mapping.external_reference_id,
            title=mapping.title,
            duration_seconds=mapping.duration_seconds,
            uploader_label=mapping.uploader_label,
        )


class AlbumMappingOut(BaseModel):
    """Stored bundle mapping of an album with its track mappings."""

    album_id: str
    bundle_id: str
    bundle_title: str
    album_title: str
    artist_name: str
    tracks: list[TrackMappingOut]

    @classmethod
    def from_entity(
        cls, mapping: AlbumMapping, tracks: list[TrackMapping]
    ) -> "AlbumMappingOut":
        return cls(
            album_id=mapping.album_id,
            bundle_id=mapping.bundle_id,
            bundle_title=mapping.bundle_title,
            album_title=mapping.album_title,
            artist_name=mapping.artist_name,
            tracks=[TrackMappingOut.from_entity(t) for t in tracks],
        )
