"""Domain entities for album sync.

Three groups live here:
1. Run inputs (CanonicalTrack) and provider data (CandidateFile, BundleSearchResult,
   ResolveResponse, FallbackReference) - read-only during a run.
2. Run-scoped results (TrackMatch, ResolveOutcome, SyncProgress, RunSummary).
3. Persisted mappings (AlbumMapping, TrackMapping, FallbackMapping) as seen by
   the application layer; the ORM models mirror them.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

AUDIO_EXTENSIONS: tuple[str, ...] = (".mp3", ".flac", ".m4a", ".wav", ".aac", ".ogg")


def is_audio_filename(filename: str) -> bool:
    """Check whether a filename looks like an audio file."""
    return filename.lower().endswith(AUDIO_EXTENSIONS)


# Hey future me - the order of this state machine is the whole contract with the UI:
# pending -> syncing -> (downloading)? -> synced | failed. A new run is the only way back.
class TrackSyncState(str, Enum):
    """Per-track state within one album-sync run."""

    PENDING = "pending"
    SYNCING = "syncing"
    DOWNLOADING = "downloading"
    SYNCED = "synced"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state."""
        return self in {TrackSyncState.SYNCED, TrackSyncState.FAILED}

    def can_transition_to(self, target: "TrackSyncState") -> bool:
        """Check whether moving to ``target`` keeps the state monotonic."""
        return target in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS: dict[TrackSyncState, frozenset[TrackSyncState]] = {
    TrackSyncState.PENDING: frozenset(
        {TrackSyncState.SYNCING, TrackSyncState.SYNCED, TrackSyncState.FAILED}
    ),
    TrackSyncState.SYNCING: frozenset(
        {TrackSyncState.DOWNLOADING, TrackSyncState.SYNCED, TrackSyncState.FAILED}
    ),
    TrackSyncState.DOWNLOADING: frozenset(
        {TrackSyncState.SYNCED, TrackSyncState.FAILED}
    ),
    TrackSyncState.SYNCED: frozenset(),
    TrackSyncState.FAILED: frozenset(),
}


class ResolveStatus(str, Enum):
    """Status of a select-and-resolve request at the content-fetch provider."""

    READY = "ready"
    DOWNLOADING = "downloading"
    QUEUED = "queued"
    ERROR = "error"
    DEAD = "dead"
    NOT_FOUND = "not_found"

    @property
    def is_pending(self) -> bool:
        """Provider is still preparing the file."""
        return self in {ResolveStatus.DOWNLOADING, ResolveStatus.QUEUED}

    @property
    def is_failure(self) -> bool:
        """Provider gave up on the file."""
        return self in {ResolveStatus.ERROR, ResolveStatus.DEAD, ResolveStatus.NOT_FOUND}


class ResolutionSource(str, Enum):
    """Which tier produced a playable reference."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


class RunOutcome(str, Enum):
    """Classification of a finished album-sync run."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


@dataclass(frozen=True)
class CanonicalTrack:
    """One track of the canonical album track list."""

    id: str
    title: str
    position: int
    album_id: str | None = None


@dataclass(frozen=True)
class CandidateFile:
    """A file inside a provider bundle."""

    id: int
    filename: str
    path: str
    parent_bundle_id: str


@dataclass
class BundleSearchResult:
    """A bundle offered by the content-fetch provider."""

    bundle_id: str
    title: str
    candidate_files: list[CandidateFile] = field(default_factory=list)
    size_label: str = "Unknown"
    source_label: str = "Unknown"

    @property
    def file_count(self) -> int:
        return len(self.candidate_files)


@dataclass(frozen=True)
class ResolveResponse:
    """Result of asking the provider to prepare specific files.

    A READY response always carries at least one stream; one without streams is
    downgraded to DOWNLOADING so callers keep polling.
    """

    status: ResolveStatus
    streams: tuple[str, ...] = ()
    progress: float = 0.0
    error: str | None = None

    def __post_init__(self) -> None:
        # Use object.__setattr__ because frozen=True
        if self.status == ResolveStatus.READY and not self.streams:
            object.__setattr__(self, "status", ResolveStatus.DOWNLOADING)
        if self.progress < 0.0:
            object.__setattr__(self, "progress", 0.0)
        if self.progress > 100.0:
            object.__setattr__(self, "progress", 100.0)

    @property
    def direct_link(self) -> str | None:
        return self.streams[0] if self.streams else None


@dataclass(frozen=True)
class FallbackReference:
    """Alternate playable reference from the secondary media-search provider."""

    external_id: str
    title: str
    duration_seconds: int
    uploader_label: str


@dataclass
class TrackMatch:
    """Pairing of a track with a bundle file, scoped to one run."""

    track_id: str
    file_id: int | None = None
    confidence: float = 0.0
    status: TrackSyncState = TrackSyncState.PENDING
    source: ResolutionSource | None = None
    file_name: str | None = None
    file_path: str | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        self.confidence = min(1.0, max(0.0, self.confidence))

    def advance(self, target: TrackSyncState) -> None:
        """Move to ``target``, rejecting regressions."""
        if self.status == target:
            return
        if not self.status.can_transition_to(target):
            raise ValueError(
                f"Track {self.track_id}: illegal transition {self.status.value} -> {target.value}"
            )
        self.status = target


@dataclass(frozen=True)
class ResolveOutcome:
    """Tagged result of one resolver strategy: resolved or not found."""

    resolved: bool
    source: ResolutionSource | None = None
    direct_link: str | None = None
    fallback: FallbackReference | None = None
    reason: str | None = None
    file: CandidateFile | None = None
    confidence: float = 0.0

    @classmethod
    def primary(
        cls, direct_link: str, file: CandidateFile | None = None, confidence: float = 0.0
    ) -> "ResolveOutcome":
        return cls(
            resolved=True,
            source=ResolutionSource.PRIMARY,
            direct_link=direct_link,
            file=file,
            confidence=confidence,
        )

    @classmethod
    def from_fallback(cls, reference: FallbackReference) -> "ResolveOutcome":
        return cls(resolved=True, source=ResolutionSource.FALLBACK, fallback=reference)

    @classmethod
    def not_found(cls, reason: str) -> "ResolveOutcome":
        return cls(resolved=False, reason=reason)


@dataclass(frozen=True)
class SyncProgress:
    """Incremental progress counter for one run."""

    synced: int
    failed: int
    total: int

    @property
    def done(self) -> int:
        return self.synced + self.failed


@dataclass
class RunSummary:
    """Run-level summary of an album sync."""

    album_id: str | None
    total: int
    already_synced: int = 0
    synced_primary: int = 0
    synced_fallback: int = 0
    failed: int = 0
    matches: list[TrackMatch] = field(default_factory=list)

    @property
    def synced(self) -> int:
        return self.already_synced + self.synced_primary + self.synced_fallback

    @property
    def outcome(self) -> RunOutcome:
        if self.failed == 0:
            return RunOutcome.SUCCESS
        if self.synced > 0:
            return RunOutcome.PARTIAL
        return RunOutcome.FAILURE

    @property
    def message(self) -> str:
        """One human-readable line for the whole run."""
        if self.outcome == RunOutcome.SUCCESS:
            return f"{self.synced}/{self.total} synced"
        if self.outcome == RunOutcome.PARTIAL:
            return f"{self.synced}/{self.total} synced, {self.failed} not found"
        return f"0/{self.total} — sync failed"


@dataclass(frozen=True)
class AlbumMapping:
    """Persisted album -> bundle association."""

    id: str
    album_id: str
    bundle_id: str
    bundle_title: str
    album_title: str = ""
    artist_name: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class TrackMapping:
    """Persisted track -> bundle file association."""

    album_mapping_id: str
    track_id: str
    file_id: int
    file_path: str
    file_name: str
    direct_link: str | None = None
    track_title: str = ""
    track_position: int | None = None


@dataclass(frozen=True)
class FallbackMapping:
    """Persisted track -> secondary provider reference."""

    track_id: str
    external_reference_id: str
    title: str
    duration_seconds: int = 0
    uploader_label: str | None = None


__all__ = [
    "AUDIO_EXTENSIONS",
    "is_audio_filename",
    "TrackSyncState",
    "ResolveStatus",
    "ResolutionSource",
    "RunOutcome",
    "CanonicalTrack",
    "CandidateFile",
    "BundleSearchResult",
    "ResolveResponse",
    "FallbackReference",
    "TrackMatch",
    "ResolveOutcome",
    "SyncProgress",
    "RunSummary",
    "AlbumMapping",
    "TrackMapping",
    "FallbackMapping",
]
