"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from riffsync.domain.entities import (
    AlbumMapping,
    BundleSearchResult,
    CandidateFile,
    CanonicalTrack,
    FallbackMapping,
    FallbackReference,
    ResolveOutcome,
    ResolveResponse,
    RunSummary,
    SyncProgress,
    TrackMapping,
    TrackSyncState,
)


# Hey future me, the two *Client ports speak the providers' raw JSON. The resolvers
# (infrastructure/providers) translate that into domain entities. Tests mock either
# layer depending on what they exercise.
class IContentFetchClient(ABC):
    """HTTP client for the primary content-fetch gateway."""

    @abstractmethod
    async def search(self, credential: str, query: str) -> dict[str, Any]:
        """Search bundles. Returns the raw gateway payload."""
        pass

    @abstractmethod
    async def select_files(
        self, credential: str, bundle_id: str, file_ids: list[int]
    ) -> dict[str, Any]:
        """Ask the gateway to prepare files. Returns the raw gateway payload."""
        pass


class IMediaSearchClient(ABC):
    """HTTP client for the secondary media-search provider."""

    @abstractmethod
    async def search(self, query: str) -> list[dict[str, Any]]:
        """Search playable items. Returns raw provider items."""
        pass


@dataclass(frozen=True)
class PollResult:
    """Outcome of waiting for a file to become ready."""

    success: bool
    direct_link: str | None = None
    reason: str | None = None
    elapsed_seconds: float = 0.0
    attempts: int = 0
    timed_out: bool = False  # deadline or stall, as opposed to a provider failure


class ISourceResolver(ABC):
    """Primary path: bundle search, select-and-resolve, bounded poll."""

    @abstractmethod
    async def search(self, credential: str, query: str) -> list[BundleSearchResult]:
        """Bundles containing at least one audio file."""
        pass

    @abstractmethod
    async def select_and_resolve(
        self, credential: str, bundle_id: str, file_ids: list[int]
    ) -> ResolveResponse:
        """Request the provider prepare specific files."""
        pass

    @abstractmethod
    async def poll(
        self,
        credential: str,
        bundle_id: str,
        file_id: int,
        max_wait_ms: int = 30000,
    ) -> PollResult:
        """Wait until the file is ready, fails, stalls or times out."""
        pass


class IFallbackResolver(ABC):
    """Secondary path: one best alternate reference per track."""

    @abstractmethod
    async def search(self, query: str) -> FallbackReference | None:
        """Best playable alternate for ``query`` or None."""
        pass

    @abstractmethod
    async def persist(self, track_id: str, reference: FallbackReference) -> None:
        """Upsert the FallbackMapping for ``track_id``."""
        pass


class IMappingRepository(ABC):
    """Durable album -> bundle and track -> reference associations."""

    @abstractmethod
    async def get_album_mapping(self, album_id: str) -> AlbumMapping | None:
        pass

    @abstractmethod
    async def create_album_mapping(
        self,
        album_id: str,
        bundle_id: str,
        bundle_title: str,
        album_title: str = "",
        artist_name: str = "",
    ) -> AlbumMapping:
        pass

    @abstractmethod
    async def replace_album_mapping(
        self,
        album_id: str,
        bundle_id: str,
        bundle_title: str,
        album_title: str = "",
        artist_name: str = "",
    ) -> AlbumMapping:
        """Delete the album's mapping (cascading its tracks) and insert a new one."""
        pass

    @abstractmethod
    async def upsert_track_mapping(self, mapping: TrackMapping) -> None:
        """Insert or overwrite the mapping keyed by track_id."""
        pass

    @abstractmethod
    async def set_direct_link(self, track_id: str, direct_link: str) -> None:
        pass

    @abstractmethod
    async def upsert_fallback_mapping(self, mapping: FallbackMapping) -> None:
        """Insert or overwrite the fallback mapping keyed by track_id."""
        pass

    @abstractmethod
    async def get_resolved_track_ids(self, track_ids: list[str]) -> set[str]:
        """Tracks with a direct link or a fallback mapping."""
        pass

    @abstractmethod
    async def get_track_mappings(self, track_ids: list[str]) -> list[TrackMapping]:
        pass

    @abstractmethod
    async def get_track_mappings_for_album(
        self, album_mapping_id: str
    ) -> list[TrackMapping]:
        """Track mappings under one album mapping, in album order."""
        pass

    @abstractmethod
    async def get_fallback_mappings(self, track_ids: list[str]) -> list[FallbackMapping]:
        pass


@dataclass
class ResolveContext:
    """Per-run state shared by the resolver strategies.

    ``claimed_file_ids`` enforces at-most-once file assignment within a run.
    """

    credential: str
    album_title: str
    artist_name: str
    bundle: BundleSearchResult | None = None
    album_mapping: AlbumMapping | None = None
    claimed_file_ids: set[int] = field(default_factory=set)
    on_state_change: Callable[[CanonicalTrack, TrackSyncState], None] | None = None

    @property
    def files(self) -> list[CandidateFile]:
        return self.bundle.candidate_files if self.bundle else []

    def report_state(self, track: CanonicalTrack, state: TrackSyncState) -> None:
        """Forward an intermediate per-track state (e.g. downloading) to the run."""
        if self.on_state_change is not None:
            self.on_state_change(track, state)


class ITrackResolver(ABC):
    """One tier of the resolution chain.

    Strategies are tried in order until one returns a resolved outcome.
    Adding a source means adding a strategy, not touching the orchestrator.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def try_resolve(
        self, track: CanonicalTrack, context: ResolveContext
    ) -> ResolveOutcome:
        pass


class ITrackPacer(ABC):
    """Backpressure policy between tracks of a sequential run."""

    @abstractmethod
    async def wait_turn(self, index: int) -> None:
        """Wait before processing the track at ``index`` (0-based)."""
        pass


class ISyncReporter(ABC):
    """Receives run progress and the single terminal notification."""

    @abstractmethod
    async def on_progress(self, progress: SyncProgress) -> None:
        pass

    @abstractmethod
    async def on_complete(self, summary: RunSummary) -> None:
        pass


__all__ = [
    "IContentFetchClient",
    "IMediaSearchClient",
    "PollResult",
    "ISourceResolver",
    "IFallbackResolver",
    "IMappingRepository",
    "ResolveContext",
    "ITrackResolver",
    "ITrackPacer",
    "ISyncReporter",
]
