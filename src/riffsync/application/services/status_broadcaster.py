"""Live per-track sync status.

Hey future me - this is what the UI asks "is this track synced / syncing /
downloading right now?". It is an explicit object, built once at startup and
injected everywhere (use cases, API dependencies). Do NOT turn it back into
module-level sets: tests need fresh instances and the API reads it from other
threads, hence the RLock.

Rules:
- the three sets are pairwise disjoint, every mark_* moves a track between them
- there is no "failed" set; a failed track is simply cleared
- listeners get an immutable snapshot after every change, outside the lock
"""

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusSnapshot:
    """Immutable view of the three status sets."""

    syncing: frozenset[str]
    downloading: frozenset[str]
    synced: frozenset[str]

    def status_of(self, track_id: str) -> str | None:
        if track_id in self.synced:
            return "synced"
        if track_id in self.downloading:
            return "downloading"
        if track_id in self.syncing:
            return "syncing"
        return None


StatusListener = Callable[[StatusSnapshot], None]


class TrackStatusRepository:
    """Thread-safe holder of per-track transient and synced state."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._syncing: set[str] = set()
        self._downloading: set[str] = set()
        self._synced: set[str] = set()
        self._listeners: list[StatusListener] = []

    # === Transitions ===

    def mark_syncing(self, track_id: str) -> None:
        with self._lock:
            self._downloading.discard(track_id)
            self._synced.discard(track_id)
            self._syncing.add(track_id)
        self._notify()

    def mark_downloading(self, track_id: str) -> None:
        with self._lock:
            self._syncing.discard(track_id)
            self._synced.discard(track_id)
            self._downloading.add(track_id)
        self._notify()

    def mark_synced(self, track_id: str) -> None:
        with self._lock:
            self._syncing.discard(track_id)
            self._downloading.discard(track_id)
            self._synced.add(track_id)
        self._notify()

    def clear(self, track_id: str) -> None:
        """Forget a track (terminal failure or reset)."""
        with self._lock:
            self._syncing.discard(track_id)
            self._downloading.discard(track_id)
            self._synced.discard(track_id)
        self._notify()

    def hydrate_synced(self, track_ids: Iterable[str]) -> None:
        """Mark tracks already resolved in the mapping store as synced.

        Tracks currently syncing or downloading keep their transient state.
        """
        with self._lock:
            for track_id in track_ids:
                if track_id in self._syncing or track_id in self._downloading:
                    continue
                self._synced.add(track_id)
        self._notify()

    # === Queries ===

    def is_synced(self, track_id: str) -> bool:
        with self._lock:
            return track_id in self._synced

    def is_syncing(self, track_id: str) -> bool:
        with self._lock:
            return track_id in self._syncing

    def is_downloading(self, track_id: str) -> bool:
        with self._lock:
            return track_id in self._downloading

    def snapshot(self) -> StatusSnapshot:
        with self._lock:
            return StatusSnapshot(
                syncing=frozenset(self._syncing),
                downloading=frozenset(self._downloading),
                synced=frozenset(self._synced),
            )

    # === Listeners ===

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot()
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception as e:
                # One broken listener must not starve the others
                logger.warning(f"Status listener {listener!r} failed: {e}")


__all__ = ["StatusListener", "StatusSnapshot", "TrackStatusRepository"]
