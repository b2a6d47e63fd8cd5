"""Tests for TrackStatusRepository."""

import threading
from unittest.mock import MagicMock

import pytest

from riffsync.application.services.status_broadcaster import (
    StatusSnapshot,
    TrackStatusRepository,
)


@pytest.fixture
def status() -> TrackStatusRepository:
    return TrackStatusRepository()


def _assert_disjoint(snapshot: StatusSnapshot) -> None:
    assert not snapshot.syncing & snapshot.downloading
    assert not snapshot.syncing & snapshot.synced
    assert not snapshot.downloading & snapshot.synced


class TestTransitions:
    """A track sits in at most one of the three sets."""

    def test_full_lifecycle(self, status: TrackStatusRepository) -> None:
        status.mark_syncing("t1")
        assert status.is_syncing("t1")

        status.mark_downloading("t1")
        assert status.is_downloading("t1")
        assert not status.is_syncing("t1")

        status.mark_synced("t1")
        assert status.is_synced("t1")
        assert not status.is_downloading("t1")
        _assert_disjoint(status.snapshot())

    def test_clear_forgets_track(self, status: TrackStatusRepository) -> None:
        status.mark_syncing("t1")
        status.clear("t1")
        assert status.snapshot().status_of("t1") is None

    def test_resync_moves_synced_back_to_syncing(self, status: TrackStatusRepository) -> None:
        status.mark_synced("t1")
        status.mark_syncing("t1")
        assert status.snapshot().status_of("t1") == "syncing"
        _assert_disjoint(status.snapshot())

    def test_hydrate_skips_transient_tracks(self, status: TrackStatusRepository) -> None:
        status.mark_downloading("t2")

        status.hydrate_synced(["t1", "t2"])

        assert status.is_synced("t1")
        assert status.is_downloading("t2")
        assert not status.is_synced("t2")

    def test_concurrent_marks_stay_disjoint(self, status: TrackStatusRepository) -> None:
        def worker(prefix: str) -> None:
            for i in range(200):
                track_id = f"t{i % 10}"
                if prefix == "a":
                    status.mark_syncing(track_id)
                    status.mark_synced(track_id)
                else:
                    status.mark_downloading(track_id)
                    status.clear(track_id)

        threads = [threading.Thread(target=worker, args=(p,)) for p in ("a", "b", "a", "b")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        _assert_disjoint(status.snapshot())


class TestSnapshot:
    def test_snapshot_is_immutable_copy(self, status: TrackStatusRepository) -> None:
        status.mark_syncing("t1")
        snapshot = status.snapshot()

        status.mark_synced("t1")

        assert snapshot.status_of("t1") == "syncing"
        assert isinstance(snapshot.syncing, frozenset)


class TestListeners:
    """Test change notifications."""

    def test_listener_gets_snapshot_on_every_change(self, status: TrackStatusRepository) -> None:
        listener = MagicMock()
        status.subscribe(listener)

        status.mark_syncing("t1")
        status.mark_synced("t1")

        assert listener.call_count == 2
        last_snapshot = listener.call_args.args[0]
        assert last_snapshot.synced == frozenset({"t1"})

    def test_unsubscribe(self, status: TrackStatusRepository) -> None:
        listener = MagicMock()
        unsubscribe = status.subscribe(listener)

        unsubscribe()
        status.mark_syncing("t1")

        listener.assert_not_called()

    def test_broken_listener_does_not_block_others(self, status: TrackStatusRepository) -> None:
        broken = MagicMock(side_effect=RuntimeError("ui went away"))
        healthy = MagicMock()
        status.subscribe(broken)
        status.subscribe(healthy)

        status.mark_syncing("t1")

        healthy.assert_called_once()
        assert status.is_syncing("t1")
