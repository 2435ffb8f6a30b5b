"""
Tests for installed-state persistence and caching (framework_manager/installed_state.py).
"""

import json
import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from framework_manager.file_gateway import LocalFileGateway
from framework_manager.installed_state import CORRUPT_SUFFIX, STATE_FILE, InstalledStateStore
from framework_manager.models import InstalledRecord, InstalledState


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.fixture
def state_path(tmp_path):
    return tmp_path / ".metadata" / STATE_FILE


class TestInstalledStateRead:
    """Tests for reading installed state."""

    def test_missing_file_is_empty(self, state_path):
        """Test absent file yields an empty state."""
        store = InstalledStateStore(state_path)
        assert store.read().frameworks == []

    def test_read_existing_file(self, state_path):
        """Test records are parsed from camelCase JSON."""
        state_path.parent.mkdir(parents=True)
        state_path.write_text(json.dumps({
            "frameworks": [
                {"id": "a", "version": "1.0.0", "installedAt": "t", "customized": True, "customizedAt": "t2"},
            ],
        }))
        record = InstalledStateStore(state_path).read().get("a")
        assert record.version == "1.0.0"
        assert record.customized is True
        assert record.customized_at == "t2"

    def test_corrupt_file_is_empty(self, state_path):
        """Test unreadable JSON degrades to an empty state."""
        state_path.parent.mkdir(parents=True)
        state_path.write_text("[1, 2")
        assert InstalledStateStore(state_path).read().frameworks == []

    def test_read_returns_copy(self, state_path):
        """Test callers cannot mutate the cached value."""
        store = InstalledStateStore(state_path)
        state = store.read()
        state.upsert(InstalledRecord("a", "1.0.0", "t"))
        assert store.read().frameworks == []


class TestInstalledStateCache:
    """Tests for TTL caching."""

    def test_cache_within_ttl(self, state_path):
        """Test repeated reads inside the TTL hit the cache."""
        clock = FakeClock()
        gateway = MagicMock(wraps=LocalFileGateway())
        store = InstalledStateStore(state_path, gateway, ttl_seconds=5.0, clock=clock)
        store.write(InstalledState([InstalledRecord("a", "1.0.0", "t")]))

        # Out-of-band edit is not seen while cached
        state_path.write_text(json.dumps({"frameworks": []}))
        clock.now += 4.9
        assert store.read().ids() == ["a"]
        gateway.read.assert_not_called()

    def test_cache_expires_after_ttl(self, state_path):
        """Test reads after the TTL go back to disk."""
        clock = FakeClock()
        store = InstalledStateStore(state_path, ttl_seconds=5.0, clock=clock)
        store.write(InstalledState([InstalledRecord("a", "1.0.0", "t")]))

        state_path.write_text(json.dumps({"frameworks": []}))
        clock.now += 5.0
        assert store.read().ids() == []

    def test_invalidate(self, state_path):
        """Test invalidate forces a re-read."""
        store = InstalledStateStore(state_path, ttl_seconds=60)
        store.write(InstalledState([InstalledRecord("a", "1.0.0", "t")]))
        state_path.write_text(json.dumps({"frameworks": []}))
        store.invalidate()
        assert store.read().ids() == []

    def test_zero_ttl_never_caches(self, state_path):
        """Test a zero TTL reads the file every time."""
        gateway = MagicMock(wraps=LocalFileGateway())
        store = InstalledStateStore(state_path, gateway, ttl_seconds=0)
        store.write(InstalledState([InstalledRecord("a", "1.0.0", "t")]))
        store.read()
        store.read()
        assert gateway.read.call_count == 2


class TestInstalledStateWrite:
    """Tests for persisting state."""

    def test_write_format(self, state_path):
        """Test persisted JSON shape and trailing newline."""
        store = InstalledStateStore(state_path)
        store.write(InstalledState([InstalledRecord("a", "1.0.0", "2025-01-01T00:00:00.000Z")]))

        text = state_path.read_text()
        assert text.endswith("\n")
        assert json.loads(text) == {
            "frameworks": [
                {"id": "a", "version": "1.0.0", "installedAt": "2025-01-01T00:00:00.000Z", "customized": False},
            ],
        }

    def test_write_failure_propagates(self, state_path):
        """Test gateway errors surface to the caller."""
        gateway = MagicMock()
        gateway.write.side_effect = OSError("read-only file system")
        store = InstalledStateStore(state_path, gateway)
        with pytest.raises(OSError):
            store.write(InstalledState())


class TestTransaction:
    """Tests for serialized read-modify-write."""

    def test_transaction_persists_changes(self, state_path):
        """Test mutations inside the block are written."""
        store = InstalledStateStore(state_path)
        with store.transaction() as state:
            state.upsert(InstalledRecord("a", "1.0.0", "t"))
        assert json.loads(state_path.read_text())["frameworks"][0]["id"] == "a"
        assert store.read().ids() == ["a"]

    def test_transaction_skips_unchanged_write(self, state_path):
        """Test an unchanged state is not rewritten."""
        gateway = MagicMock(wraps=LocalFileGateway())
        store = InstalledStateStore(state_path, gateway)
        with store.transaction():
            pass
        gateway.write.assert_not_called()

    def test_transaction_rolls_back_on_error(self, state_path):
        """Test nothing is written when the block raises."""
        store = InstalledStateStore(state_path)
        with pytest.raises(RuntimeError):
            with store.transaction() as state:
                state.upsert(InstalledRecord("a", "1.0.0", "t"))
                raise RuntimeError("boom")
        assert not state_path.exists()
        assert store.read().ids() == []

    def test_transaction_reads_persisted_state_not_cache(self, state_path):
        """Test a transaction sees out-of-band edits even while cached."""
        store = InstalledStateStore(state_path, ttl_seconds=60)
        store.write(InstalledState([InstalledRecord("a", "1.0.0", "t")]))
        state_path.write_text(json.dumps({
            "frameworks": [{"id": "b", "version": "1.0.0", "installedAt": "t"}],
        }))
        with store.transaction() as state:
            assert state.ids() == ["b"]

    def test_concurrent_transactions_lose_no_updates(self, state_path):
        """Test parallel upserts of distinct ids all persist."""
        store = InstalledStateStore(state_path)
        ids = [f"fw-{i}" for i in range(20)]
        barrier = threading.Barrier(len(ids))

        def add(framework_id):
            barrier.wait()
            with store.transaction() as state:
                state.upsert(InstalledRecord(framework_id, "1.0.0", "t"))

        with ThreadPoolExecutor(max_workers=len(ids)) as executor:
            list(executor.map(add, ids))

        store.invalidate()
        assert sorted(store.read().ids()) == sorted(ids)

    def test_separate_stores_on_one_file_lose_no_updates(self, state_path):
        """Test stores opened independently on the same file serialize writers."""
        ids = [f"fw-{i}" for i in range(8)]
        stores = [InstalledStateStore(state_path) for _ in ids]
        barrier = threading.Barrier(len(ids))

        def add(store, framework_id):
            barrier.wait()
            with store.transaction() as state:
                state.upsert(InstalledRecord(framework_id, "1.0.0", "t"))

        with ThreadPoolExecutor(max_workers=len(ids)) as executor:
            list(executor.map(add, stores, ids))

        assert sorted(InstalledStateStore(state_path).read().ids()) == sorted(ids)

    def test_stores_share_lock_through_relative_path(self, state_path, monkeypatch):
        """Test the writer lock is keyed by the resolved file location."""
        monkeypatch.chdir(state_path.parent.parent)
        relative = InstalledStateStore(f".metadata/{STATE_FILE}")
        absolute = InstalledStateStore(state_path)
        assert relative._lock is absolute._lock
        assert InstalledStateStore(state_path.with_name("other.json"))._lock is not absolute._lock


class TestCorruptState:
    """Tests for unreadable state files."""

    def test_transaction_keeps_copy_of_corrupt_file(self, state_path):
        """Test the unreadable file is copied aside before being replaced."""
        state_path.parent.mkdir(parents=True)
        state_path.write_text("{not json")
        store = InstalledStateStore(state_path)

        with store.transaction() as state:
            state.upsert(InstalledRecord("a", "1.0.0", "t"))

        corrupt = state_path.with_name(STATE_FILE + CORRUPT_SUFFIX)
        assert corrupt.read_text() == "{not json"
        assert store.read().ids() == ["a"]

    def test_non_object_json_is_kept_aside(self, state_path):
        """Test a JSON document that is not an object counts as corrupt."""
        state_path.parent.mkdir(parents=True)
        state_path.write_text("[1, 2]")
        with InstalledStateStore(state_path).transaction() as state:
            assert state.frameworks == []
        assert state_path.with_name(STATE_FILE + CORRUPT_SUFFIX).read_text() == "[1, 2]"

    def test_plain_read_leaves_no_copy(self, state_path):
        """Test read() alone does not create the corrupt copy."""
        state_path.parent.mkdir(parents=True)
        state_path.write_text("{not json")
        InstalledStateStore(state_path).read()
        assert not state_path.with_name(STATE_FILE + CORRUPT_SUFFIX).exists()
