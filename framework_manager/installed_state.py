"""
Installed-state persistence with a short-lived in-memory cache.

The installed-frameworks.json file is the one piece of mutable shared state.
Reads are served from a TTL cache; every read-modify-write goes through
transaction(), which serializes writers on a lock shared by every store
opened on the same file and always starts from the persisted state. An
unreadable file is copied aside before a transaction replaces it.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator

from .file_gateway import LocalFileGateway
from .models import InstalledState

logger = logging.getLogger(__name__)

STATE_FILE = "installed-frameworks.json"

# Suffix of the copy kept when an unreadable state file is about to be rewritten
CORRUPT_SUFFIX = ".corrupt"

# Cache time-to-live for repeated reads
DEFAULT_CACHE_TTL_SECONDS = 5.0

# Writer locks shared by every store on the same state file
_PATH_LOCKS: dict[Path, threading.RLock] = {}
_PATH_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.RLock:
    key = Path(os.path.realpath(path))
    with _PATH_LOCKS_GUARD:
        lock = _PATH_LOCKS.get(key)
        if lock is None:
            lock = _PATH_LOCKS[key] = threading.RLock()
        return lock


class InstalledStateStore:
    """Owns the installed-state file, its cached value and the writer lock."""

    def __init__(
        self,
        path: str | Path,
        gateway: LocalFileGateway | None = None,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize installed-state store.

        Args:
            path: Location of the persisted state file
            gateway: File gateway used for reads and writes
            ttl_seconds: How long a cached read stays valid
            clock: Monotonic time source (injectable for tests)
        """
        self.path = Path(path)
        self.gateway = gateway or LocalFileGateway()
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: InstalledState | None = None
        self._cache_time = 0.0
        self._lock = _lock_for(self.path)

    def read(self) -> InstalledState:
        """
        Return the installed state, from cache while it is younger than the TTL.

        A missing state file yields an empty state. The returned object is a
        copy; mutating it does not affect the cache.
        """
        with self._lock:
            if self._cache is not None and (self._clock() - self._cache_time) < self.ttl_seconds:
                logger.debug("Installed state served from cache")
                return self._cache.copy()

            state = self._load()
            self._cache = state
            self._cache_time = self._clock()
            return state.copy()

    def write(self, state: InstalledState) -> None:
        """Persist state and refresh the cache with the same value."""
        with self._lock:
            payload = json.dumps(state.to_dict(), indent=2, ensure_ascii=False) + "\n"
            self.gateway.write(self.path, payload.encode("utf-8"))
            self._cache = state.copy()
            self._cache_time = self._clock()
            logger.debug(f"Persisted installed state ({len(state.frameworks)} records) to {self.path}")

    def invalidate(self) -> None:
        """Drop the cached value; the persisted file is untouched."""
        with self._lock:
            self._cache = None
            self._cache_time = 0.0

    @contextmanager
    def transaction(self) -> Iterator[InstalledState]:
        """
        Serialized read-modify-write of the installed state.

        Holds the store lock for the whole block, yields the freshly persisted
        state for mutation, and writes it back when the block exits normally
        and the state changed. If the block raises, nothing is written.

        Example:
            with store.transaction() as state:
                state.remove("tdd-bdd")
        """
        with self._lock:
            state = self._load(preserve_corrupt=True)
            before = state.to_dict()
            yield state
            if state.to_dict() != before:
                self.write(state)
            else:
                self._cache = state.copy()
                self._cache_time = self._clock()

    def _load(self, preserve_corrupt: bool = False) -> InstalledState:
        if not self.gateway.exists(self.path):
            return InstalledState()

        raw = self.gateway.read(self.path)
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable installed state {self.path}: {e}")
            data = None
        else:
            if not isinstance(data, dict):
                logger.warning(f"Ignoring malformed installed state {self.path}")
                data = None
        if data is None:
            if preserve_corrupt:
                self._preserve_corrupt()
            return InstalledState()
        return InstalledState.from_dict(data)

    def _preserve_corrupt(self) -> None:
        corrupt_path = self.path.with_name(self.path.name + CORRUPT_SUFFIX)
        self.gateway.copy(self.path, corrupt_path)
        logger.warning(f"Kept a copy of the unreadable state at {corrupt_path}")
