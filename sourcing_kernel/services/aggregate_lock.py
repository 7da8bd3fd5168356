"""
AggregateLockRegistry -- at most one in-flight mutation per aggregate id.

Embedded-collection upserts (evaluation results, bid items) are
read-modify-write over the whole aggregate.  Two evaluators scoring the same
bid concurrently must not race and drop a result, so every service mutation
runs inside ``registry.hold(kind, aggregate_id)``.

A lock lives only while some thread holds or waits on it; the last one out
evicts it, so the registry stays bounded by the number of aggregates in use.

This serializes writers inside one process.  Across processes the ORM
``version`` column (optimistic locking) is what detects the conflict.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from sourcing_kernel.logging_config import get_logger

logger = get_logger("services.aggregate_lock")

LockKey = tuple[str, UUID]


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.users = 0


class AggregateLockRegistry:
    """Hands out one re-entrant lock per ``(kind, aggregate_id)``."""

    def __init__(self) -> None:
        self._entries: dict[LockKey, _Entry] = {}
        self._guard = threading.Lock()

    def active_count(self) -> int:
        """Number of aggregates currently held or waited on."""
        with self._guard:
            return len(self._entries)

    def _checkout(self, key: LockKey) -> threading.RLock:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1
            return entry.lock

    def _checkin(self, key: LockKey) -> None:
        with self._guard:
            entry = self._entries[key]
            entry.users -= 1
            if entry.users == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, kind: str, aggregate_id: UUID) -> Iterator[None]:
        key = (kind, aggregate_id)
        lock = self._checkout(key)
        try:
            with lock:
                logger.debug(
                    "aggregate_lock_acquired",
                    extra={"kind": kind, "aggregate_id": str(aggregate_id)},
                )
                yield
        finally:
            self._checkin(key)

    @contextmanager
    def hold_many(self, *keys: LockKey) -> Iterator[None]:
        """Acquire several locks in a stable order to avoid deadlock."""
        ordered = sorted(set(keys), key=lambda k: (k[0], str(k[1])))
        locks = [self._checkout(key) for key in ordered]
        acquired: list[threading.RLock] = []
        try:
            for lock in locks:
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in ordered:
                self._checkin(key)


_default_registry = AggregateLockRegistry()


def default_lock_registry() -> AggregateLockRegistry:
    """Process-wide registry shared by services that are not given one."""
    return _default_registry
