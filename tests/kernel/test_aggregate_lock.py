"""
Tests for AggregateLockRegistry: per-aggregate serialization of writers
and eviction of released locks.
"""

import threading
import time
from uuid import uuid4

from sourcing_kernel.services.aggregate_lock import (
    AggregateLockRegistry,
    default_lock_registry,
)


def test_same_aggregate_is_serialized():
    registry = AggregateLockRegistry()
    aggregate_id = uuid4()
    active = []
    overlaps = []

    def writer():
        with registry.hold("bid", aggregate_id):
            active.append(1)
            if len(active) > 1:
                overlaps.append(True)
            time.sleep(0.01)
            active.pop()

    threads = [threading.Thread(target=writer) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert overlaps == []


def test_hold_is_reentrant():
    registry = AggregateLockRegistry()
    aggregate_id = uuid4()
    with registry.hold("rfq", aggregate_id):
        with registry.hold("rfq", aggregate_id):
            pass


def test_hold_many_accepts_duplicates_and_any_order():
    registry = AggregateLockRegistry()
    rfq_id, bid_id = uuid4(), uuid4()
    with registry.hold_many(("rfq", rfq_id), ("bid", bid_id), ("rfq", rfq_id)):
        with registry.hold_many(("bid", bid_id), ("rfq", rfq_id)):
            pass


def test_different_aggregates_do_not_block():
    registry = AggregateLockRegistry()
    first, second = uuid4(), uuid4()
    acquired = threading.Event()

    def other():
        with registry.hold("bid", second):
            acquired.set()

    with registry.hold("bid", first):
        t = threading.Thread(target=other)
        t.start()
        assert acquired.wait(timeout=1)
        t.join()


def test_default_registry_is_shared():
    assert default_lock_registry() is default_lock_registry()


def test_locks_are_evicted_once_released():
    registry = AggregateLockRegistry()
    rfq_id, bid_id = uuid4(), uuid4()
    with registry.hold("rfq", rfq_id):
        with registry.hold("rfq", rfq_id):
            assert registry.active_count() == 1
        assert registry.active_count() == 1
    with registry.hold_many(("rfq", rfq_id), ("bid", bid_id)):
        assert registry.active_count() == 2
    assert registry.active_count() == 0


def test_lock_survives_while_another_thread_waits():
    registry = AggregateLockRegistry()
    aggregate_id = uuid4()
    waiting = threading.Event()
    done = threading.Event()

    def waiter():
        waiting.set()
        with registry.hold("bid", aggregate_id):
            done.set()

    with registry.hold("bid", aggregate_id):
        t = threading.Thread(target=waiter)
        t.start()
        assert waiting.wait(timeout=1)
        time.sleep(0.01)
        assert not done.is_set()
    t.join(timeout=1)
    assert done.is_set()
    assert registry.active_count() == 0


def test_many_aggregates_leave_nothing_behind():
    registry = AggregateLockRegistry()
    for _ in range(100):
        with registry.hold("bid", uuid4()):
            pass
    assert registry.active_count() == 0
