#!/usr/bin/env python3
"""
Type Racer Session Registry Test Suite
Tests capacity limits, idempotent removal and concurrent registration

Usage: pytest test_registry.py
"""

import threading

from conftest import FakeSession
from type_racer.tr_registry import Admission, SessionRegistry


def test_rejects_when_full(registry):
    sessions = [FakeSession(f"p{i}") for i in range(4)]
    assert all(registry.register(s) is Admission.ACCEPTED for s in sessions)

    extra = FakeSession("p5")
    assert registry.register(extra) is Admission.REJECTED
    assert registry.count() == 4
    assert extra not in registry.sessions()


def test_unregister_is_idempotent(registry):
    s = FakeSession("A")
    registry.register(s)
    assert registry.unregister(s) is True
    assert registry.unregister(s) is False
    assert registry.count() == 0


def test_unregister_name_removes_first_match(registry):
    first, second = FakeSession("Sam"), FakeSession("Sam")
    registry.register(first)
    registry.register(second)
    assert registry.unregister_name("Sam") is True
    assert registry.sessions() == [second]
    assert registry.unregister_name("nobody") is False


def test_register_twice_counts_once(registry):
    s = FakeSession("A")
    registry.register(s)
    registry.register(s)
    assert registry.count() == 1


def test_joined_skips_sessions_without_name(registry):
    pending, named = FakeSession(None), FakeSession("A")
    registry.register(pending)
    registry.register(named)
    assert registry.count() == 2
    assert registry.joined() == [named]


def test_concurrent_registration_respects_capacity(registry):
    """
    What: 20 threads register at once
    Expected: exactly MAX_PLAYERS are admitted, the rest see REJECTED
    """
    results = []
    lock = threading.Lock()
    barrier = threading.Barrier(20)

    def worker(i):
        barrier.wait()
        outcome = registry.register(FakeSession(f"p{i}"))
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(Admission.ACCEPTED) == 4
    assert results.count(Admission.REJECTED) == 16
    assert registry.count() == 4


def test_close_all_drops_every_session(registry):
    sessions = [FakeSession("A"), FakeSession("B")]
    for s in sessions:
        registry.register(s)
    registry.close_all()
    assert all(s.dropped for s in sessions)


def test_log_entries_are_structured_newest_first(registry):
    registry.log("first")
    registry.log("second", level="warning", source="session", name="A")
    newest = registry.logs[0]
    assert newest["msg"] == "second"
    assert newest["level"] == "warning"
    assert newest["source"] == "session"
    assert newest["name"] == "A"
    assert "ts" in newest

    registry.clear_logs()
    assert len(registry.logs) == 1


def test_log_is_bounded():
    registry = SessionRegistry(log_max=3)
    for i in range(10):
        registry.log(f"entry {i}")
    assert [e["msg"] for e in registry.logs] == ["entry 9", "entry 8", "entry 7"]


def test_snapshot(registry):
    registry.register(FakeSession("A"))
    registry.register(FakeSession(None))
    assert registry.snapshot() == {"connected": 2, "capacity": 4, "names": ["A"]}
