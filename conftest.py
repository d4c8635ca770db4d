"""
Shared fixtures for the Type Racer test suite.

Coordinator tests run without the worker thread: a manual scheduler and a
fake clock make every step explicit, and coordinator.drain() applies the
queued events on the test thread.
"""

import socket
import time
from typing import Callable, List, Optional

import pytest

from type_racer.tr_coordinator import Join, Leave, Progress, RaceCoordinator
from type_racer.tr_registry import SessionRegistry
from type_racer.tr_sentences import SentenceBank


class FakeSession:
    """Stands in for ClientSession: records what the broadcaster sends."""

    def __init__(self, name: Optional[str], ok: bool = True) -> None:
        self.name = name
        self.ok = ok
        self.sent: List[str] = []
        self.dropped = False

    def send(self, message: str) -> bool:
        if not self.ok:
            return False
        self.sent.append(message)
        return True

    def drop(self) -> None:
        self.dropped = True

    def __repr__(self) -> str:
        return f"FakeSession({self.name!r})"


class ManualScheduler:
    """Countdown that only advances when the test says so."""

    def __init__(self) -> None:
        self.seconds = None
        self.cancelled = False
        self._on_tick = None
        self._on_complete = None

    def start(self, seconds, on_tick, on_complete) -> None:
        self.seconds = seconds
        self._on_tick = on_tick
        self._on_complete = on_complete

    def cancel(self) -> None:
        self.cancelled = True

    def tick(self, remaining: int) -> None:
        self._on_tick(remaining)

    def run_out(self) -> None:
        for remaining in range(self.seconds, 0, -1):
            self._on_tick(remaining)
        self._on_complete()


class FakeClock:
    def __init__(self, start_ms: int = 1_000_000) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RaceHarness:
    """Coordinator wired to fakes, plus helpers to drive it."""

    def __init__(self, sentences=("cat dog",)) -> None:
        self.registry = SessionRegistry()
        self.clock = FakeClock()
        self.schedulers: List[ManualScheduler] = []
        self.coordinator = RaceCoordinator(
            self.registry,
            SentenceBank(list(sentences)),
            clock=self.clock,
            scheduler_factory=self._new_scheduler,
        )

    def _new_scheduler(self) -> ManualScheduler:
        s = ManualScheduler()
        self.schedulers.append(s)
        return s

    @property
    def scheduler(self) -> ManualScheduler:
        return self.schedulers[-1]

    def join(self, name: str) -> FakeSession:
        session = FakeSession(name)
        self.registry.register(session)
        self.coordinator.submit(Join(session))
        self.coordinator.drain()
        return session

    def leave(self, session: FakeSession) -> None:
        self.registry.unregister(session)
        self.coordinator.submit(Leave(session))
        self.coordinator.drain()

    def progress(self, session: FakeSession, value: int) -> None:
        self.coordinator.submit(Progress(session, value))
        self.coordinator.drain()

    def run_countdown(self) -> None:
        self.scheduler.run_out()
        self.coordinator.drain()

    def start_race(self, *names: str) -> List[FakeSession]:
        sessions = [self.join(n) for n in names]
        self.run_countdown()
        return sessions


@pytest.fixture()
def harness() -> RaceHarness:
    return RaceHarness()


@pytest.fixture()
def registry() -> SessionRegistry:
    return SessionRegistry()


# ---------------- Socket helpers ----------------

class LineClient:
    """Minimal blocking racer used by the socket tests."""

    def __init__(self, port: int, name: Optional[str] = None, timeout: float = 5.0) -> None:
        self.sock = socket.create_connection(("127.0.0.1", port), timeout=timeout)
        self.reader = self.sock.makefile("rb")
        if name is not None:
            self.send(name)

    def send(self, line: str) -> None:
        self.sock.sendall((line + "\n").encode("utf-8"))

    def readline(self) -> str:
        raw = self.reader.readline()
        return raw.decode("utf-8").rstrip("\n")

    def read_until(self, predicate: Callable[[str], bool], limit: int = 50) -> List[str]:
        seen = []
        for _ in range(limit):
            line = self.readline()
            seen.append(line)
            if predicate(line) or line == "":
                break
        return seen

    def close(self) -> None:
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.reader.close()
        self.sock.close()


def wait_until(condition: Callable[[], bool], timeout: float = 5.0, interval: float = 0.01) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if condition():
            return True
        time.sleep(interval)
    return condition()
