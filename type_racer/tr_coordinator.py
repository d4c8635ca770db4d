"""
RaceCoordinator: the single owner of race state.
- Consumes join/progress/leave events and countdown ticks from one queue
- Drives the Lobby -> Countdown -> Racing -> Finished -> Lobby cycle
- Computes WPM and the winner, and asks the broadcaster to fan messages out

Sessions never touch race state; they only submit events here.
"""

import logging
import math
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from . import tr_protocol as proto
from .tr_broadcast import Broadcaster
from .tr_config import COUNTDOWN_SECONDS, MIN_ELAPSED_MS, MIN_PLAYERS
from .tr_countdown import TICK_INTERVAL_SECS, CountdownScheduler
from .tr_models import Participant, Race, RaceState, RaceStateError, now_ms
from .tr_registry import REGISTRY, SessionRegistry
from .tr_sentences import SentenceBank

logger = logging.getLogger(__name__)


# ---------------- Events ----------------

@dataclass
class Join:
    session: Any


@dataclass
class Progress:
    session: Any
    value: int


@dataclass
class Leave:
    session: Any


@dataclass
class CountdownTick:
    remaining: int
    generation: int


@dataclass
class CountdownComplete:
    generation: int


_STOP = object()

_TRANSITIONS = {
    RaceState.LOBBY: {RaceState.COUNTDOWN},
    # COUNTDOWN -> FINISHED only when players leave mid-countdown
    RaceState.COUNTDOWN: {RaceState.RACING, RaceState.FINISHED},
    RaceState.RACING: {RaceState.FINISHED},
    RaceState.FINISHED: {RaceState.LOBBY},
}


# ---------------- Scoring ----------------

def word_count(text: str) -> int:
    return len(text.split())


def compute_wpm(text: str, started_at: int, finished_at: int, min_elapsed_ms: int = MIN_ELAPSED_MS) -> int:
    """
    Words per minute, rounded half-up.

    Elapsed time is floored at min_elapsed_ms so an instant (or clock-skewed)
    finish still yields a finite number.
    """
    elapsed_ms = max(finished_at - started_at, min_elapsed_ms)
    minutes = elapsed_ms / 60000.0
    return int(math.floor(word_count(text) / minutes + 0.5))


def pick_winner(participants: Iterable[Participant]) -> Optional[str]:
    """Earliest finisher; equal times go to whoever registered first."""
    finished = [p for p in participants if p.finished]
    if not finished:
        return None
    return min(finished, key=lambda p: (p.finished_at, p.seq)).name


# ---------------- Coordinator ----------------

class RaceCoordinator:
    """Serialized race state machine; see module docstring."""

    def __init__(
        self,
        registry: SessionRegistry,
        sentences: SentenceBank,
        broadcaster: Optional[Broadcaster] = None,
        clock: Callable[[], int] = now_ms,
        scheduler_factory: Optional[Callable[[], Any]] = None,
        tick_interval: float = TICK_INTERVAL_SECS,
    ) -> None:
        self.registry = registry
        self.sentences = sentences
        self.broadcaster = broadcaster or Broadcaster(registry)
        self._clock = clock
        self._scheduler_factory = scheduler_factory or (lambda: CountdownScheduler(interval=tick_interval))

        self._events: "queue.Queue[Any]" = queue.Queue()
        self._lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None

        # session -> Participant, in join order
        self._participants: Dict[Any, Participant] = {}
        self._next_seq = 0

        self._race = Race(countdown=COUNTDOWN_SECONDS)
        self._scheduler: Optional[Any] = None
        self._generation = 0

        self.last_winner: Optional[str] = None
        self.races_completed = 0

        self._handlers = {
            Join: self._on_join,
            Progress: self._on_progress,
            Leave: self._on_leave,
            CountdownTick: self._on_tick,
            CountdownComplete: self._on_countdown_complete,
        }

    # ---------------- Lifecycle ----------------

    def start(self) -> None:
        """Start the worker thread that drains the event queue."""
        if self._worker is not None and self._worker.is_alive():
            return
        self._worker = threading.Thread(target=self._run, name="race-coordinator", daemon=True)
        self._worker.start()

    def stop(self, timeout: float = 2.0) -> None:
        with self._lock:
            if self._scheduler is not None:
                self._scheduler.cancel()
                self._scheduler = None
        self._events.put(_STOP)
        if self._worker is not None:
            self._worker.join(timeout)
            self._worker = None

    def submit(self, event: Any) -> None:
        """Queue an event; safe from any thread."""
        self._events.put(event)

    def drain(self) -> int:
        """Handle every queued event on the calling thread (no worker running)."""
        handled = 0
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return handled
            if event is not _STOP:
                self.handle(event)
                handled += 1

    def _run(self) -> None:
        while True:
            event = self._events.get()
            if event is _STOP:
                break
            self.handle(event)

    def handle(self, event: Any) -> None:
        """Apply one event. Errors are logged, never raised to the caller."""
        handler = self._handlers.get(type(event))
        if handler is None:
            self.registry.log(f"Unknown event {event!r}", level="warning", source="coordinator")
            return
        with self._lock:
            try:
                handler(event)
            except Exception as e:
                logger.debug("Handler failure", exc_info=True)
                self.registry.log(f"Error handling {type(event).__name__}: {e}", level="error", source="coordinator")

    # ---------------- Read-only views ----------------

    @property
    def state(self) -> RaceState:
        return self._race.state

    @property
    def race(self) -> Race:
        return self._race

    def participants(self) -> List[Participant]:
        with self._lock:
            return list(self._participants.values())

    def snapshot(self) -> Dict[str, Any]:
        """Current race state for the web API."""
        with self._lock:
            race = self._race
            return {
                "state": race.state.value,
                "sentence": race.sentence or None,
                "started_at": race.started_at,
                "countdown": race.countdown,
                "participants": [p.to_dict() for p in self._participants.values()],
                "entrants": [p.name for p in race.participants],
                "last_winner": self.last_winner,
                "races_completed": self.races_completed,
            }

    # ---------------- Event handlers ----------------

    def _on_join(self, ev: Join) -> None:
        session = ev.session
        if session in self._participants:
            return
        p = Participant(name=session.name, seq=self._next_seq, session=session)
        self._next_seq += 1
        self._participants[session] = p
        self._log(f"{p.name} joined ({len(self._participants)} players)", name=p.name)
        self._maybe_begin_countdown()

    def _on_leave(self, ev: Leave) -> None:
        p = self._participants.pop(ev.session, None)
        if p is None:
            return
        remaining = len(self._participants)
        self._log(f"{p.name} left ({remaining} players remain)", name=p.name)

        state = self._race.state
        if state in (RaceState.COUNTDOWN, RaceState.RACING) and remaining < MIN_PLAYERS:
            self._log(f"Too few players to continue; ending {state.value.lower()} early", level="warning")
            self._end_race()
        elif state is RaceState.RACING and not self._active_entrants():
            # only late joiners remain and none of them can finish this race
            self._log("Every racer in this race has left; ending it", level="warning")
            self._end_race()
        elif state is RaceState.RACING and self._all_entrants_finished():
            self._end_race()

    def _on_tick(self, ev: CountdownTick) -> None:
        if not self._countdown_current(ev.generation):
            return
        self._race.countdown = ev.remaining
        self._log(f"Countdown: {ev.remaining}", level="debug")
        self._broadcast(proto.countdown(ev.remaining))

    def _on_countdown_complete(self, ev: CountdownComplete) -> None:
        if not self._countdown_current(ev.generation):
            return
        self._scheduler = None
        self._start_race()

    def _on_progress(self, ev: Progress) -> None:
        p = self._participants.get(ev.session)
        if p is None or self._race.state is not RaceState.RACING:
            return
        if p not in self._race.participants:
            # joined after the start; waits for the next race
            return

        p.progress = ev.value
        self._broadcast(proto.progress_snapshot((q.name, q.progress) for q in self._participants.values()))

        if ev.value >= len(self._race.sentence) and not p.finished:
            self._finish(p)

    # ---------------- Transitions ----------------

    def _transition(self, new_state: RaceState) -> None:
        current = self._race.state
        if new_state not in _TRANSITIONS[current]:
            raise RaceStateError(f"Illegal race transition {current.value} -> {new_state.value}")
        if new_state is RaceState.LOBBY:
            self._race = Race(countdown=COUNTDOWN_SECONDS)
        else:
            self._race.state = new_state

    def _maybe_begin_countdown(self) -> None:
        if self._race.state is RaceState.LOBBY and len(self._participants) >= MIN_PLAYERS:
            self._begin_countdown()

    def _begin_countdown(self) -> None:
        self._transition(RaceState.COUNTDOWN)
        self._race.countdown = COUNTDOWN_SECONDS
        self._generation += 1
        generation = self._generation

        self._scheduler = self._scheduler_factory()
        self._scheduler.start(
            COUNTDOWN_SECONDS,
            lambda remaining: self.submit(CountdownTick(remaining, generation)),
            lambda: self.submit(CountdownComplete(generation)),
        )
        self._log(f"Starting countdown with {len(self._participants)} players")

    def _countdown_current(self, generation: int) -> bool:
        return generation == self._generation and self._race.state is RaceState.COUNTDOWN

    def _start_race(self) -> None:
        text = self.sentences.choose()
        for p in self._participants.values():
            p.reset()

        race = self._race
        race.sentence = text
        race.started_at = self._clock()
        race.countdown = 0
        race.participants = list(self._participants.values())
        self._transition(RaceState.RACING)

        self._log(f"Race started with {len(race.participants)} players")
        self._broadcast(proto.GAME_START)
        self._broadcast(proto.sentence(text))

    def _finish(self, p: Participant) -> None:
        race = self._race
        p.finished_at = self._clock()
        p.wpm = compute_wpm(race.sentence, race.started_at, p.finished_at)
        self._log(f"{p.name} finished with {p.wpm} WPM", name=p.name)
        self._broadcast(proto.finish(p.name, p.wpm))

        if self._all_entrants_finished():
            self._end_race()

    def _end_race(self) -> None:
        was_racing = self._race.state is RaceState.RACING
        if self._scheduler is not None:
            self._scheduler.cancel()
            self._scheduler = None

        self._transition(RaceState.FINISHED)
        winner = pick_winner(self._active_entrants())
        self.last_winner = winner
        if was_racing:
            self.races_completed += 1
        self._log(f"Race ended. Winner: {winner or proto.NO_WINNER}")
        self._broadcast(proto.game_end(winner))

        for p in self._participants.values():
            p.reset()
        self._transition(RaceState.LOBBY)
        self._maybe_begin_countdown()

    # ---------------- Helpers ----------------

    def _active_entrants(self) -> List[Participant]:
        return [p for p in self._race.participants if self._participants.get(p.session) is p]

    def _all_entrants_finished(self) -> bool:
        entrants = self._active_entrants()
        return bool(entrants) and all(p.finished for p in entrants)

    def _broadcast(self, message: str) -> None:
        self.broadcaster.broadcast(message)

    def _log(self, msg: str, level: str = "info", name: Optional[str] = None) -> None:
        self.registry.log(msg, level=level, source="coordinator", name=name)


# Global coordinator instance bound to the global registry
COORDINATOR = RaceCoordinator(REGISTRY, SentenceBank.load())
