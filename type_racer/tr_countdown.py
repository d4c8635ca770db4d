"""
Countdown ticker used between the lobby and the race.

The scheduler only calls back; it never touches race state itself.
"""

import threading
from typing import Callable, Optional

TICK_INTERVAL_SECS: float = 1.0


class CountdownScheduler:
    """
    One-shot countdown: on_tick(n) for n = seconds..1, one interval apart,
    then on_complete() once the count reaches zero.

    cancel() stops ticking and suppresses on_complete. A scheduler runs once;
    create a new instance for every countdown.
    """

    def __init__(self, interval: float = TICK_INTERVAL_SECS) -> None:
        self.interval = interval
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def start(self, seconds: int, on_tick: Callable[[int], None], on_complete: Callable[[], None]) -> None:
        if self._thread is not None:
            raise RuntimeError("CountdownScheduler can only be started once")
        self._thread = threading.Thread(
            target=self._run,
            args=(seconds, on_tick, on_complete),
            name="countdown",
            daemon=True,
        )
        self._thread.start()

    def cancel(self) -> None:
        self._cancelled.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self, seconds: int, on_tick: Callable[[int], None], on_complete: Callable[[], None]) -> None:
        remaining = seconds
        while remaining > 0:
            if self._cancelled.is_set():
                return
            on_tick(remaining)
            # wait() doubles as an interruptible sleep
            if self._cancelled.wait(self.interval):
                return
            remaining -= 1
        if not self._cancelled.is_set():
            on_complete()
