"""
Dataclasses and small model helpers used throughout the server.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utcnow_iso() -> str:
    """UTC timestamp in ISO 8601 format (seconds precision)."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def now_ms() -> int:
    """Wall-clock UTC timestamp in milliseconds."""
    return int(time.time() * 1000)


class RaceState(Enum):
    """Race lifecycle; the value is what the web API reports."""
    LOBBY = "Lobby"
    COUNTDOWN = "Countdown"
    RACING = "Racing"
    FINISHED = "Finished"


class RaceStateError(RuntimeError):
    """Raised on a lifecycle transition that has no edge."""


@dataclass
class Participant:
    """
    One joined player.

    Note: session is the transient connection handle; not serialized.
    """
    name: str
    seq: int
    progress: int = 0
    finished_at: Optional[int] = None
    wpm: Optional[int] = None
    session: Any = field(default=None, repr=False, compare=False)

    @property
    def finished(self) -> bool:
        return self.finished_at is not None

    def reset(self) -> None:
        self.progress = 0
        self.finished_at = None
        self.wpm = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "progress": self.progress,
            "finished_at": self.finished_at,
            "wpm": self.wpm,
        }


@dataclass
class Race:
    """One lobby-to-finish cycle. A new instance is created for every cycle."""
    state: RaceState = RaceState.LOBBY
    sentence: str = ""
    started_at: Optional[int] = None
    countdown: int = 0
    participants: List[Participant] = field(default_factory=list)
