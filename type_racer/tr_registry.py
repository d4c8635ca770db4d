"""
Registry: the set of live racer connections.
- Admits or rejects new sessions against MAX_PLAYERS
- Provides joined() snapshots for broadcasting
- Keeps the structured system log served by the web API
"""

import logging
import threading
from collections import deque
from enum import Enum
from typing import Any, Dict, List, Optional

from .tr_config import LOG_MAX, MAX_PLAYERS
from .tr_models import utcnow_iso

logger = logging.getLogger(__name__)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class Admission(Enum):
    ACCEPTED = "accepted"
    REJECTED = "server_full"


class SessionRegistry:
    """Thread-safe registry of connected sessions."""

    def __init__(self, max_players: int = MAX_PLAYERS, log_max: int = LOG_MAX) -> None:
        self.max_players = max_players

        # Registration order matters for broadcasts; list + lock
        self._sessions: List[Any] = []
        self._lock = threading.Lock()

        # System log (newest first)
        self.logs: deque = deque(maxlen=log_max)

    # ---------------- Utilities ----------------

    def log(self, msg: str, level: str = "info", source: str = "server", name: Optional[str] = None) -> None:
        """Append a structured log entry and forward it to the logging module."""
        entry = {"ts": utcnow_iso(), "level": level, "source": source, "name": name, "msg": msg}
        self.logs.appendleft(entry)
        logging.getLogger(f"type_racer.{source}").log(_LEVELS.get(level, logging.INFO), msg)

    def clear_logs(self) -> None:
        """Clear in-memory logs (web API calls this)."""
        self.logs.clear()
        self.log("System logs cleared")

    # ---------------- Sessions ----------------

    def register(self, session: Any) -> Admission:
        """Admit a session unless MAX_PLAYERS are already registered."""
        with self._lock:
            if session in self._sessions:
                return Admission.ACCEPTED
            if len(self._sessions) >= self.max_players:
                return Admission.REJECTED
            self._sessions.append(session)
            total = len(self._sessions)
        logger.debug("Session registered (%d/%d)", total, self.max_players)
        return Admission.ACCEPTED

    def unregister(self, session: Any) -> bool:
        """Remove a session. Safe to call more than once."""
        with self._lock:
            try:
                self._sessions.remove(session)
            except ValueError:
                return False
        return True

    def unregister_name(self, name: str) -> bool:
        """Remove the first session registered under the literal name."""
        with self._lock:
            for s in self._sessions:
                if getattr(s, "name", None) == name:
                    self._sessions.remove(s)
                    return True
        return False

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def sessions(self) -> List[Any]:
        with self._lock:
            return list(self._sessions)

    def joined(self) -> List[Any]:
        """Sessions that completed the name handshake, in registration order."""
        with self._lock:
            return [s for s in self._sessions if getattr(s, "name", None) is not None]

    def close_all(self) -> None:
        """Drop every session; their read loops then run the departure path."""
        for s in self.sessions():
            try:
                s.drop()
            except Exception as e:
                self.log(f"Failed to drop session {getattr(s, 'name', None)}: {e}", level="error")

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            names = [getattr(s, "name", None) for s in self._sessions]
        return {
            "connected": len(names),
            "capacity": self.max_players,
            "names": [n for n in names if n is not None],
        }


# Global registry instance (imported everywhere)
REGISTRY = SessionRegistry()
