"""
Fan-out of one logical message to every joined session.

Sessions only enqueue here; the actual socket writes happen on each
session's own writer thread, so one stalled peer cannot hold up the rest.
"""

from typing import Any

from .tr_registry import SessionRegistry


class Broadcaster:
    def __init__(self, registry: SessionRegistry) -> None:
        self.registry = registry

    def broadcast(self, message: str) -> int:
        """Deliver to every joined session; returns how many accepted it."""
        delivered = 0
        for session in self.registry.joined():
            if self._deliver(session, message):
                delivered += 1
        return delivered

    def _deliver(self, session: Any, message: str) -> bool:
        name = getattr(session, "name", None)
        try:
            ok = session.send(message)
        except Exception as e:
            self.registry.log(f"Send to {name} raised: {e}", level="error", source="broadcast", name=name)
            ok = False
        else:
            if not ok:
                self.registry.log(f"Send to {name} failed (closed or backlog full)",
                                  level="warning", source="broadcast", name=name)
        if not ok:
            try:
                session.drop()
            except Exception as e:
                self.registry.log(f"Drop of {name} failed: {e}", level="error", source="broadcast", name=name)
        return ok
