"""
Per-connection handler for racers.

One thread per connection reads lines and turns them into coordinator
events; a second, per-session writer thread drains a bounded outbound
queue so broadcasts never block on a slow peer.
"""

import queue
import socket
import socketserver
import threading
from typing import Optional

from . import tr_protocol as proto
from .tr_config import OUTBOUND_QUEUE_MAX
from .tr_coordinator import Join, Leave, Progress
from .tr_registry import Admission

_CLOSE = object()


class ClientSession(socketserver.StreamRequestHandler):
    """Join handshake, PROGRESS reader and queued writer for one racer."""

    def setup(self) -> None:
        # Keep-alive helps detect dead connections
        self.request.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
        try:
            self.request.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, 30)
            self.request.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, 5)
            self.request.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPCNT, 3)
        except (OSError, AttributeError):
            pass
        super().setup()

        self.name: Optional[str] = None
        self.peer = "%s:%s" % self.client_address[:2]
        self._outbox: "queue.Queue" = queue.Queue(
            maxsize=getattr(self.server, "outbound_queue_max", OUTBOUND_QUEUE_MAX)
        )
        self._closed = threading.Event()
        self._writer: Optional[threading.Thread] = None

    def handle(self) -> None:
        registry = self.server.registry
        coordinator = self.server.coordinator

        if registry.register(self) is Admission.REJECTED:
            registry.log(f"Rejected {self.peer}: server full", level="warning", source="session")
            self._write_now(proto.SERVER_FULL)
            return

        registry.log(f"Racer connected from {self.peer} ({registry.count()}/{registry.max_players})",
                     source="session")
        self._writer = threading.Thread(target=self._write_loop, name=f"writer-{self.peer}", daemon=True)
        self._writer.start()

        joined = False
        try:
            first = self.rfile.readline()
            if not first:
                registry.log(f"{self.peer} closed before sending a name", source="session")
                return

            self.name = proto.decode_line(first)
            joined = True
            coordinator.submit(Join(self))

            for raw in self.rfile:
                value = proto.parse_progress(proto.decode_line(raw))
                if value is not None:
                    coordinator.submit(Progress(self, value))

            registry.log(f"{self.name} closed connection", source="session", name=self.name)

        except (ConnectionResetError, BrokenPipeError):
            registry.log(f"{self.name or self.peer} connection reset", source="session", name=self.name)
        except OSError as e:
            registry.log(f"Read error from {self.name or self.peer}: {e}", level="warning",
                         source="session", name=self.name)
        finally:
            self._depart(joined)

    # ----- outbound -----

    def send(self, message: str) -> bool:
        """Queue one line for this racer. False if closed or backlogged."""
        if self._closed.is_set():
            return False
        try:
            self._outbox.put_nowait(message)
        except queue.Full:
            return False
        return True

    def drop(self) -> None:
        """
        Schedule unregistration: closing the socket ends the read loop,
        which then runs the normal departure path.
        """
        self._closed.set()
        try:
            self.request.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass

    def _write_loop(self) -> None:
        while True:
            message = self._outbox.get()
            if message is _CLOSE or self._closed.is_set():
                return
            try:
                self.wfile.write(proto.encode_line(message))
                self.wfile.flush()
            except (OSError, ValueError) as e:
                # ValueError: finish() already closed wfile
                if not self._closed.is_set():
                    self.server.registry.log(f"Write to {self.name or self.peer} failed: {e}",
                                             level="error", source="session", name=self.name)
                self.drop()
                return

    def _write_now(self, message: str) -> None:
        try:
            self.wfile.write(proto.encode_line(message))
            self.wfile.flush()
        except OSError:
            pass

    # ----- teardown -----

    def _depart(self, joined: bool) -> None:
        self.server.registry.unregister(self)
        if joined:
            self.server.coordinator.submit(Leave(self))
        self._closed.set()
        try:
            self._outbox.put_nowait(_CLOSE)
        except queue.Full:
            # writer sees _closed after its current item
            pass
        self.server.registry.log(f"{self.name or self.peer} removed", source="session", name=self.name)
