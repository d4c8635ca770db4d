"""
TCP race server that racers connect to.

Exposes:
- start_race_server() -> returns the server instance
  (call .stop() in your main on exit)
"""

import socket
import socketserver
import threading
from typing import Optional

from .tr_config import HOST, OUTBOUND_QUEUE_MAX, RACE_TCP_PORT
from .tr_coordinator import COORDINATOR, RaceCoordinator
from .tr_registry import REGISTRY, SessionRegistry
from .tr_session import ClientSession


class RaceServer(socketserver.ThreadingTCPServer):
    """Thread-per-connection server; an accept failure stops everything."""
    allow_reuse_address = True
    daemon_threads = True

    def __init__(
        self,
        server_address,
        registry: SessionRegistry = REGISTRY,
        coordinator: RaceCoordinator = COORDINATOR,
        handler_cls=ClientSession,
        outbound_queue_max: int = OUTBOUND_QUEUE_MAX,
    ) -> None:
        self.registry = registry
        self.coordinator = coordinator
        self.outbound_queue_max = outbound_queue_max
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None
        super().__init__(server_address, handler_cls)
        registry.log(f"Race server bound to {self.server_address}", source="listener")

    @property
    def port(self) -> int:
        return self.server_address[1]

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def get_request(self):
        try:
            return super().get_request()
        except socket.timeout:
            raise
        except OSError as e:
            if not self._stopped.is_set():
                self.registry.log(f"Accept failed: {e}; shutting down", level="error", source="listener")
                # stop() waits for serve_forever, which is this thread
                threading.Thread(target=self.stop, name="listener-stop", daemon=True).start()
            raise

    def serve_forever(self, poll_interval=0.5):
        try:
            self.registry.log("Race server ready for racers", source="listener")
            super().serve_forever(poll_interval=poll_interval)
        except KeyboardInterrupt:
            self.registry.log("Race server interrupted, shutting down...", source="listener")

    def start_background(self) -> threading.Thread:
        self._thread = threading.Thread(target=self.serve_forever, name="race-listener", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self) -> None:
        """Stop accepting, drop every session and stop the coordinator."""
        if self._stopped.is_set():
            return
        self._stopped.set()
        self.registry.log("Stopping race server", source="listener")
        if self._thread is not None:
            self.shutdown()
        self.registry.close_all()
        self.coordinator.stop()
        self.server_close()


def start_race_server(
    host: str = HOST,
    port: int = RACE_TCP_PORT,
    registry: SessionRegistry = REGISTRY,
    coordinator: RaceCoordinator = COORDINATOR,
) -> RaceServer:
    """
    Start the coordinator and the threaded race server in background threads.

    Returns:
        The server instance; call .stop() from your main on exit.
    """
    srv = RaceServer((host, port), registry=registry, coordinator=coordinator)
    coordinator.start()
    srv.start_background()
    registry.log(f"Race server started on {host}:{srv.port}", source="listener")
    return srv
