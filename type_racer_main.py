#!/usr/bin/env python3
"""
Type Racer – Main Application Launcher
-------------------------------------------------
Starts:
  1) The TCP race server (racers connect here)
  2) The Flask status API (optional)

Key characteristics:
- Clean signal handling (Ctrl+C and SIGTERM)
- Graceful shutdown: stop accepting, drop sessions, stop the coordinator
- CLI flags with environment fallbacks

CLI:
  python type_racer_main.py --host 0.0.0.0 --port 5555 --web-port 5000
ENV:
  TYPE_RACER_HOST, TYPE_RACER_PORT, TYPE_RACER_WEB_PORT, TYPE_RACER_LOG_LEVEL
"""

import argparse
import logging
import os
import signal
import sys
import threading

from type_racer.tr_config import HOST, RACE_TCP_PORT, WEB_PORT
from type_racer.tr_registry import REGISTRY
from type_racer.tr_server import start_race_server
from type_racer.tr_version import VERSION

# Set by signal handlers; main waits on it
_SHUTDOWN_REQUESTED = threading.Event()


def _signal_handler(signum, frame):
    del signum, frame
    _SHUTDOWN_REQUESTED.set()


def _parse_args(argv=None) -> argparse.Namespace:
    """Parse CLI args with environment-based defaults."""
    parser = argparse.ArgumentParser(description="Type Racer - Race Server")
    parser.add_argument("--host", default=HOST, help="Bind host (default env TYPE_RACER_HOST)")
    parser.add_argument("--port", type=int, default=RACE_TCP_PORT, help="Race TCP port (default env TYPE_RACER_PORT)")
    parser.add_argument("--web-port", type=int, default=WEB_PORT, help="Status API port (default env TYPE_RACER_WEB_PORT)")
    parser.add_argument("--no-web", action="store_true", help="Do not start the status API")
    parser.add_argument("--log-level", default=os.getenv("TYPE_RACER_LOG_LEVEL", "INFO"),
                        help="Python logging level (default INFO)")
    return parser.parse_args(argv)


def _start_web(host: str, port: int) -> threading.Thread:
    from type_racer_web import app

    def run():
        # use_reloader=False: the reloader would fork a second race server
        app.run(host=host, port=port, debug=False, use_reloader=False)

    t = threading.Thread(target=run, name="status-api", daemon=True)
    t.start()
    return t


def main(argv=None) -> int:
    """Boot the race server (and status API) and handle lifecycle cleanly."""
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    signal.signal(signal.SIGINT, _signal_handler)
    try:
        signal.signal(signal.SIGTERM, _signal_handler)
    except (AttributeError, ValueError):
        # Windows may not support SIGTERM
        pass

    print(f"=== Type Racer {VERSION} ===")
    print(f"Race: tcp://{args.host}:{args.port}")
    if not args.no_web:
        print(f"Status: http://{args.host}:{args.web_port}")
    print("Press Ctrl+C to stop")

    try:
        server = start_race_server(args.host, args.port)
    except OSError as e:
        REGISTRY.log(f"Failed to start race server: {e}", level="error", source="main")
        return 1

    if not args.no_web:
        REGISTRY.log("Starting status API…", source="main")
        _start_web(args.host, args.web_port)

    try:
        # Wake periodically so a fatal accept error also ends the process
        while not _SHUTDOWN_REQUESTED.wait(0.5):
            if server.stopped:
                REGISTRY.log("Race server stopped unexpectedly", level="error", source="main")
                return 1
    finally:
        REGISTRY.log("Shutting down Type Racer…", source="main")
        server.stop()
        print("System shutdown complete.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
