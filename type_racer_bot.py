#!/usr/bin/env python3
"""
Type Racer headless racer.
Connects to the race server, joins under a name and "types" each sentence
at a fixed speed. Handy for filling a lobby or load-testing the server.
"""

import argparse
import socket
import sys
import threading
import time
from typing import Callable, Optional

from type_racer import tr_protocol as proto
from type_racer.tr_config import RACE_TCP_PORT


class RaceBot:
    """One scripted racer; run() returns when the server closes the connection."""

    def __init__(self, name: str, host: str = "127.0.0.1", port: int = RACE_TCP_PORT,
                 wpm: float = 60.0, step: int = 5,
                 on_message: Optional[Callable[[str], None]] = None) -> None:
        self.name = name
        self.host = host
        self.port = port
        self.wpm = wpm
        self.step = max(1, step)
        self.on_message = on_message or (lambda line: print(f"[{self.name}] {line}"))
        self.sock: Optional[socket.socket] = None
        self.races = 0
        self.server_full = False
        self._typing: Optional[threading.Thread] = None
        self._race_over = threading.Event()
        self._send_lock = threading.Lock()

    def connect(self) -> None:
        self.sock = socket.create_connection((self.host, self.port))
        self._send(self.name)

    def close(self) -> None:
        self._race_over.set()
        if self.sock is not None:
            try:
                # shutdown first: close() alone leaves a makefile() reader blocked
                self.sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            try:
                self.sock.close()
            except OSError:
                pass

    def run(self) -> None:
        try:
            if self.sock is None:
                self.connect()
            with self.sock.makefile("rb") as reader:
                for raw in reader:
                    self._handle(proto.decode_line(raw))
        except OSError as e:
            print(f"[{self.name}] connection error: {e}")
        finally:
            self.close()

    def _handle(self, line: str) -> None:
        self.on_message(line)
        if line == proto.SERVER_FULL:
            self.server_full = True
        elif line.startswith("SENTENCE:"):
            self._start_typing(line[len("SENTENCE:"):])
        elif line.startswith("GAME_END:"):
            self.races += 1
            self._race_over.set()

    def _start_typing(self, text: str) -> None:
        self._race_over.clear()
        self._typing = threading.Thread(target=self._type, args=(text,), daemon=True)
        self._typing.start()

    def _type(self, text: str) -> None:
        # 5 characters per word is the usual typing-test convention
        chars_per_sec = max(self.wpm * 5.0 / 60.0, 0.1)
        typed = 0
        while typed < len(text):
            if self._race_over.wait(self.step / chars_per_sec):
                return
            typed = min(len(text), typed + self.step)
            try:
                self._send(f"PROGRESS:{typed}")
            except OSError:
                return

    def _send(self, line: str) -> None:
        with self._send_lock:
            self.sock.sendall(proto.encode_line(line))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Type Racer headless racer")
    parser.add_argument("--name", required=True, help="Display name")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=RACE_TCP_PORT)
    parser.add_argument("--wpm", type=float, default=60.0, help="Typing speed")
    parser.add_argument("--races", type=int, default=0, help="Leave after N races (0 = stay)")
    args = parser.parse_args(argv)

    bot = RaceBot(args.name, args.host, args.port, wpm=args.wpm)
    try:
        bot.connect()
    except ConnectionRefusedError:
        print("Connection refused - race server not available")
        return 1

    if args.races:
        def watch():
            while bot.races < args.races:
                time.sleep(0.2)
            bot.close()
        threading.Thread(target=watch, daemon=True).start()

    try:
        bot.run()
    except KeyboardInterrupt:
        bot.close()
    return 2 if bot.server_full else 0


if __name__ == "__main__":
    sys.exit(main())
