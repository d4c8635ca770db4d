"""
Line protocol spoken between racers and the server.

Every message is one UTF-8 line. Builders return the line without its
terminator; the session writer appends the newline.
"""

import re
from typing import Iterable, Optional, Tuple

ENCODING = "utf-8"

SERVER_FULL = "SERVER_FULL"
GAME_START = "GAME_START"
NO_WINNER = "No winner"

_PROGRESS_RE = re.compile(r"PROGRESS:([+-]?\d+)")


def countdown(remaining: int) -> str:
    return f"COUNTDOWN:{remaining}"


def sentence(text: str) -> str:
    return f"SENTENCE:{text}"


def progress_snapshot(entries: Iterable[Tuple[str, int]]) -> str:
    """PROGRESS:name,value;name,value; with every entry ';'-terminated."""
    return "PROGRESS:" + "".join(f"{name},{value};" for name, value in entries)


def finish(name: str, wpm: int) -> str:
    return f"FINISH:{name},{wpm}"


def game_end(winner: Optional[str]) -> str:
    return f"GAME_END:{winner if winner is not None else NO_WINNER}"


def decode_line(raw: bytes) -> str:
    """Bytes off the wire -> text without the line terminator."""
    return raw.decode(ENCODING, errors="replace").rstrip("\r\n")


def encode_line(message: str) -> bytes:
    return (message + "\n").encode(ENCODING)


def parse_progress(line: str) -> Optional[int]:
    """
    Return the reported character count of a PROGRESS line.

    Returns None for any other or malformed line; such lines are ignored.
    The value is not range-checked.
    """
    m = _PROGRESS_RE.fullmatch(line.strip())
    if not m:
        return None
    return int(m.group(1))
