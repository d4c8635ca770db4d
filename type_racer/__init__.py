"""Type Racer: real-time multiplayer typing race server."""

from .tr_version import VERSION

__all__ = ["VERSION"]
