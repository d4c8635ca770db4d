"""
Central configuration and tunables.

Game rules (player counts, countdown length) are fixed constants.
Ports, log size and file paths can be overridden from the environment.
"""

import os

# Game rules (not runtime-configurable)
MIN_PLAYERS: int = 2
MAX_PLAYERS: int = 4
COUNTDOWN_SECONDS: int = 5

# Shortest elapsed race time used for WPM, in milliseconds
MIN_ELAPSED_MS: int = 1000

# Network
HOST: str = os.getenv("TYPE_RACER_HOST", "0.0.0.0")
RACE_TCP_PORT: int = int(os.getenv("TYPE_RACER_PORT", "5555"))
WEB_PORT: int = int(os.getenv("TYPE_RACER_WEB_PORT", "5000"))

# Per-session outbound backlog before the peer is considered stalled
OUTBOUND_QUEUE_MAX: int = int(os.getenv("TYPE_RACER_OUTBOUND_QUEUE_MAX", "64"))

# Logs
LOG_MAX: int = int(os.getenv("TYPE_RACER_LOG_MAX", "1000"))

# Sentences
SENTENCE_FILE: str = os.getenv("TYPE_RACER_SENTENCE_FILE", "sentences.json")
