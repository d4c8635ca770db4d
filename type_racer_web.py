#!/usr/bin/env python3
"""
Type Racer – Flask Status API
-----------------------------
Responsibilities:
- Health check with version and uptime
- JSON snapshots of the live race and connected racers
- Read/clear access to the in-memory system log

Notes:
- This file does NOT start the race server; use type_racer_main.py.
- All state comes from REGISTRY and COORDINATOR (single source of truth).
"""

import os
from datetime import datetime, timezone

from flask import Flask, jsonify, request

from type_racer.tr_config import MAX_PLAYERS, MIN_PLAYERS
from type_racer.tr_coordinator import COORDINATOR
from type_racer.tr_registry import REGISTRY
from type_racer.tr_version import VERSION

app = Flask(__name__)

# Track when this process started
START_TIME = datetime.now(timezone.utc)


def _calculate_uptime(started: datetime) -> str:
    delta = datetime.now(timezone.utc) - started
    hours, remainder = divmod(int(delta.total_seconds()), 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours}h {minutes}m {seconds}s"


# ---------------------------- Health ---------------------------

@app.get("/health")
def health():
    return jsonify({
        "service": "type-racer",
        "version": VERSION,
        "pid": os.getpid(),
        "started_at": START_TIME.isoformat(timespec="seconds"),
        "uptime": _calculate_uptime(START_TIME),
        "players_connected": REGISTRY.count(),
        "status": "healthy",
    })


# ---------------------------- State ----------------------------

@app.get("/api/state")
def api_state():
    """Race snapshot plus connection counts and the fixed game rules."""
    try:
        snap = COORDINATOR.snapshot()
        snap["connections"] = REGISTRY.snapshot()
        snap["rules"] = {"min_players": MIN_PLAYERS, "max_players": MAX_PLAYERS}
        return jsonify(snap)
    except Exception as e:
        REGISTRY.log(f"State API error: {e}", level="error", source="web")
        return jsonify({"error": "Internal server error"}), 500


@app.get("/api/sentences")
def api_sentences():
    return jsonify({"sentences": list(COORDINATOR.sentences.sentences)})


# ---------------------------- Logs -----------------------------

@app.get("/api/logs")
def api_logs():
    """Return recent logs (limit=n), newest first."""
    try:
        limit = int(request.args.get("limit", 100))
    except ValueError:
        limit = 100
    return jsonify({"events": list(REGISTRY.logs)[:max(0, limit)]})


@app.post("/api/logs/clear")
def api_logs_clear():
    REGISTRY.clear_logs()
    return jsonify({"success": True})
