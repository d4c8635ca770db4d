#!/usr/bin/env python3
"""
Type Racer Status API Test Suite
Tests REST endpoints through the Flask test client and over real HTTP

Usage: pytest test_web_api.py
"""

import threading

import pytest
import requests
from werkzeug.serving import make_server

from type_racer.tr_registry import REGISTRY
from type_racer_web import app


@pytest.fixture()
def client():
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture()
def live_url():
    srv = make_server("127.0.0.1", 0, app)
    t = threading.Thread(target=srv.serve_forever, daemon=True)
    t.start()
    yield f"http://127.0.0.1:{srv.server_port}"
    srv.shutdown()


def test_health(client):
    data = client.get("/health").get_json()
    assert data["service"] == "type-racer"
    assert data["status"] == "healthy"
    assert data["players_connected"] == REGISTRY.count()


def test_state_reports_lobby_and_rules(client):
    data = client.get("/api/state").get_json()
    assert data["state"] == "Lobby"
    assert data["rules"] == {"min_players": 2, "max_players": 4}
    assert data["connections"]["capacity"] == 4
    assert data["countdown"] == 5


def test_sentences(client):
    data = client.get("/api/sentences").get_json()
    assert len(data["sentences"]) >= 1


def test_logs_limit_and_clear(client):
    for i in range(5):
        REGISTRY.log(f"web test {i}", source="test")
    events = client.get("/api/logs?limit=2").get_json()["events"]
    assert [e["msg"] for e in events] == ["web test 4", "web test 3"]

    # bad limit falls back to the default
    assert client.get("/api/logs?limit=abc").status_code == 200

    assert client.post("/api/logs/clear").get_json() == {"success": True}
    events = client.get("/api/logs").get_json()["events"]
    assert [e["msg"] for e in events] == ["System logs cleared"]


def test_state_over_http(live_url):
    resp = requests.get(f"{live_url}/api/state", timeout=5)
    assert resp.status_code == 200
    assert resp.json()["state"] == "Lobby"

    resp = requests.get(f"{live_url}/health", timeout=5)
    assert resp.json()["version"]
