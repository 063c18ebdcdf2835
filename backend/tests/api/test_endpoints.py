"""
API Endpoint Tests

Tests the FastAPI endpoints using TestClient with MockTransport.
"""

import time

import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from api.dependencies import AppState
from core.serial_transport import SerialTransport
from transfer.manager import SessionManager


WAVE = {
    "id": "1",
    "name": "Wave",
    "extra": {"function": "2", "params": [{"id": "1", "value": "5"}, {"id": "0", "value": "3"}]},
    "frameNum": "1",
    "frames": [{"id": "0", "time": "256", "joints": [{"id": "0", "value": "10"}]}],
}

BROKEN = {
    "id": 2,
    "name": "Broken",
    "extra": {"function": 0, "params": [{"id": 0, "value": 1}]},
    "frameNum": 0,
    "frames": [],
}


@pytest.fixture
def client(fast_settings):
    """Create test client with fresh app state."""
    import api.dependencies
    state = AppState(manager=SessionManager(settings=fast_settings))
    api.dependencies._app_state = state

    app = create_app()
    with TestClient(app) as client:
        yield client

    # Cleanup
    state.manager.cancel_all()
    api.dependencies._app_state = None


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return False


class TestPortEndpoints:

    def test_list_ports(self, client, monkeypatch):
        monkeypatch.setattr(SerialTransport, "list_ports", staticmethod(lambda: ["COM3", "COM4"]))
        response = client.get("/api/ports")
        assert response.status_code == 200
        assert response.json() == {"ports": ["COM3", "COM4"], "mock_prefix": "mock"}


class TestMotionEndpoints:

    def test_encode(self, client):
        response = client.post("/api/motions/encode", json={"motions": [WAVE]})
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        result = data["results"][0]
        assert result["wire"] == "01" + "Wave".ljust(20) + "02" + "0305" + "01" + "0100" + "000a"
        assert result["display"].startswith("[slotNum : 01]")

    def test_encode_reports_failures(self, client):
        response = client.post("/api/motions/encode", json={"motions": [WAVE, BROKEN]})
        data = response.json()
        assert data["success"] is False
        assert [r["converted"] for r in data["results"]] == [True, False]
        assert "params" in data["results"][1]["error"]

    def test_decode(self, client):
        wire = client.post("/api/motions/encode", json={"motions": [WAVE]}).json()["results"][0]["wire"]
        response = client.post("/api/motions/decode", json={"wire": wire, "joints_per_frame": 1})
        assert response.status_code == 200
        motion = response.json()["motion"]
        assert motion["name"] == "Wave"
        assert motion["params"] == [3, 5]
        assert motion["frames"] == [{"time": 256, "joints": [10]}]

    def test_decode_malformed(self, client):
        response = client.post("/api/motions/decode", json={"wire": "0102", "joints_per_frame": 0})
        assert response.status_code == 400
        assert "too short" in response.json()["detail"]

    def test_invalid_body(self, client):
        response = client.post("/api/motions/encode", json={"motions": [{"name": "x"}]})
        assert response.status_code == 422


class TestSessionEndpoints:

    def test_start_requires_ports(self, client):
        response = client.post("/api/sessions", json={"ports": [], "motions": [WAVE]})
        assert response.status_code == 400

    def test_start_requires_encodable_motion(self, client):
        response = client.post("/api/sessions", json={"ports": ["mock"], "motions": [BROKEN]})
        assert response.status_code == 400

    def test_start_and_cancel(self, client):
        response = client.post("/api/sessions", json={"ports": ["mock"], "motions": [WAVE, BROKEN]})
        assert response.status_code == 200
        data = response.json()
        assert data["started"] == ["mock"]
        assert data["queued"] == ["Wave"]
        assert data["skipped"] == 1

        def finished():
            sessions = client.get("/api/sessions").json()["sessions"]
            return sessions and sessions[0]["finished_count"] == 1

        assert wait_until(finished)
        registry = client.get("/api/registry").json()["devices"]
        assert registry == {"06:05:04:03:02:01": "send_completed"}

        response = client.delete("/api/sessions/mock")
        assert response.status_code == 200
        session = client.get("/api/sessions").json()["sessions"][0]
        assert session["running"] is False
        assert session["messages"][-1] == "Session stopped"
        assert client.get("/api/registry").json()["devices"] == {}

    def test_cancel_port_name_with_slashes(self, client):
        """Device paths like /dev/ttyUSB0 reach the cancel route."""
        port = "mock/dev/ttyUSB0"
        response = client.post("/api/sessions", json={"ports": [port], "motions": [WAVE]})
        assert response.status_code == 200

        response = client.delete(f"/api/sessions/{port}")
        assert response.status_code == 200
        assert response.json() == {"success": True, "port": port}
        session = client.get("/api/sessions").json()["sessions"][0]
        assert session["port"] == port
        assert session["running"] is False

    def test_cancel_unknown_port(self, client):
        response = client.delete("/api/sessions/COM99")
        assert response.status_code == 404
