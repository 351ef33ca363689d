"""Tests for the kernel WebSocket server"""

from fastapi.testclient import TestClient
import pytest

from evalkernel.application.websocket.ws_server import create_app
from evalkernel.infrastructure.config.settings import WorkerSettings


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app(WorkerSettings()))


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["active_connections"] == 0


def test_websocket_run_round_trip(client):
    with client.websocket_connect("/ws/kernel/session-1") as ws:
        assert ws.receive_json()["status"] == "online"

        ws.send_json(["run", "1+1", "ctx1"])

        assert ws.receive_json() == {"id": "ctx1", "mime": {"text/plain": "2"}, "end": True}


def test_websocket_request_reply(client):
    with client.websocket_connect("/ws/kernel/session-2") as ws:
        ws.receive_json()

        ws.send_json(["run", "await kernel.request({'ask': 'name'})", "ctx1"])
        assert ws.receive_json() == ["request", {"ask": "name"}, "ctx1", 1]

        ws.send_json(["reply", "Ada", "ctx1", 1])
        assert ws.receive_json() == {"id": "ctx1", "mime": {"text/plain": "'Ada'"}, "end": True}


def test_websocket_invalid_json_is_a_fault(client):
    with client.websocket_connect("/ws/kernel/session-3") as ws:
        ws.receive_json()

        ws.send_text("{")

        assert "MalformedMessage" in ws.receive_json()["stderr"]


def test_websocket_errors_are_sent_to_context(client):
    with client.websocket_connect("/ws/kernel/session-4") as ws:
        ws.receive_json()

        ws.send_json(["inspect", "missing_name", "ctx1"])

        message = ws.receive_json()
        assert message["id"] == "ctx1"
        assert message["error"]["ename"] == "NameError"
