"""Integration tests for the relay WebSocket endpoint.

Uses Starlette TestClient WebSocket sessions against the real app: no
real HTTP server, several clients sharing one registry and history.
"""

import json
import threading

from starlette.testclient import TestClient

from chatrelay.api.main import create_app
from chatrelay.config import RelayConfig
from chatrelay.chat.protocol import NAME_TAKEN_MESSAGE


def _client(tmp_path) -> TestClient:
    (tmp_path / "index.html").write_text("<h1>chat</h1>")
    return TestClient(create_app(RelayConfig(public_dir=tmp_path)))


def _send(ws, msg_type, data=None):
    ws.send_text(json.dumps({"type": msg_type, "data": data}))


def _recv(ws, timeout=5.0):
    """receive_json that fails the test instead of blocking forever."""
    result = {}

    def target():
        try:
            result["msg"] = ws.receive_json()
        except Exception as exc:
            result["error"] = exc

    reader = threading.Thread(target=target, daemon=True)
    reader.start()
    reader.join(timeout)
    assert not reader.is_alive(), f"no frame received within {timeout}s"
    if "error" in result:
        raise result["error"]
    return result["msg"]


def test_alice_bob_scenario(tmp_path):
    """Register, login, name clash, message and disconnect end to end."""
    with _client(tmp_path) as client:
        app = client.app
        with client.websocket_connect("/") as bob:
            _send(bob, "login", {"username": "bob", "color": "blue"})
            assert _recv(bob) == {"type": "add_user", "data": {"username": "bob", "color": "blue"}}

            with client.websocket_connect("/") as alice:
                _send(alice, "register", {"username": "alice", "color": "red"})
                assert _recv(alice) == {"type": "register", "data": {"username": "alice", "color": "red"}}

                _send(alice, "login", {"username": "alice", "color": "red"})
                added = {"type": "add_user", "data": {"username": "alice", "color": "red"}}
                assert _recv(alice) == added
                assert _recv(bob) == added

                with client.websocket_connect("/") as intruder:
                    _send(intruder, "login", {"username": "alice", "color": "green"})
                    assert _recv(intruder) == {"type": "error", "data": NAME_TAKEN_MESSAGE}
                # intruder left: remaining clients get a fresh presence list
                for ws in (alice, bob):
                    assert _recv(ws)["type"] == "users"

                _send(alice, "message", {"username": "alice", "color": "red", "content": "hi"})
                for ws in (alice, bob):
                    msg = _recv(ws)
                    assert msg["type"] == "message"
                    assert msg["data"]["content"] == "hi"
                    assert msg["data"]["username"] == "alice"
                    assert msg["data"]["color"] == "red"
                    assert msg["data"]["time"]
                assert len(app.state.history) == 1

            presence = _recv(bob)
            assert presence == {"type": "users", "data": [{"username": "bob", "color": "blue"}]}

            _send(bob, "users")
            assert _recv(bob)["data"] == [{"username": "bob", "color": "blue"}]


def test_history_for_late_joiner(tmp_path):
    with _client(tmp_path) as client:
        with client.websocket_connect("/") as first:
            _send(first, "login", {"username": "first", "color": "red"})
            _recv(first)
            for text in ("a", "b"):
                _send(first, "message", {"username": "first", "color": "red", "content": text})
                _recv(first)

        with client.websocket_connect("/ws") as late:
            _send(late, "history")
            reply = _recv(late)

    assert reply["type"] == "history"
    assert [m["content"] for m in reply["data"]] == ["a", "b"]


def test_malformed_frame_keeps_connection_open(tmp_path):
    with _client(tmp_path) as client:
        with client.websocket_connect("/") as ws:
            ws.send_text("definitely not json")
            ws.send_bytes(b"\xff\xfe")
            ws.send_text('{"type":"message","data":' + "[" * 100000)
            _send(ws, "test")
            _send(ws, "users")
            assert _recv(ws) == {"type": "users", "data": []}


def test_health_endpoint(tmp_path):
    with _client(tmp_path) as client:
        resp = client.get("/api/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["users"] == 0
    assert body["messages"] == 0


def test_static_files_served_from_public_dir(tmp_path):
    with _client(tmp_path) as client:
        resp = client.get("/")

    assert resp.status_code == 200
    assert "<h1>chat</h1>" in resp.text
