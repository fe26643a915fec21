"""End-to-end flows against the real app, database and stub completion backend."""

import pytest
from fastapi.testclient import TestClient

from chatdesk.api.main import app
from chatdesk.db.connect import _scope_for, get_engine


def _reset_engines():
    _scope_for.cache_clear()
    get_engine.cache_clear()


@pytest.fixture
def client(tmp_path, monkeypatch):
    """Provide a TestClient with an isolated temporary database."""

    monkeypatch.setenv("CHATDESK_DB_PATH", str(tmp_path / "chat.db"))
    monkeypatch.setenv("CHATDESK_COMPLETION_PROVIDER", "stub")
    monkeypatch.delenv("CHATDESK_ADMIN_API_KEY", raising=False)
    _reset_engines()
    client = TestClient(app)
    try:
        yield client
    finally:
        _reset_engines()


def test_full_support_conversation(client):
    first = client.post("/api/chat", json={"message": "Hello, I need help"})
    assert first.status_code == 200, first.text
    session_id = first.json()["sessionId"]
    assert first.json()["role"] == "bot"

    admin = client.post(
        "/api/admin/reply",
        json={"sessionId": session_id, "message": "A human agent has joined."},
    )
    assert admin.status_code == 200

    follow_up = client.post(
        "/api/chat", json={"message": "Great, thanks!", "sessionId": session_id}
    )
    assert follow_up.status_code == 200
    assert follow_up.json()["sessionId"] == session_id

    history = client.get(f"/api/session/{session_id}").json()["messages"]
    assert [m["role"] for m in history] == ["user", "bot", "admin", "user", "bot"]
    assert [m["id"] for m in history] == [1, 2, 3, 4, 5]
    timestamps = [m["timestamp"] for m in history]
    assert client.get(f"/api/session/{session_id}").json()["messages"] == history

    sessions = client.get("/api/sessions").json()
    assert [row["sessionId"] for row in sessions] == [session_id]
    assert sessions[0]["lastActivityAt"] == timestamps[-1]


def test_history_survives_restart(client, tmp_path):
    session_id = client.post("/api/session").json()["sessionId"]
    client.post("/api/chat", json={"message": "Remember me?", "sessionId": session_id})
    before = client.get(f"/api/session/{session_id}").json()

    get_engine(f"sqlite:///{tmp_path / 'chat.db'}").dispose()
    _reset_engines()

    restarted = TestClient(app)
    after = restarted.get(f"/api/session/{session_id}").json()
    assert after == before
    assert [m["text"] for m in after["messages"]][0] == "Remember me?"


def test_interleaved_sessions_stay_isolated(client):
    a = client.post("/api/session").json()["sessionId"]
    b = client.post("/api/session").json()["sessionId"]

    client.post("/api/chat", json={"message": "from a", "sessionId": a})
    client.post("/api/chat", json={"message": "from b", "sessionId": b})
    client.post("/api/chat", json={"message": "a again", "sessionId": a})

    history_a = client.get(f"/api/session/{a}").json()["messages"]
    history_b = client.get(f"/api/session/{b}").json()["messages"]
    assert [m["text"] for m in history_a if m["role"] == "user"] == ["from a", "a again"]
    assert [m["text"] for m in history_b if m["role"] == "user"] == ["from b"]
    assert {m["sessionId"] for m in history_a} == {a}
