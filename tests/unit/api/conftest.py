import pytest
from fastapi.testclient import TestClient

from chatdesk.api.main import app
from chatdesk.api.routes.chat import get_completer
from chatdesk.conversation.completion import Completion
from chatdesk.db.connect import _scope_for, get_engine


class FakeCompleter:
    def __init__(self):
        self.text = "Solar panels typically pay for themselves in 6-10 years."
        self.confidence = 0.85
        self.error = None
        self.calls = []

    def __call__(self, context):
        self.calls.append(list(context))
        if self.error is not None:
            raise self.error
        return Completion(text=self.text, provider="fake", model="fake-1", confidence=self.confidence)


@pytest.fixture
def completer():
    return FakeCompleter()


@pytest.fixture
def client(tmp_path, monkeypatch, completer):
    """TestClient bound to an isolated database and a fake completion backend."""

    monkeypatch.setenv("CHATDESK_DB_PATH", str(tmp_path / "chat.db"))
    monkeypatch.delenv("CHATDESK_ADMIN_API_KEY", raising=False)
    monkeypatch.delenv("CHATDESK_CHAT_FALLBACK", raising=False)
    monkeypatch.delenv("CHATDESK_FALLBACK_REPLY", raising=False)

    app.dependency_overrides[get_completer] = lambda: completer
    client = TestClient(app)
    try:
        yield client
    finally:
        app.dependency_overrides.clear()
        _scope_for.cache_clear()
        get_engine.cache_clear()
