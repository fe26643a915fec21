import pytest

from chatdesk.config import is_truthy


@pytest.mark.parametrize("value", ["1", "true", "TRUE", " yes ", "y", "on"])
def test_truthy_values(value):
    assert is_truthy(value) is True


@pytest.mark.parametrize("value", [None, "", "0", "false", "off", "no", "maybe"])
def test_falsy_values(value):
    assert is_truthy(value) is False


def test_fallback_toggle_reads_shared_helper(monkeypatch):
    from chatdesk.api.routes.chat import _fallback_enabled

    monkeypatch.setenv("CHATDESK_CHAT_FALLBACK", "On")
    assert _fallback_enabled() is True
    monkeypatch.setenv("CHATDESK_CHAT_FALLBACK", "0")
    assert _fallback_enabled() is False
