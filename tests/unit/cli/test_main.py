import sys
from unittest.mock import MagicMock

import pytest

from chatdesk.cli.main import main


def test_db_status(monkeypatch):
    mock_check_status = MagicMock()
    monkeypatch.setattr("chatdesk.cli.db.operations.check_status", mock_check_status)
    monkeypatch.setattr(sys, "argv", ["chatdesk", "db", "status"])
    main()
    mock_check_status.assert_called_once()


def test_db_sessions_renders_table(monkeypatch, capsys):
    monkeypatch.setattr(
        "chatdesk.cli.db.operations.list_sessions",
        MagicMock(
            return_value=[
                {
                    "sessionId": "abc-123",
                    "createdAt": "2024-05-01T12:00:00+00:00",
                    "lastActivityAt": "2024-05-01T12:05:00+00:00",
                    "messageCount": 4,
                }
            ]
        ),
    )
    monkeypatch.setattr(sys, "argv", ["chatdesk", "db", "sessions"])
    main()
    assert "abc-123" in capsys.readouterr().out


def test_api_status_does_not_start_server(monkeypatch):
    run_mock = MagicMock()
    monkeypatch.setattr("uvicorn.run", run_mock)
    monkeypatch.setattr(sys, "argv", ["chatdesk", "api", "status"])
    main()
    run_mock.assert_not_called()


def test_api_start(monkeypatch):
    run_mock = MagicMock()
    monkeypatch.setattr("uvicorn.run", run_mock)
    monkeypatch.setattr(
        sys,
        "argv",
        ["chatdesk", "api", "start", "--host", "0.0.0.0", "--port", "5000"],
    )
    main()
    run_mock.assert_called_once()
    assert run_mock.call_args.kwargs["host"] == "0.0.0.0"
    assert run_mock.call_args.kwargs["port"] == 5000


def test_missing_command_exits(monkeypatch):
    monkeypatch.setattr(sys, "argv", ["chatdesk"])
    with pytest.raises(SystemExit):
        main()
