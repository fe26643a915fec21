"""Tests for logging utilities."""

import logging

from chatdesk.logging import get_logger, reset_logger
from chatdesk.logging.config import load_config, load_log_level, save_log_level


def test_reset_logger_allows_reconfiguration(tmp_path):
    log1 = tmp_path / "first.log"
    log2 = tmp_path / "second.log"

    logger = get_logger("test", log_file=log1, console=False)
    logger.info("first message")
    for handler in logger.handlers:
        handler.flush()

    assert "first message" in log1.read_text()

    reset_logger("test")
    assert logging.getLogger("test").handlers == []

    logger2 = get_logger("test", log_file=log2, console=False)
    logger2.info("second message")
    for handler in logger2.handlers:
        handler.flush()

    assert "second message" in log2.read_text()
    assert "second message" not in log1.read_text()
    reset_logger("test")


def test_persisted_level_is_used_when_none_given(tmp_path, monkeypatch):
    monkeypatch.setenv("CHATDESK_LOG_CONFIG", str(tmp_path / "logging.json"))
    save_log_level("debug")

    logger = get_logger("persisted-level", log_file=tmp_path / "p.log", console=False)
    try:
        assert logger.level == logging.DEBUG
    finally:
        reset_logger("persisted-level")


def test_log_dir_env_controls_default_file(tmp_path, monkeypatch):
    monkeypatch.setenv("CHATDESK_LOG_DIR", str(tmp_path / "logs"))
    logger = get_logger("dir-env", console=False)
    try:
        logger.warning("hello")
        for handler in logger.handlers:
            handler.flush()
        assert "hello" in (tmp_path / "logs" / "chatdesk.log").read_text()
    finally:
        reset_logger("dir-env")


def test_config_helpers_tolerate_bad_files(tmp_path):
    config_file = tmp_path / "logging.json"
    config_file.write_text("{not json")
    assert load_config(config_file) == {}
    assert load_log_level(config_file) is None

    save_log_level("WARNING", config_file)
    assert load_log_level(config_file) == logging.WARNING


def test_missing_log_dir_is_created(tmp_path):
    log_dir = tmp_path / "nested" / "logs"
    logger = get_logger("fresh-dir", log_dir=log_dir, console=False)
    try:
        logger.info("created")
        for handler in logger.handlers:
            handler.flush()
        assert "created" in (log_dir / "chatdesk.log").read_text()
    finally:
        reset_logger("fresh-dir")
