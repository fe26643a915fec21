# chatdesk/logging/logging.py
import os
import logging
import sys
from pathlib import Path

from .config import load_log_level

# Tracks which loggers already have handlers attached
_LOGGER_INITIALIZED = {}

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _resolve_log_dir(log_dir=None):
    if log_dir is not None:
        return Path(log_dir)
    return Path(os.environ.get("CHATDESK_LOG_DIR", Path.home() / ".chatdesk" / "logs"))


def _resolve_log_file(log_file=None, log_dir=None):
    if log_file is not None:
        return Path(log_file)
    return _resolve_log_dir(log_dir) / "chatdesk.log"


def get_logger(
    name="chatdesk",
    level=None,
    log_file=None,
    log_dir=None,
    console=True,
    propagate=False,
):
    """
    Get or create a chatdesk logger writing to a file and, optionally, stderr.
    - name: Logger name (default 'chatdesk')
    - level: Logging level; falls back to the persisted level, then INFO
    - log_file: File path for logs (default: <log_dir>/chatdesk.log)
    - log_dir: Directory for logs (default: ~/.chatdesk/logs)
    - console: If True, logs also go to stderr
    - propagate: Whether to propagate to root logger (default False)
    """
    logger = logging.getLogger(name)
    if not _LOGGER_INITIALIZED.get(name, False):
        if level is None:
            level = load_log_level() or logging.INFO
        logger.setLevel(level)
        logger.propagate = propagate
        formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)

        file_path = _resolve_log_file(log_file, log_dir)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        fh = logging.FileHandler(file_path, mode="a", encoding="utf-8")
        fh.setFormatter(formatter)
        logger.addHandler(fh)

        if console:
            ch = logging.StreamHandler(sys.stderr)
            ch.setFormatter(formatter)
            logger.addHandler(ch)

        _LOGGER_INITIALIZED[name] = True

    return logger


def reset_logger(name=None):
    """Reset configured loggers so they can be reconfigured.

    Parameters
    ----------
    name : str, optional
        Name of the logger to reset. If omitted, all loggers tracked by
        :func:`get_logger` are reset.

    Examples
    --------
    >>> logger = get_logger("demo", level=logging.DEBUG)
    >>> reset_logger("demo")
    >>> logger = get_logger("demo", level=logging.INFO)
    """
    if name is None:
        names = list(_LOGGER_INITIALIZED.keys())
    else:
        names = [name]

    for n in names:
        logger = logging.getLogger(n)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    if name is None:
        _LOGGER_INITIALIZED.clear()
    else:
        _LOGGER_INITIALIZED.pop(name, None)


def get_configured_level(name="chatdesk"):
    """Return the configured logging level name for ``name``."""

    level = logging.getLogger(name).getEffectiveLevel()
    return logging.getLevelName(level)
