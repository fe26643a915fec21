# chatdesk/db/connect.py

from __future__ import annotations

import os
from contextlib import contextmanager
from functools import lru_cache
from pathlib import Path
from typing import Callable, ContextManager, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from chatdesk.logging import get_logger

from .models import Base


logger = get_logger(__name__)

SessionScope = Callable[[], ContextManager[Session]]


def get_db_dir() -> Path:
    db_dir = Path(os.environ.get("CHATDESK_DB_DIR", Path.home() / "chatdesk")).expanduser()
    db_dir.mkdir(parents=True, exist_ok=True)
    return db_dir


def _sqlite_uri(db_path: str | Path) -> str:
    raw = str(db_path).strip()
    if raw.startswith("sqlite"):
        return raw
    path = Path(raw).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return "sqlite:///" + str(path)


def get_db_uri(file: str | Path | None = None) -> str:
    """Return a SQLite URI string for the chat database.

    Resolution order:
      1) explicit ``file`` argument
      2) env ``CHATDESK_DB_PATH``
      3) ``chatdesk.db`` inside :func:`get_db_dir`
    """

    if file is not None:
        return _sqlite_uri(file)

    env_path = (os.getenv("CHATDESK_DB_PATH") or "").strip()
    if env_path:
        return _sqlite_uri(env_path)

    return _sqlite_uri(get_db_dir() / "chatdesk.db")


def sqlite_engine(db_uri: str = "sqlite:///./chatdesk.db") -> Engine:
    engine = create_engine(
        db_uri,
        connect_args={
            "check_same_thread": False,
            "timeout": 30,
        },
        echo=False,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if ":memory:" not in db_uri and db_uri not in {"sqlite://", "sqlite:///"}:
            cursor.execute("PRAGMA journal_mode=WAL")
        dbapi_connection.set_trace_callback(lambda statement: logger.debug(statement))
        cursor.close()

    return engine


def initialize_db(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)


@lru_cache(maxsize=None)
def get_engine(db_uri: str) -> Engine:
    engine = sqlite_engine(db_uri)
    initialize_db(engine)
    logger.info("chat database ready at %s", db_uri)
    return engine


def make_session_factory(engine: Engine) -> SessionScope:
    """Return a context-managed session factory bound to ``engine``.

    Each ``with factory() as session`` block is one transaction: it commits
    on success and rolls back on error.
    """

    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)

    @contextmanager
    def get_session() -> Iterator[Session]:
        session = SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return get_session


@contextmanager
def get_session(file_path: str | Path | None = None) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations.

    Parameters
    ----------
    file_path:
        Optional path or URI to the SQLite database. If not provided, the
        ``CHATDESK_DB_PATH`` environment variable or the default location
        from :func:`get_db_dir` is used.
    """

    engine = get_engine(get_db_uri(file_path))
    with make_session_factory(engine)() as session:
        yield session


@lru_cache(maxsize=None)
def _scope_for(db_uri: str) -> SessionScope:
    return make_session_factory(get_engine(db_uri))


def get_session_scope(file: str | Path | None = None) -> SessionScope:
    """Return the (cached) transaction factory for the configured database."""

    return _scope_for(get_db_uri(file))
