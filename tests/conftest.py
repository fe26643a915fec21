import os
import sys
from pathlib import Path

import pytest

# Ensure the src directory is on the path for imports
root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(root / "src"))

log_dir = root / "logs"
log_dir.mkdir(parents=True, exist_ok=True)
os.environ.setdefault("CHATDESK_LOG_DIR", str(log_dir))
os.environ.setdefault("CHATDESK_CONFIG_DIR", str(log_dir / "config"))


@pytest.fixture
def db_scope(tmp_path):
    """Transaction factory bound to an isolated SQLite file."""

    from chatdesk.db.connect import initialize_db, make_session_factory, sqlite_engine

    engine = sqlite_engine(f"sqlite:///{tmp_path}/chat.db")
    initialize_db(engine)
    yield make_session_factory(engine)
    engine.dispose()
