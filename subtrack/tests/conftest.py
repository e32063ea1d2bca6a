import os
import sys
import sqlite3
import pytest
from pathlib import Path

# Ensure project root on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


@pytest.fixture(scope="session")
def tmp_db_path(tmp_path_factory):
    path = tmp_path_factory.mktemp("db") / "subtrack_test.db"
    # Point subtrack to this temp DB
    os.environ["SUBTRACK_DB_PATH"] = str(path)
    os.environ.pop("SUBTRACK_QUERY_TIMEOUT_MS", None)
    from subtrack.db import init_db
    init_db(str(path))
    return str(path)


@pytest.fixture(autouse=True)
def _clean_db(tmp_db_path):
    # Clean tables before each test for isolation
    # Safety: ensure we only ever wipe the temp DB, never a real one
    assert os.environ.get("SUBTRACK_DB_PATH") == tmp_db_path, "Refusing to clean non-temp DB"
    conn = sqlite3.connect(tmp_db_path)
    try:
        for t in ("subscriptions", "operation_log"):
            conn.execute(f"DELETE FROM {t}")
        conn.commit()
    finally:
        conn.close()
    yield


@pytest.fixture(params=["sqlite", "memory"])
def repo(request, tmp_db_path):
    from subtrack.repository import InMemorySubscriptionRepository, SqliteSubscriptionRepository
    if request.param == "sqlite":
        return SqliteSubscriptionRepository(tmp_db_path)
    return InMemorySubscriptionRepository()
