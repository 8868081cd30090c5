import pytest
from fastapi.testclient import TestClient

from config import get_settings
from contact_store import ContactStore
from db_setup import get_db_connection, init_db


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    """Point the app at a fresh SQLite file for each test."""
    path = tmp_path / "contacts.db"
    monkeypatch.setenv("DB_NAME", str(path))
    get_settings.cache_clear()
    init_db()
    yield str(path)
    get_settings.cache_clear()


@pytest.fixture
def store(db_path):
    conn = get_db_connection()
    yield ContactStore(conn)
    conn.close()


@pytest.fixture
def client(db_path):
    from main import app
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def count_contacts(store):
    def _count():
        return store.conn.execute("SELECT COUNT(*) FROM Contact").fetchone()[0]
    return _count
