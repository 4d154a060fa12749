"""
Shared fixtures for contact reconciliation tests.

Every test gets its own SQLite database under pytest's tmp_path.
"""
import pytest

from contact_store import ContactStore
from resolver import IdentityResolver
from fakes import InMemoryContactStore


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast tests with no database")


@pytest.fixture
def temp_db(tmp_path):
    """Path to a fresh database file."""
    return str(tmp_path / "contacts.db")


@pytest.fixture
def store(temp_db):
    """ContactStore backed by a temporary database."""
    return ContactStore(db_path=temp_db, busy_timeout=5.0)


@pytest.fixture
def resolver(store):
    return IdentityResolver(store)


@pytest.fixture
def fake_store():
    """In-memory store that records writes."""
    return InMemoryContactStore()


@pytest.fixture
def fake_resolver(fake_store):
    return IdentityResolver(fake_store)


@pytest.fixture
def read_contacts(store):
    """Return a callable reading every stored contact in id order."""
    def _read():
        with store.transaction() as session:
            rows = session._conn.execute("SELECT id FROM Contact ORDER BY id").fetchall()
            return [session.get(row["id"]) for row in rows]
    return _read
