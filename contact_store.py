"""
SQLite-backed contact store.

All reads and writes for one identity resolution happen inside a single
``ContactStore.transaction()`` block. The block opens with ``BEGIN IMMEDIATE``
so the write lock is held from the first read; two resolutions that would
merge the same clusters therefore run one after the other.

The lock covers the whole database file, so resolutions for unrelated
identities also queue behind each other. Finer-grained concurrency needs an
engine with row-level locking.
"""
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from config import settings
from db_models import Contact, LinkPrecedence
from db_setup import get_db_connection, init_db
from errors import StorageFailure

logger = logging.getLogger(__name__)


def _now() -> str:
    # UTC and fixed width so lexical order matches chronological order
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _to_contact(row) -> Contact:
    return Contact(**dict(row))


class ContactSession:
    """Queries bound to one open transaction."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def find_by_email_or_phone(self, email: Optional[str] = None, phone: Optional[str] = None) -> List[Contact]:
        """
        Find contacts sharing the given email or phone number.

        Only the attributes actually supplied take part in the match.

        Returns:
            Matching contacts, oldest first
        """
        clauses = []
        params = []
        if email:
            clauses.append("email = ?")
            params.append(email)
        if phone:
            clauses.append("phoneNumber = ?")
            params.append(phone)
        if not clauses:
            return []

        match = " OR ".join(clauses)
        rows = self._conn.execute(f"""
            SELECT * FROM Contact
            WHERE deletedAt IS NULL
            AND ({match})
            ORDER BY createdAt ASC, id ASC
        """, params).fetchall()
        return [_to_contact(row) for row in rows]

    def get(self, contact_id: int) -> Optional[Contact]:
        row = self._conn.execute(
            "SELECT * FROM Contact WHERE id = ? AND deletedAt IS NULL", (contact_id,)
        ).fetchone()
        return _to_contact(row) if row else None

    def find_cluster(self, primary_id: int) -> List[Contact]:
        """Return the primary plus every contact linked to it, oldest first."""
        rows = self._conn.execute("""
            SELECT * FROM Contact
            WHERE (id = ? OR linkedId = ?) AND deletedAt IS NULL
            ORDER BY createdAt ASC, id ASC
        """, (primary_id, primary_id)).fetchall()
        return [_to_contact(row) for row in rows]

    def create(
        self,
        email: Optional[str],
        phone: Optional[str],
        link_precedence: LinkPrecedence,
        linked_id: Optional[int] = None,
    ) -> Contact:
        now = _now()
        cursor = self._conn.execute("""
            INSERT INTO Contact (phoneNumber, email, linkedId, linkPrecedence, createdAt, updatedAt)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (phone, email, linked_id, LinkPrecedence(link_precedence).value, now, now))
        return self.get(cursor.lastrowid)

    def relink(self, contact_id: int, linked_id: int):
        """Demote a contact to secondary of ``linked_id``."""
        self._conn.execute("""
            UPDATE Contact
            SET linkedId = ?, linkPrecedence = 'secondary', updatedAt = ?
            WHERE id = ?
        """, (linked_id, _now(), contact_id))

    def promote(self, contact_id: int):
        """Make a contact the primary of its own cluster."""
        self._conn.execute("""
            UPDATE Contact
            SET linkedId = NULL, linkPrecedence = 'primary', updatedAt = ?
            WHERE id = ?
        """, (_now(), contact_id))

    def relink_secondaries(self, old_primary_id: int, new_primary_id: int) -> int:
        """Point every contact linked to ``old_primary_id`` at ``new_primary_id``."""
        cursor = self._conn.execute("""
            UPDATE Contact
            SET linkedId = ?, linkPrecedence = 'secondary', updatedAt = ?
            WHERE linkedId = ? AND deletedAt IS NULL
        """, (new_primary_id, _now(), old_primary_id))
        return cursor.rowcount


class ContactStore:
    """Opens unit-of-work sessions against the contacts database."""

    def __init__(self, db_path: Optional[str] = None, busy_timeout: Optional[float] = None):
        self.db_path = db_path or settings.db_path
        self.busy_timeout = settings.busy_timeout_seconds if busy_timeout is None else busy_timeout
        init_db(self.db_path)

    @contextmanager
    def transaction(self) -> Iterator[ContactSession]:
        """
        Run a block of store calls as one atomic unit.

        Commits when the block exits normally. Any exception rolls back every
        write made in the block; sqlite errors are re-raised as StorageFailure.
        """
        try:
            conn = get_db_connection(self.db_path, timeout=self.busy_timeout)
        except sqlite3.Error as e:
            raise StorageFailure(f"Could not open contact database: {e}") from e

        try:
            conn.execute("BEGIN IMMEDIATE")
            yield ContactSession(conn)
            conn.commit()
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.rollback()
            logger.warning(f"Rolled back contact transaction: {e}")
            raise StorageFailure(str(e)) from e
        except BaseException:
            if conn.in_transaction:
                conn.rollback()
            raise
        finally:
            conn.close()

    def ping(self) -> bool:
        """Check the database answers a trivial query."""
        try:
            conn = get_db_connection(self.db_path, timeout=self.busy_timeout)
            try:
                conn.execute("SELECT 1 FROM Contact LIMIT 1").fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"Contact database health check failed: {e}")
            return False
        return True
