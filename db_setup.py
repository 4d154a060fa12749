import sqlite3
from typing import Optional

from config import settings


def init_db(db_path: Optional[str] = None):
    conn = sqlite3.connect(db_path or settings.db_path)
    try:
        conn.execute('''
            CREATE TABLE IF NOT EXISTS Contact (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                phoneNumber TEXT,
                email TEXT,
                linkedId INTEGER,
                linkPrecedence TEXT CHECK(linkPrecedence IN ('secondary', 'primary')),
                createdAt DATETIME DEFAULT CURRENT_TIMESTAMP,
                updatedAt DATETIME DEFAULT CURRENT_TIMESTAMP,
                deletedAt DATETIME,
                FOREIGN KEY (linkedId) REFERENCES Contact (id)
            )
        ''')
        conn.execute("CREATE INDEX IF NOT EXISTS idx_contact_email ON Contact (email)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_contact_phone ON Contact (phoneNumber)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_contact_linked ON Contact (linkedId)")
        conn.commit()
    finally:
        conn.close()


def get_db_connection(db_path: Optional[str] = None, timeout: Optional[float] = None):
    # transactions are opened explicitly by the caller
    conn = sqlite3.connect(
        db_path or settings.db_path,
        timeout=settings.busy_timeout_seconds if timeout is None else timeout,
        isolation_level=None,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    return conn
