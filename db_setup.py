import logging
import sqlite3
from typing import Optional

from config import get_settings
from errors import StoreUnavailable

logger = logging.getLogger(__name__)


def init_db(db_name: Optional[str] = None):
    conn = get_db_connection(db_name)
    cursor = conn.cursor()

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS Contact (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            phoneNumber TEXT,
            email TEXT,
            linkedId INTEGER,
            linkPrecedence TEXT NOT NULL CHECK(linkPrecedence IN ('secondary', 'primary')),
            createdAt DATETIME DEFAULT CURRENT_TIMESTAMP,
            updatedAt DATETIME DEFAULT CURRENT_TIMESTAMP,
            deletedAt DATETIME,
            FOREIGN KEY (linkedId) REFERENCES Contact (id)
        )
    ''')
    # NULLs are distinct in a plain UNIQUE constraint, so the pair is indexed on
    # expressions to keep (email, NULL) rows unique as well.
    cursor.execute('''
        CREATE UNIQUE INDEX IF NOT EXISTS idx_contact_email_phone
        ON Contact (IFNULL(email, ''), IFNULL(phoneNumber, ''))
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_contact_email ON Contact (email)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_contact_phone ON Contact (phoneNumber)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_contact_linked ON Contact (linkedId)')

    conn.close()
    logger.info("Contact schema ready")


def get_db_connection(db_name: Optional[str] = None):
    settings = get_settings()
    # Autocommit mode: transactions are opened explicitly by ContactStore.
    try:
        conn = sqlite3.connect(
            db_name or settings.DB_NAME,
            timeout=settings.DB_BUSY_TIMEOUT,
            isolation_level=None,
            check_same_thread=False,
        )
    except sqlite3.OperationalError as exc:
        logger.warning("Cannot open contact database: %s", exc)
        raise StoreUnavailable("Contact store is unavailable") from exc
    conn.row_factory = sqlite3.Row
    return conn
