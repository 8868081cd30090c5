import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from db_models import Contact, LinkPrecedence
from errors import ConflictFault, StoreUnavailable

logger = logging.getLogger(__name__)

CONTACT_COLUMNS = (
    "id", "phoneNumber", "email", "linkedId", "linkPrecedence",
    "createdAt", "updatedAt", "deletedAt",
)


def _select_columns(table: str, prefix: str = "") -> str:
    return ", ".join(f"{table}.{col} AS {prefix}{col}" for col in CONTACT_COLUMNS)


def _row_to_contact(row: sqlite3.Row, prefix: str = "") -> Contact:
    return Contact(**{col: row[prefix + col] for col in CONTACT_COLUMNS})


class ContactStore:
    """Contact table access over one sqlite3 connection."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def _execute(self, query: str, params=()) -> sqlite3.Cursor:
        try:
            return self.conn.execute(query, params)
        except sqlite3.IntegrityError as exc:
            logger.warning("Contact write rejected: %s", exc)
            raise ConflictFault(
                "Contact with this email and phoneNumber already exists",
                meta={"reason": str(exc)},
            ) from exc
        except sqlite3.OperationalError as exc:
            logger.warning("Contact store unavailable: %s", exc)
            raise StoreUnavailable("Contact store is unavailable") from exc

    @contextmanager
    def transaction(self):
        """Hold the database write lock from the first read to the last write."""
        self._execute("BEGIN IMMEDIATE")
        try:
            yield self
        except BaseException:
            if self.conn.in_transaction:
                try:
                    self.conn.execute("ROLLBACK")
                except sqlite3.Error:
                    logger.exception("Rollback failed")
            raise
        self._execute("COMMIT")

    def get(self, contact_id: int) -> Optional[Contact]:
        row = self._execute(
            f"SELECT {_select_columns('c')} FROM Contact c WHERE c.id = ?",
            (contact_id,),
        ).fetchone()
        return _row_to_contact(row) if row else None

    def find_by_email_or_phone(self, email: Optional[str] = None, phone: Optional[str] = None) -> List[Contact]:
        filters = []
        params = []
        if email is not None:
            filters.append("c.email = ?")
            params.append(email)
        if phone is not None:
            filters.append("c.phoneNumber = ?")
            params.append(phone)
        if not filters:
            return []

        rows = self._execute(
            f"""
            SELECT {_select_columns('c')}, {_select_columns('p', 'linked_')}
            FROM Contact c
            LEFT JOIN Contact p ON c.linkedId = p.id
            WHERE {' OR '.join(filters)}
            ORDER BY c.id ASC
            """,
            params,
        ).fetchall()

        contacts = []
        for row in rows:
            contact = _row_to_contact(row)
            if row["linked_id"] is not None:
                contact.linkedContact = _row_to_contact(row, "linked_")
            contacts.append(contact)
        return contacts

    def find_by_linked_id_in(self, ids: Iterable[int]) -> List[Contact]:
        ids = list(ids)
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        rows = self._execute(
            f"""
            SELECT {_select_columns('c')} FROM Contact c
            WHERE c.linkedId IN ({placeholders})
            ORDER BY c.id ASC
            """,
            ids,
        ).fetchall()
        return [_row_to_contact(row) for row in rows]

    def insert(
        self,
        email: Optional[str],
        phone: Optional[str],
        link_precedence: LinkPrecedence,
        linked_id: Optional[int] = None,
        created_at: Optional[datetime] = None,
    ) -> int:
        now = (created_at or datetime.now(timezone.utc)).isoformat()
        cursor = self._execute(
            """
            INSERT INTO Contact (phoneNumber, email, linkedId, linkPrecedence, createdAt, updatedAt)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (phone, email, linked_id, LinkPrecedence(link_precedence).value, now, now),
        )
        return cursor.lastrowid

    def bulk_update(
        self,
        ids: Iterable[int],
        link_precedence: LinkPrecedence,
        linked_id: Optional[int],
        updated_at: Optional[datetime] = None,
    ) -> int:
        ids = list(ids)
        if not ids:
            return 0
        placeholders = ", ".join("?" for _ in ids)
        cursor = self._execute(
            f"""
            UPDATE Contact
            SET linkPrecedence = ?, linkedId = ?, updatedAt = ?
            WHERE id IN ({placeholders})
            """,
            [
                LinkPrecedence(link_precedence).value,
                linked_id,
                (updated_at or datetime.now(timezone.utc)).isoformat(),
                *ids,
            ],
        )
        return cursor.rowcount
