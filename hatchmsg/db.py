"""Opening the message database and bringing its schema up to date."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass

logger = logging.getLogger(__name__)

PASSWORD = "password"
_SQLITE_SUFFIXES = (".db", ".sqlite", ".sqlite3")

MIGRATIONS: tuple[tuple[str, ...], ...] = (
    (
        """
        CREATE TABLE contact (
            id INTEGER PRIMARY KEY,
            first_name TEXT NOT NULL DEFAULT '',
            last_name TEXT NOT NULL DEFAULT '',
            phone_number TEXT,
            email TEXT
        )
        """,
        "CREATE INDEX contact_phone_number_idx ON contact (phone_number)",
        "CREATE INDEX contact_email_idx ON contact (email)",
        """
        CREATE TABLE conversation (
            id INTEGER PRIMARY KEY,
            created_date TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
        """
        CREATE TABLE conversation_contact (
            conversation_id INTEGER NOT NULL
                REFERENCES conversation (id) ON DELETE CASCADE,
            contact_id INTEGER NOT NULL
                REFERENCES contact (id) ON DELETE CASCADE
        )
        """,
        """
        CREATE INDEX conversation_contact_contact_idx
            ON conversation_contact (contact_id)
        """,
        """
        CREATE TABLE conversation_message (
            id INTEGER PRIMARY KEY,
            conversation_id INTEGER NOT NULL
                REFERENCES conversation (id) ON DELETE CASCADE,
            sender_id INTEGER NOT NULL
                REFERENCES contact (id) ON DELETE CASCADE,
            type TEXT NOT NULL DEFAULT '',
            body TEXT NOT NULL DEFAULT '',
            attachments TEXT,
            timestamp TEXT NOT NULL,
            scheduled_time TEXT,
            message_sent INTEGER NOT NULL DEFAULT 0
        )
        """,
        """
        CREATE INDEX conversation_message_conversation_idx
            ON conversation_message (conversation_id)
        """,
        """
        CREATE INDEX conversation_message_sender_idx
            ON conversation_message (sender_id, timestamp)
        """,
    ),
)


class DatabaseError(Exception):
    """Raised when the database cannot be reached or a query fails."""


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection parameters; the database itself is a local SQLite file."""

    host: str = "localhost"
    port: str = "5432"
    user: str = "messaging_user"
    password: str = PASSWORD
    dbname: str = "messaging_service"
    sslmode: str = ""

    @property
    def path(self) -> str:
        """The SQLite file that holds the database named by ``dbname``."""
        if self.dbname == ":memory:" or self.dbname.lower().endswith(_SQLITE_SUFFIXES):
            return self.dbname
        return f"{self.dbname}.sqlite3"


def apply_migrations(conn: sqlite3.Connection) -> int:
    """Apply pending schema migrations and return how many were applied."""
    conn.isolation_level = None
    try:
        current = conn.execute("PRAGMA user_version").fetchone()[0]
    except sqlite3.Error as exc:
        raise DatabaseError(f"failed to run migrations: {exc}") from exc

    applied = 0
    for version, statements in enumerate(MIGRATIONS, start=1):
        if version <= current:
            continue
        try:
            conn.execute("BEGIN")
            for statement in statements:
                conn.execute(statement)
            conn.execute(f"PRAGMA user_version = {version}")
            conn.commit()
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.rollback()
            raise DatabaseError(f"failed to run migrations: {exc}") from exc
        applied += 1
    return applied


def connect(config: DatabaseConfig) -> sqlite3.Connection:
    """Open the database, check it answers and apply migrations."""
    try:
        conn = sqlite3.connect(config.path, isolation_level=None, check_same_thread=False)
    except sqlite3.Error as exc:
        raise DatabaseError(f"failed to connect to database: {exc}") from exc

    try:
        conn.execute("SELECT 1").fetchone()
        conn.execute("PRAGMA foreign_keys = ON")
    except sqlite3.Error as exc:
        conn.close()
        raise DatabaseError(f"failed to ping database: {exc}") from exc

    try:
        apply_migrations(conn)
    except DatabaseError:
        conn.close()
        raise

    logger.info("Database connected and migrations applied successfully")
    return conn