"""Persistence of contacts, conversations and messages."""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any

from .db import DatabaseError
from .domain import Contact, Conversation, Message

logger = logging.getLogger(__name__)

RATE_WINDOW = timedelta(seconds=60)


def _to_storage(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec="microseconds") + "Z"


def _from_storage(text: str) -> datetime:
    return datetime.fromisoformat(text.removesuffix("Z")).replace(tzinfo=timezone.utc)


class ConversationStore:
    """Reads and writes conversations and their messages."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        conn.isolation_level = None
        self._conn = conn

    def _execute(self, sql: str, params: Sequence[Any], failure: str) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as exc:
            logger.error("%s: %s", failure, exc)
            raise DatabaseError(f"{failure}: {exc}") from exc

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        self._execute("BEGIN", (), "error starting transaction")
        try:
            yield
        except BaseException:
            try:
                self._conn.rollback()
            except sqlite3.Error as exc:
                logger.error("error rolling back transaction: %s", exc)
            raise
        try:
            self._conn.commit()
        except sqlite3.Error as exc:
            logger.error("error committing transaction: %s", exc)
            raise DatabaseError(f"error committing transaction: {exc}") from exc

    def upsert_contact(self, contact: Contact) -> int:
        """Return the id of the contact with this e-mail (or phone), adding it if new."""
        if contact.email:
            column, value = "email", contact.email
        else:
            column, value = "phone_number", contact.phone_number
        with self._transaction():
            row = self._execute(
                f"SELECT id FROM contact WHERE {column} = ?",
                (value,),
                "error querying contact",
            ).fetchone()
            if row is not None:
                return row[0]
            cursor = self._execute(
                """
                INSERT INTO contact (first_name, last_name, phone_number, email)
                VALUES (?, ?, NULLIF(?, ''), NULLIF(?, ''))
                """,
                (contact.first_name, contact.last_name, contact.phone_number, contact.email),
                "error inserting new contact",
            )
            return cursor.lastrowid

    def list_conversations(self) -> list[Conversation]:
        rows = self._execute(
            "SELECT id FROM conversation ORDER BY id", (), "error listing conversations"
        )
        return [Conversation(id=conversation_id) for (conversation_id,) in rows]

    def get_messages_by_conversation_id(self, conversation_id: int) -> list[Message]:
        rows = self._execute(
            """
            SELECT id, conversation_id, sender_id, type, body, timestamp
            FROM conversation_message
            WHERE conversation_id = ?
            ORDER BY id
            """,
            (conversation_id,),
            "error getting messages",
        )
        messages = []
        for message_id, conv_id, sender_id, kind, body, stamp in rows:
            try:
                timestamp = _from_storage(stamp)
            except (TypeError, ValueError) as exc:
                logger.error("error scanning Conversation: %s", exc)
                continue
            messages.append(
                Message(
                    id=message_id,
                    conversation_id=conv_id,
                    sender_id=sender_id,
                    type=kind,
                    body=body,
                    timestamp=timestamp,
                )
            )
        return messages

    def upsert_conversation(self, sender_id: int, recipient_id: int) -> int:
        """Return the conversation holding both contacts, creating it if needed."""
        with self._transaction():
            row = self._execute(
                """
                SELECT id
                FROM conversation
                WHERE id IN (
                    SELECT conversation_id
                    FROM conversation_contact
                    WHERE contact_id IN (?, ?)
                    GROUP BY conversation_id
                    HAVING COUNT(DISTINCT contact_id) = 2
                )
                LIMIT 1
                """,
                (sender_id, recipient_id),
                "error checking existing conversation",
            ).fetchone()
            if row is not None:
                return row[0]
            conversation_id = self._execute(
                "INSERT INTO conversation DEFAULT VALUES",
                (),
                "error creating new conversation",
            ).lastrowid
            self._execute(
                """
                INSERT INTO conversation_contact (conversation_id, contact_id)
                VALUES (?, ?), (?, ?)
                """,
                (conversation_id, sender_id, conversation_id, recipient_id),
                "error inserting contacts into conversation",
            )
            return conversation_id

    def save_message(self, message: Message) -> None:
        self._execute(
            """
            INSERT INTO conversation_message (conversation_id, sender_id, type, body, timestamp)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                message.conversation_id,
                message.sender_id,
                message.type,
                message.body,
                _to_storage(message.timestamp),
            ),
            "error saving message",
        )

    def get_message_count_by_sender_id(self, sender_id: int) -> int:
        """Count the sender's messages stamped more than sixty seconds ago."""
        cutoff = _to_storage(datetime.now(timezone.utc) - RATE_WINDOW)
        row = self._execute(
            """
            SELECT count(timestamp) FROM conversation_message
            WHERE sender_id = ? AND timestamp < ?
            """,
            (sender_id, cutoff),
            "error counting messages",
        ).fetchone()
        return 0 if row is None else row[0]

    def get_scheduled_messages(self) -> list[Message]:
        """Messages whose scheduled time has passed and that are not yet sent."""
        now = _to_storage(datetime.now(timezone.utc))
        rows = self._execute(
            """
            SELECT id, conversation_id, sender_id, type, body, attachments, timestamp
            FROM conversation_message
            WHERE scheduled_time < ? AND message_sent IS NOT 1
            ORDER BY id
            """,
            (now,),
            "error getting scheduled messages",
        )
        messages = []
        for message_id, conv_id, sender_id, kind, body, attachments, stamp in rows:
            try:
                parsed = None if attachments is None else json.loads(attachments)
                timestamp = _from_storage(stamp)
            except (TypeError, ValueError) as exc:
                logger.error("error scanning Message: %s", exc)
                continue
            messages.append(
                Message(
                    id=message_id,
                    conversation_id=conv_id,
                    sender_id=sender_id,
                    type=kind,
                    body=body,
                    attachments=parsed,
                    timestamp=timestamp,
                )
            )
        return messages