import threading
import time
from datetime import datetime, timezone

import pytest

from hatchmsg.db import DatabaseConfig, DatabaseError, connect
from hatchmsg.domain import Contact, Message
from hatchmsg.scheduled import ScheduledSender
from hatchmsg.store import ConversationStore


@pytest.fixture
def conn():
    connection = connect(DatabaseConfig(dbname=":memory:"))
    yield connection
    connection.close()


class _BrokenStore:
    def get_scheduled_messages(self):
        raise DatabaseError("down")


class _CountingStore:
    def __init__(self):
        self.calls = 0
        self.called = threading.Event()

    def get_scheduled_messages(self):
        self.calls += 1
        self.called.set()
        return []


def test_run_once_empty(conn):
    assert ScheduledSender(ConversationStore(conn)).run_once() == []


def test_run_once_returns_due_messages(conn):
    store = ConversationStore(conn)
    alice = store.upsert_contact(Contact(phone_number="alice"))
    bob = store.upsert_contact(Contact(phone_number="bob"))
    conversation_id = store.upsert_conversation(alice, bob)
    store.save_message(
        Message(
            conversation_id=conversation_id,
            sender_id=alice,
            type="sms",
            body="later",
            timestamp=datetime(2024, 11, 1, 14, 0, tzinfo=timezone.utc),
        )
    )
    conn.execute(
        "UPDATE conversation_message SET scheduled_time = '2000-01-01T00:00:00.000000Z'"
    )
    due = ScheduledSender(store).run_once()
    assert [m.body for m in due] == ["later"]
    assert due[0].sender_id == alice


def test_run_once_survives_store_failure():
    assert ScheduledSender(_BrokenStore()).run_once() == []


@pytest.mark.parametrize("interval", [0, -1])
def test_interval_must_be_positive(interval):
    with pytest.raises(ValueError):
        ScheduledSender(_CountingStore(), interval)


def test_start_polls_and_stop_halts():
    store = _CountingStore()
    sender = ScheduledSender(store, 0.01)
    sender.start()
    assert store.called.wait(2)
    sender.stop()
    calls = store.calls
    time.sleep(0.05)
    assert calls >= 1
    assert store.calls == calls