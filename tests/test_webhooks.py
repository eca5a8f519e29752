import json
from datetime import datetime, timezone

import pytest

from hatchmsg.db import DatabaseConfig, DatabaseError, connect
from hatchmsg.domain import Contact
from hatchmsg.store import ConversationStore
from hatchmsg.webhooks import handle_email_webhook, handle_sms_webhook

OLD_STAMP = "2024-11-01T14:00:00Z"
ALIVE = '{"alive": true}'


@pytest.fixture
def store():
    conn = connect(DatabaseConfig(dbname=":memory:"))
    yield ConversationStore(conn)
    conn.close()


class FakeStore:
    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.calls = []
        self.contacts = []
        self.saved = []

    def _record(self, name):
        self.calls.append(name)
        if name == self.fail_on:
            raise DatabaseError("unavailable")

    def upsert_contact(self, contact):
        self._record("upsert_contact")
        self.contacts.append(contact)
        return len(self.contacts)

    def upsert_conversation(self, sender_id, recipient_id):
        self._record("upsert_conversation")
        return 7

    def save_message(self, message):
        self._record("save_message")
        self.saved.append(message)


def sms(**extra):
    doc = {
        "messaging_provider_id": "1",
        "from": "+1000",
        "to": "+2000",
        "type": "mms",
        "body": "hello",
        "timestamp": OLD_STAMP,
    }
    doc.update(extra)
    return json.dumps(doc).encode()


def email():
    doc = {
        "messaging_provider_id": "2",
        "from": "alice@example.com",
        "to": "bob@example.com",
        "body": "hi",
        "timestamp": OLD_STAMP,
    }
    return json.dumps(doc).encode()


def test_sms_webhook_stores_message(store):
    response = handle_sms_webhook(store, sms())
    assert response.status == 200
    assert json.loads(response.body) == ALIVE
    [conversation] = store.list_conversations()
    [message] = store.get_messages_by_conversation_id(conversation.id)
    assert message.type == "mms"
    assert message.body == "hello"
    assert message.timestamp == datetime(2024, 11, 1, 14, 0, tzinfo=timezone.utc)
    assert message.sender_id == store.upsert_contact(Contact(phone_number="+1000"))


def test_sms_webhook_has_no_rate_limit(store):
    statuses = [handle_sms_webhook(store, sms()).status for _ in range(6)]
    assert statuses == [200] * 6


def test_email_webhook_keys_contacts_by_phone_number(store):
    response = handle_email_webhook(store, email())
    assert response.status == 200
    assert json.loads(response.body) == ALIVE
    [conversation] = store.list_conversations()
    [message] = store.get_messages_by_conversation_id(conversation.id)
    assert message.type == "email"
    assert message.sender_id == store.upsert_contact(Contact(phone_number="alice@example.com"))


def test_email_webhook_contacts_and_ids():
    fake = FakeStore()
    handle_email_webhook(fake, email())
    assert fake.contacts == [
        Contact(first_name="TestFirstname", last_name="TestLastname", phone_number="alice@example.com"),
        Contact(first_name="TestFirstname", last_name="TestLastname", phone_number="bob@example.com"),
    ]
    [message] = fake.saved
    assert message.conversation_id == 7
    assert message.sender_id == 1


def test_sms_and_email_webhooks_share_conversation_for_same_pair(store):
    handle_sms_webhook(store, sms())
    handle_sms_webhook(store, sms(body="again"))
    [conversation] = store.list_conversations()
    bodies = [m.body for m in store.get_messages_by_conversation_id(conversation.id)]
    assert bodies == ["hello", "again"]


@pytest.mark.parametrize("handler", [handle_sms_webhook, handle_email_webhook])
def test_bad_body_is_rejected(store, handler):
    response = handler(store, b'{"timestamp": "soon"}')
    assert response.status == 400
    assert response.body == b""
    assert store.list_conversations() == []


@pytest.mark.parametrize("handler,body", [(handle_sms_webhook, sms()), (handle_email_webhook, email())])
@pytest.mark.parametrize("method", ["upsert_contact", "upsert_conversation", "save_message"])
def test_store_failure_is_server_error(handler, body, method):
    fake = FakeStore(fail_on=method)
    response = handler(fake, body)
    assert response.status == 500
    assert fake.calls[-1] == method