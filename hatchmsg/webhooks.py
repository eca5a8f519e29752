"""Handlers for messages delivered by external messaging providers."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from .db import DatabaseError
from .domain import Contact, Message
from .schemas import (
    EmailWebhookRequest,
    RequestError,
    Response,
    SMSWebhookRequest,
    json_response,
)

logger = logging.getLogger(__name__)

_ACKNOWLEDGEMENT = '{"alive": true}'


def _contact(phone_number: str) -> Contact:
    return Contact(first_name="TestFirstname", last_name="TestLastname", phone_number=phone_number)


def _record(store: Any, sender: str, recipient: str, message: Message) -> Response:
    try:
        sender_id = store.upsert_contact(_contact(sender))
        receiver_id = store.upsert_contact(_contact(recipient))
        message.conversation_id = store.upsert_conversation(sender_id, receiver_id)
        message.sender_id = sender_id
        store.save_message(message)
    except DatabaseError as exc:
        logger.error("error storing incoming message: %s", exc)
        return Response(status=int(HTTPStatus.INTERNAL_SERVER_ERROR))
    return json_response(_ACKNOWLEDGEMENT)


def handle_sms_webhook(store: Any, body: bytes | str) -> Response:
    """Store an incoming SMS/MMS."""
    try:
        request = SMSWebhookRequest.from_json(body)
    except RequestError as exc:
        logger.error("error unmarshalling body: %s", exc)
        return Response(status=int(HTTPStatus.BAD_REQUEST))
    message = Message(type=request.type, body=request.body, timestamp=request.timestamp)
    return _record(store, request.from_, request.to, message)


def handle_email_webhook(store: Any, body: bytes | str) -> Response:
    """Store an incoming e-mail; its contacts are keyed like phone contacts."""
    try:
        request = EmailWebhookRequest.from_json(body)
    except RequestError as exc:
        logger.error("error unmarshalling body: %s", exc)
        return Response(status=int(HTTPStatus.BAD_REQUEST))
    message = Message(type="email", body=request.body, timestamp=request.timestamp)
    return _record(store, request.from_, request.to, message)