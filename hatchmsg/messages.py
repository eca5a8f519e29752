"""Handlers for messages submitted through the API for sending."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from .db import DatabaseError
from .domain import Contact, Message
from .schemas import (
    EmailMessageRequest,
    RequestError,
    Response,
    SMSMessageRequest,
    json_response,
)

logger = logging.getLogger(__name__)

RATE_LIMIT = 5
_ACKNOWLEDGEMENT = '{"success": true}'


def _contact(**channel: str) -> Contact:
    return Contact(first_name="TestFirstname", last_name="TestLastname", **channel)


def _status(status: HTTPStatus) -> Response:
    return Response(status=int(status))


def _acknowledge(times: int = 1) -> Response:
    response = json_response(_ACKNOWLEDGEMENT)
    response.body *= times
    return response


def handle_sms_message(store: Any, body: bytes | str) -> Response:
    """Store an outgoing SMS/MMS, enforcing the per-sender rate limit."""
    try:
        request = SMSMessageRequest.from_json(body)
    except RequestError as exc:
        logger.error("error unmarshalling body: %s", exc)
        return _status(HTTPStatus.BAD_REQUEST)

    try:
        sender_id = store.upsert_contact(_contact(phone_number=request.from_))
        if store.get_message_count_by_sender_id(sender_id) >= RATE_LIMIT:
            logger.error("max message count of 5 per 60 seconds reached")
            return _status(HTTPStatus.TOO_MANY_REQUESTS)
        receiver_id = store.upsert_contact(_contact(phone_number=request.to))
        conversation_id = store.upsert_conversation(sender_id, receiver_id)
        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            type=request.type,
            body=request.body,
            timestamp=request.timestamp,
            scheduled_time=request.scheduled_time,
        )
        store.save_message(message)
    except DatabaseError as exc:
        logger.error("error storing sms message: %s", exc)
        return _status(HTTPStatus.INTERNAL_SERVER_ERROR)

    # A scheduled message is acknowledged once on queueing and once more on completion.
    return _acknowledge(2 if message.scheduled_time is not None else 1)


def handle_email_message(store: Any, body: bytes | str) -> Response:
    """Store an outgoing e-mail."""
    try:
        request = EmailMessageRequest.from_json(body)
    except RequestError as exc:
        logger.error("error unmarshalling body: %s", exc)
        return _status(HTTPStatus.BAD_REQUEST)

    try:
        sender_id = store.upsert_contact(_contact(email=request.from_))
        receiver_id = store.upsert_contact(_contact(email=request.to))
        conversation_id = store.upsert_conversation(sender_id, receiver_id)
        store.save_message(
            Message(
                conversation_id=conversation_id,
                sender_id=sender_id,
                type="email",
                body=request.body,
                timestamp=request.timestamp,
            )
        )
    except DatabaseError as exc:
        logger.error("error storing email message: %s", exc)
        return _status(HTTPStatus.INTERNAL_SERVER_ERROR)

    return _acknowledge()