"""Handlers for the health check and for reading stored conversations."""

from __future__ import annotations

import logging
import re
from http import HTTPStatus
from typing import Any

from .db import DatabaseError
from .schemas import Response, json_response

logger = logging.getLogger(__name__)

_HEALTHY = '{"alive": true}'
_DECIMAL = re.compile(r"[+-]?[0-9]+\Z")
_INT_MIN = -(2**63)
_INT_MAX = 2**63 - 1


def _parse_id(text: str) -> int:
    """Parse a signed decimal integer the way the path expects it."""
    if not _DECIMAL.match(text):
        raise ValueError(f"invalid syntax: {text!r}")
    value = int(text)
    if not _INT_MIN <= value <= _INT_MAX:
        raise ValueError(f"value out of range: {text!r}")
    return value


def _send(payload: Any) -> Response:
    try:
        return json_response(payload)
    except (TypeError, ValueError) as exc:
        logger.error("error sending json response: %s", exc)
        return Response(status=int(HTTPStatus.INTERNAL_SERVER_ERROR))


def handle_healthz() -> Response:
    """Answer the liveness probe."""
    return _send(_HEALTHY)


def handle_list_conversations(store: Any) -> Response:
    """List every stored conversation."""
    try:
        conversations = store.list_conversations()
    except DatabaseError as exc:
        logger.error("error listing conversations: %s", exc)
        return Response(status=int(HTTPStatus.INTERNAL_SERVER_ERROR))
    return _send(conversations)


def handle_list_messages(store: Any, conversation_id: str) -> Response:
    """List the messages of the conversation named in the path."""
    try:
        parsed_id = _parse_id(conversation_id)
    except ValueError:
        logger.warning("bad conversation id: %s", conversation_id)
        return Response(status=int(HTTPStatus.BAD_REQUEST))

    try:
        messages = store.get_messages_by_conversation_id(parsed_id)
    except DatabaseError as exc:
        logger.error("error getting messages for conversation %d: %s", parsed_id, exc)
        return Response(status=int(HTTPStatus.INTERNAL_SERVER_ERROR))
    return _send(messages)