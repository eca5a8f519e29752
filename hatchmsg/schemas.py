"""Request payloads accepted by the HTTP API and JSON response encoding."""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Any

from .domain import ZERO_TIME

JSON_CONTENT_TYPE = "application/json"

_RFC3339 = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2})T([0-9]{2}):([0-9]{2}):([0-9]{2})"
    r"(?:\.([0-9]+))?(Z|[+-][0-9]{2}:[0-9]{2})\Z"
)

_HTML_ESCAPES = (
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)


class RequestError(ValueError):
    """Raised when a request body cannot be decoded into a request."""


@dataclass
class Response:
    """An HTTP response produced by a handler."""

    status: int = int(HTTPStatus.OK)
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)


class _Object(list):
    """The key/value pairs of a JSON object, in document order."""


def _kind(value: Any) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, _Object):
        return "object"
    return "array"


def _reject_constant(name: str) -> Any:
    raise RequestError(f"invalid character in numeric literal {name!r}")


def _load(body: bytes | str) -> Any:
    text = bytes(body).decode("utf-8", errors="replace") if not isinstance(body, str) else body
    try:
        return json.loads(text, object_pairs_hook=_Object, parse_constant=_reject_constant)
    except RequestError:
        raise
    except (ValueError, RecursionError) as exc:
        raise RequestError(f"invalid JSON: {exc}") from exc


def _parse_time(text: str, name: str) -> datetime:
    match = _RFC3339.match(text)
    if match is None:
        raise RequestError(f"field {name}: cannot parse {text!r} as RFC 3339 time")
    year, month, day, hour, minute, second, fraction, zone = match.groups()
    microsecond = int((fraction or "")[:6].ljust(6, "0"))
    if zone == "Z":
        tz = timezone.utc
    else:
        hours, minutes = int(zone[1:3]), int(zone[4:6])
        if hours >= 24 or minutes >= 60:
            raise RequestError(f"field {name}: time zone offset out of range in {text!r}")
        offset = timedelta(hours=hours, minutes=minutes)
        tz = timezone(-offset if zone[0] == "-" else offset)
    try:
        return datetime(
            int(year), int(month), int(day),
            int(hour), int(minute), int(second), microsecond, tzinfo=tz,
        )
    except ValueError as exc:
        raise RequestError(f"field {name}: {exc}") from exc


def _string_field(raw: Any, current: Any, name: str) -> Any:
    if raw is None:
        return current
    if isinstance(raw, str):
        return raw
    raise RequestError(f"cannot unmarshal {_kind(raw)} into field {name} of type string")


def _time_field(raw: Any, current: Any, name: str) -> Any:
    if raw is None:
        return current
    if isinstance(raw, str):
        return _parse_time(raw, name)
    raise RequestError(f"cannot unmarshal {_kind(raw)} into field {name} of type time")


def _optional_time_field(raw: Any, current: Any, name: str) -> Any:
    if raw is None:
        return None
    return _time_field(raw, current, name)


def _strings_field(raw: Any, current: Any, name: str) -> Any:
    if raw is None:
        return None
    if not isinstance(raw, list) or isinstance(raw, _Object):
        raise RequestError(f"cannot unmarshal {_kind(raw)} into field {name} of type []string")
    return [_string_field(item, "", name) for item in raw]


_Converter = Callable[[Any, Any, str], Any]
_FieldSpec = tuple[tuple[str, str, _Converter], ...]

_SMS_MESSAGE_FIELDS: _FieldSpec = (
    ("from", "from_", _string_field),
    ("to", "to", _string_field),
    ("type", "type", _string_field),
    ("body", "body", _string_field),
    ("attachments", "attachments", _strings_field),
    ("timestamp", "timestamp", _time_field),
    ("scheduled_time", "scheduled_time", _optional_time_field),
)

_EMAIL_MESSAGE_FIELDS: _FieldSpec = (
    ("from", "from_", _string_field),
    ("to", "to", _string_field),
    ("body", "body", _string_field),
    ("attachments", "attachments", _strings_field),
    ("timestamp", "timestamp", _time_field),
)

_SMS_WEBHOOK_FIELDS: _FieldSpec = (
    ("messaging_provider_id", "messaging_provider_id", _string_field),
    ("from", "from_", _string_field),
    ("to", "to", _string_field),
    ("type", "type", _string_field),
    ("body", "body", _string_field),
    ("attachments", "attachments", _strings_field),
    ("timestamp", "timestamp", _time_field),
)

_EMAIL_WEBHOOK_FIELDS: _FieldSpec = (
    ("messaging_provider_id", "messaging_provider_id", _string_field),
    ("from", "from_", _string_field),
    ("to", "to", _string_field),
    ("body", "body", _string_field),
    ("attachments", "attachments", _strings_field),
    ("timestamp", "timestamp", _time_field),
)


def _decode(target: Any, body: bytes | str, fields: _FieldSpec) -> Any:
    data = _load(body)
    if data is None:
        return target
    if not isinstance(data, _Object):
        raise RequestError(f"cannot unmarshal {_kind(data)} into {type(target).__name__}")
    exact = {name: (attr, convert) for name, attr, convert in fields}
    folded = {name.lower(): (attr, convert) for name, attr, convert in fields}
    for key, raw in data:
        entry = exact.get(key) or folded.get(key.lower())
        if entry is None:
            continue
        attr, convert = entry
        setattr(target, attr, convert(raw, getattr(target, attr), key))
    return target


@dataclass
class SMSMessageRequest:
    """An outgoing SMS or MMS message submitted through the API."""

    from_: str = ""
    to: str = ""
    type: str = ""
    body: str = ""
    attachments: list[str] | None = None
    timestamp: datetime = ZERO_TIME
    scheduled_time: datetime | None = None

    @classmethod
    def from_json(cls, body: bytes | str) -> SMSMessageRequest:
        return _decode(cls(), body, _SMS_MESSAGE_FIELDS)


@dataclass
class EmailMessageRequest:
    """An outgoing e-mail submitted through the API."""

    from_: str = ""
    to: str = ""
    body: str = ""
    attachments: list[str] | None = None
    timestamp: datetime = ZERO_TIME

    @classmethod
    def from_json(cls, body: bytes | str) -> EmailMessageRequest:
        return _decode(cls(), body, _EMAIL_MESSAGE_FIELDS)


@dataclass
class SMSWebhookRequest:
    """An incoming SMS or MMS message delivered by a provider."""

    messaging_provider_id: str = ""
    from_: str = ""
    to: str = ""
    type: str = ""
    body: str = ""
    attachments: list[str] | None = None
    timestamp: datetime = ZERO_TIME

    @classmethod
    def from_json(cls, body: bytes | str) -> SMSWebhookRequest:
        return _decode(cls(), body, _SMS_WEBHOOK_FIELDS)


@dataclass
class EmailWebhookRequest:
    """An incoming e-mail delivered by a provider."""

    messaging_provider_id: str = ""
    from_: str = ""
    to: str = ""
    body: str = ""
    attachments: list[str] | None = None
    timestamp: datetime = ZERO_TIME

    @classmethod
    def from_json(cls, body: bytes | str) -> EmailWebhookRequest:
        return _decode(cls(), body, _EMAIL_WEBHOOK_FIELDS)


def _encode_default(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    raise TypeError(f"json: unsupported type: {type(value).__name__}")


def json_response(payload: Any) -> Response:
    """Encode ``payload`` as a JSON response body terminated by a newline."""
    text = json.dumps(
        payload,
        ensure_ascii=False,
        allow_nan=False,
        separators=(",", ":"),
        default=_encode_default,
    )
    for raw, escaped in _HTML_ESCAPES:
        text = text.replace(raw, escaped)
    return Response(
        status=int(HTTPStatus.OK),
        body=(text + "\n").encode("utf-8"),
        headers={"Content-Type": JSON_CONTENT_TYPE},
    )