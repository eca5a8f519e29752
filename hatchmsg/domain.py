"""Core records shared by the store and the HTTP layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


def _format_rfc3339(value: datetime) -> str:
    """Format a datetime as RFC 3339 with trailing fractional zeros trimmed."""
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += f".{value.microsecond:06d}".rstrip("0")
    offset = value.utcoffset()
    if not offset:
        return text + "Z"
    total_minutes = int(offset.total_seconds()) // 60
    sign = "-" if total_minutes < 0 else "+"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{text}{sign}{hours:02d}:{minutes:02d}"


@dataclass
class Contact:
    """A person reachable by phone number or e-mail address."""

    id: int = 0
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone_number: str = ""


@dataclass
class Conversation:
    """A conversation between contacts."""

    id: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id}


@dataclass
class Message:
    """A single message within a conversation."""

    id: int = 0
    conversation_id: int = 0
    sender_id: int = 0
    type: str = ""
    body: str = ""
    attachments: list[str] | None = None
    timestamp: datetime = ZERO_TIME
    scheduled_time: datetime | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "sender_id": self.sender_id,
            "type": self.type,
            "body": self.body,
        }
        if self.attachments is not None:
            data["attachments"] = list(self.attachments)
        data["timestamp"] = _format_rfc3339(self.timestamp)
        data["scheduled_time"] = (
            None if self.scheduled_time is None else _format_rfc3339(self.scheduled_time)
        )
        return data