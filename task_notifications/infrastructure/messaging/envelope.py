"""Wire codec for domain event envelopes."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, Mapping

from task_notifications.domain.events import EventEnvelope, EventType
from task_notifications.utils import now_in_app_timezone, parse_iso_datetime

HEADER_EVENT_TYPE = "eventType"
HEADER_TIMESTAMP = "timestamp"
HEADER_SOURCE = "source"

_KEY_FIELDS = ("taskId", "userId", "id")


class EventDecodeError(ValueError):
    """Raised when a broker message cannot be turned into an envelope."""


@dataclass(frozen=True)
class OutboundMessage:
    """A message ready to be handed to the broker client."""

    topic: str
    key: bytes | None
    value: bytes
    headers: list[tuple[str, bytes]]


def encode_event(
    topic: str,
    event_type: EventType | str,
    payload: Mapping[str, Any],
    *,
    source: str,
    occurred_at: datetime | None = None,
) -> OutboundMessage:
    """Serialize ``payload`` into the message format consumed downstream."""

    type_value = event_type.value if isinstance(event_type, EventType) else str(event_type)
    body = dict(payload)
    body.setdefault("type", type_value)
    timestamp = (occurred_at or now_in_app_timezone()).isoformat()

    key = next(
        (str(body[field]) for field in _KEY_FIELDS if body.get(field) not in (None, "")),
        None,
    )
    try:
        value = json.dumps(body, default=_json_default).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Event payload for {type_value} is not serializable: {exc}") from exc

    return OutboundMessage(
        topic=topic,
        key=key.encode("utf-8") if key is not None else None,
        value=value,
        headers=[
            (HEADER_EVENT_TYPE, type_value.encode("utf-8")),
            (HEADER_TIMESTAMP, timestamp.encode("utf-8")),
            (HEADER_SOURCE, source.encode("utf-8")),
        ],
    )


def decode_event(
    topic: str,
    value: bytes | str | None,
    headers: Mapping[str, Any] | Iterable[tuple[str, Any]] | None = None,
    *,
    key: bytes | str | None = None,
) -> EventEnvelope:
    """Turn a raw broker message into an :class:`EventEnvelope`.

    Raises :class:`EventDecodeError` when the body is missing, is not valid JSON
    or is not a JSON object. Unrecognised event types decode to
    ``EventType.UNKNOWN`` rather than failing.
    """

    if value is None or value in (b"", ""):
        raise EventDecodeError("Message has no value")

    try:
        text = value.decode("utf-8") if isinstance(value, bytes) else value
        body = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise EventDecodeError(f"Message value is not valid JSON: {exc}") from exc

    if not isinstance(body, dict):
        raise EventDecodeError("Message value must be a JSON object")

    header_map = normalize_headers(headers)
    raw_type = header_map.get(HEADER_EVENT_TYPE) or body.get("type")
    occurred_at = parse_iso_datetime(header_map.get(HEADER_TIMESTAMP)) or now_in_app_timezone()

    return EventEnvelope(
        event_type=EventType.parse(raw_type),
        payload=body,
        occurred_at=occurred_at,
        topic=topic,
        key=_to_text(key),
        source=header_map.get(HEADER_SOURCE),
        headers=header_map,
    )


def normalize_headers(
    headers: Mapping[str, Any] | Iterable[tuple[str, Any]] | None,
) -> dict[str, str]:
    """Return headers as a ``str -> str`` mapping.

    Broker clients hand headers over either as a mapping or as a sequence of
    ``(name, bytes)`` pairs.
    """

    if not headers:
        return {}
    items = headers.items() if isinstance(headers, Mapping) else headers
    normalized: dict[str, str] = {}
    for name, raw in items:
        text = _to_text(raw)
        if text is not None:
            normalized[str(name)] = text
    return normalized


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            return None
    return str(value)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


__all__ = [
    "EventDecodeError",
    "OutboundMessage",
    "decode_event",
    "encode_event",
    "normalize_headers",
]
