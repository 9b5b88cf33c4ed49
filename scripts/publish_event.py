"""Utility script to publish a single domain event to the broker."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from task_notifications.domain.events import EventType
from task_notifications.infrastructure.messaging import EventPublisher

PUBLISHABLE_TYPES = [member.value for member in EventType if member is not EventType.UNKNOWN]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments for event publication."""

    parser = argparse.ArgumentParser(
        description="Publish one domain event to the task-management broker.",
    )
    parser.add_argument("event_type", choices=PUBLISHABLE_TYPES, help="Event type to publish")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--payload", help="Event payload as a JSON object")
    source.add_argument("--payload-file", type=Path, help="File containing the JSON payload")
    return parser.parse_args(argv)


def load_payload(args: argparse.Namespace) -> dict[str, Any]:
    raw = args.payload if args.payload is not None else args.payload_file.read_text("utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SystemExit(f"Payload is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise SystemExit("Payload must be a JSON object")
    return payload


async def publish(event_type: EventType, payload: dict[str, Any]) -> bool:
    publisher = EventPublisher()
    if not await publisher.start():
        return False
    try:
        return await publisher.publish(event_type.topic, event_type, payload)
    finally:
        await publisher.stop()


def main(argv: list[str] | None = None) -> None:
    """Publish the event described by the command line arguments."""

    logging.basicConfig(level=logging.INFO)
    args = parse_args(argv)
    event_type = EventType.parse(args.event_type)
    payload = load_payload(args)

    if not asyncio.run(publish(event_type, payload)):
        raise SystemExit(f"Could not publish {event_type.value}")
    print(f"Published {event_type.value} to {event_type.topic.value}")


if __name__ == "__main__":
    main()
