"""Stream event envelope and tolerant parsing.

Stream payloads are JSON envelopes with an event-type discriminator:

    {"eventId": "...", "eventType": "user.balances.snapshot",
     "eventVersion": 1, "occurredAt": "2026-02-15T10:30:00Z", "data": [...]}

Anything that does not parse, is not an object, or carries an unexpected
event type is ignored (parse returns None) rather than treated as an error.
"""

from __future__ import annotations

import json
from collections.abc import Collection
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

# ─── Event types ───

BALANCES_SNAPSHOT = "user.balances.snapshot"
BALANCES_ERROR = "user.balances.error"
ORDERS_SNAPSHOT = "user.orders.snapshot"
ORDERS_ERROR = "user.orders.error"


class StreamEvent(BaseModel):
    """One decoded stream event."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    event_id: str | None = None
    event_type: str
    event_version: int | None = None
    occurred_at: datetime | None = None
    data: Any = None

    @property
    def is_error(self) -> bool:
        return self.event_type.endswith(".error")

    @property
    def error_message(self) -> str | None:
        if isinstance(self.data, dict) and isinstance(self.data.get("message"), str):
            return self.data["message"]
        return None


def parse_stream_event(
    raw: str,
    accepted_types: Collection[str] | None = None,
) -> StreamEvent | None:
    """Parse a raw payload into a StreamEvent.

    Args:
        raw: Payload string delivered by the stream reader.
        accepted_types: Event types to accept; None accepts any type.

    Returns:
        The event, or None if the payload is not a recognized envelope.
    """
    try:
        parsed = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(parsed, dict):
        return None
    try:
        event = StreamEvent.model_validate(parsed)
    except ValidationError:
        return None
    if accepted_types is not None and event.event_type not in accepted_types:
        return None
    return event
