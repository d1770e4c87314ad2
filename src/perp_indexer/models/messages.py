"""Redis Stream message schema for trading events."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from perp_indexer.errors import UnknownEventTypeError
from perp_indexer.models.events import EVENT_TYPES, TradingEvent


class StreamMessage(BaseModel):
    """Envelope for every message on the event stream."""

    msg_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: str = ""
    type: str = ""
    payload: dict = {}
    metadata: dict = {}

    def to_redis(self) -> dict[str, str]:
        """Serialize to flat dict for XADD."""
        return {"data": self.model_dump_json()}

    @classmethod
    def from_redis(cls, data: dict[bytes | str, bytes | str]) -> StreamMessage:
        """Deserialize from Redis XREADGROUP result."""
        raw = data.get(b"data") or data.get("data")
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return cls.model_validate_json(raw)


class TradingEventMessage(StreamMessage):
    """Published by the chain listener to trading:events."""

    source: str = "chain_listener"

    @classmethod
    def from_event(cls, event: TradingEvent) -> TradingEventMessage:
        # uint256 values do not survive JSON numbers, so amounts travel as strings
        payload = {
            key: str(value) if isinstance(value, int) and not isinstance(value, bool) else value
            for key, value in event.model_dump(exclude={"type", "meta"}).items()
        }
        payload["meta"] = event.meta.model_dump()
        return cls(type=event.type, payload=payload)


def parse_event(message: StreamMessage) -> TradingEvent:
    """Build the typed event carried by a stream message."""
    model = EVENT_TYPES.get(message.type)
    if model is None:
        raise UnknownEventTypeError(message.type)
    return model.model_validate({**message.payload, "type": message.type})
