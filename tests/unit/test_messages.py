"""Unit tests for stream message parsing."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from perp_indexer.errors import UnknownEventTypeError
from perp_indexer.fixed_point import UNIT
from perp_indexer.models.events import AddMargin, ClosePosition, NewPosition
from perp_indexer.models.messages import StreamMessage, TradingEventMessage, parse_event


def _close_payload(**overrides) -> dict:
    payload = {
        "position_id": "12",
        "product_id": "3",
        "price": str(2100 * UNIT),
        "size": str(500 * UNIT),
        "margin": str(50 * UNIT),
        "fee": str(UNIT),
        "pnl": str(-5 * UNIT),
        "was_liquidated": True,
        "user": "0xabc",
        "meta": {"block_number": 10, "timestamp": 1_700_000_000, "tx_hash": "0xdead", "log_index": 2},
    }
    payload.update(overrides)
    return payload


class TestParseEvent:
    def test_close_position_from_string_amounts(self) -> None:
        event = parse_event(StreamMessage(type="close_position", payload=_close_payload()))

        assert isinstance(event, ClosePosition)
        assert event.position_id == 12
        assert event.price == 2100 * UNIT
        assert event.pnl == -5 * UNIT
        assert event.was_liquidated is True
        assert event.meta.cursor == (10, 2)

    def test_add_margin(self) -> None:
        payload = {
            "position_id": "12",
            "new_margin": str(150 * UNIT),
            "new_leverage": str(4 * UNIT),
            "margin": str(50 * UNIT),
            "meta": {"block_number": 11, "timestamp": 1_700_000_100, "tx_hash": "0xbeef", "log_index": 7},
        }
        event = parse_event(StreamMessage(type="add_margin", payload=payload))
        assert isinstance(event, AddMargin)
        assert event.new_leverage == 4 * UNIT
        assert event.meta.cursor == (11, 7)

    def test_unknown_type(self) -> None:
        with pytest.raises(UnknownEventTypeError, match="liquidate"):
            parse_event(StreamMessage(type="liquidate", payload={}))

    def test_missing_field_rejected(self) -> None:
        payload = _close_payload()
        del payload["pnl"]
        with pytest.raises(ValidationError):
            parse_event(StreamMessage(type="close_position", payload=payload))

    def test_meta_without_log_index_rejected(self) -> None:
        payload = _close_payload(meta={"block_number": 10, "timestamp": 1_700_000_000, "tx_hash": "0xdead"})
        with pytest.raises(ValidationError, match="log_index"):
            parse_event(StreamMessage(type="close_position", payload=payload))


class TestTradingEventMessage:
    def test_amounts_travel_as_strings(self) -> None:
        event = NewPosition(
            position_id=5,
            product_id=1,
            price=2000 * UNIT,
            margin=100 * UNIT,
            size=1000 * UNIT,
            fee=UNIT,
            is_long=False,
            user="0xabc",
            currency="0xdef",
            meta={"block_number": 1, "timestamp": 2, "tx_hash": "0x1", "log_index": 0},
        )
        message = TradingEventMessage.from_event(event)

        assert message.type == "new_position"
        assert message.payload["price"] == str(2000 * UNIT)
        assert message.payload["is_long"] is False

        raw = json.loads(message.to_redis()["data"])
        assert raw["source"] == "chain_listener"

    def test_redis_round_trip_preserves_event(self) -> None:
        message = StreamMessage(type="close_position", payload=_close_payload())
        restored = StreamMessage.from_redis({b"data": message.to_redis()["data"].encode()})

        assert parse_event(restored) == parse_event(message)
