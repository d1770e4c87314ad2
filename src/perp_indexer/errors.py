"""Indexer exception hierarchy."""

from __future__ import annotations


class IndexerError(Exception):
    """Base for every error raised by the indexer."""


class InvariantViolation(IndexerError):
    """State or event data the reducer cannot apply without corrupting rollups."""


class ZeroMarginError(InvariantViolation, ArithmeticError):
    """Division by a zero margin or leverage."""


class MissingProductError(InvariantViolation):
    def __init__(self, product_id: str, position_id: str) -> None:
        self.product_id = product_id
        self.position_id = position_id
        super().__init__(f"Product {product_id} not found for position {position_id}")


class StreamHaltedError(IndexerError):
    """Processing of the event stream stopped and must not resume automatically."""


class OutOfOrderEventError(StreamHaltedError):
    pass


class UnknownEventTypeError(IndexerError):
    def __init__(self, event_type: str) -> None:
        self.event_type = event_type
        super().__init__(f"Unknown event type: {event_type!r}")
