"""Fixtures for perp-indexer tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from perp_indexer.fixed_point import UNIT
from perp_indexer.models.events import AddMargin, ClosePosition, EventMeta, NewPosition
from perp_indexer.processor import EventProcessor
from perp_indexer.store.memory import InMemoryStore

USER = "0x1111111111111111111111111111111111111111"
CURRENCY = "0x2222222222222222222222222222222222222222"
DAY_START = 1_700_006_400  # 2023-11-15 00:00:00 UTC


class EventFactory:
    """Builds events with strictly increasing block numbers."""

    def __init__(self) -> None:
        self.block = 100
        self.timestamp = DAY_START + 3600

    def _meta(self, timestamp: int | None) -> EventMeta:
        self.block += 1
        if timestamp is not None:
            self.timestamp = timestamp
        return EventMeta(
            block_number=self.block,
            timestamp=self.timestamp,
            tx_hash=f"0x{self.block:064x}",
            log_index=0,
        )

    def new_position(
        self,
        position_id: int = 5,
        product_id: int = 1,
        price: int = 2000 * UNIT,
        margin: int = 100 * UNIT,
        size: int = 1000 * UNIT,
        fee: int = 2 * UNIT,
        is_long: bool = True,
        timestamp: int | None = None,
    ) -> NewPosition:
        return NewPosition(
            position_id=position_id,
            product_id=product_id,
            price=price,
            margin=margin,
            size=size,
            fee=fee,
            is_long=is_long,
            user=USER,
            currency=CURRENCY,
            meta=self._meta(timestamp),
        )

    def add_margin(
        self,
        position_id: int = 5,
        new_margin: int = 200 * UNIT,
        new_leverage: int = 5 * UNIT,
        margin: int = 100 * UNIT,
        timestamp: int | None = None,
    ) -> AddMargin:
        return AddMargin(
            position_id=position_id,
            new_margin=new_margin,
            new_leverage=new_leverage,
            margin=margin,
            user=USER,
            meta=self._meta(timestamp),
        )

    def close_position(
        self,
        position_id: int = 5,
        product_id: int = 1,
        price: int = 2100 * UNIT,
        size: int = 1000 * UNIT,
        margin: int = 100 * UNIT,
        fee: int = 2 * UNIT,
        pnl: int = 50 * UNIT,
        was_liquidated: bool = False,
        timestamp: int | None = None,
    ) -> ClosePosition:
        return ClosePosition(
            position_id=position_id,
            product_id=product_id,
            price=price,
            size=size,
            margin=margin,
            fee=fee,
            pnl=pnl,
            was_liquidated=was_liquidated,
            user=USER,
            meta=self._meta(timestamp),
        )


@pytest.fixture
def events() -> EventFactory:
    return EventFactory()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def processor(store: InMemoryStore) -> EventProcessor:
    return EventProcessor(store)


# --- Mock SQL session ---


@pytest.fixture
def mock_session():
    """Create a mock AsyncSession with context manager support."""
    session = AsyncMock(spec=AsyncSession)
    session.commit = AsyncMock()
    session.get = AsyncMock(return_value=None)
    session.merge = AsyncMock()
    session.delete = AsyncMock()
    return session


@pytest.fixture
def session_factory(mock_session):
    """Mock async_sessionmaker whose __call__ returns an async context manager."""
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=mock_session)
    ctx.__aexit__ = AsyncMock(return_value=False)

    factory = MagicMock()
    factory.return_value = ctx
    return factory
