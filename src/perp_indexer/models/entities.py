"""GlobalStats, DayStats, Product, Position, Trade Pydantic models.

Amounts are integers scaled by 10**18.
"""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel

GLOBAL_STATS_ID = "1"


class Entity(BaseModel):
    kind: ClassVar[str] = ""

    id: str


class GlobalStats(Entity):
    kind: ClassVar[str] = "global_stats"

    id: str = GLOBAL_STATS_ID
    cumulative_fees: int = 0
    cumulative_pnl: int = 0
    cumulative_volume: int = 0
    cumulative_margin: int = 0
    position_count: int = 0
    trade_count: int = 0


class DayStats(Entity):
    kind: ClassVar[str] = "day_stats"

    date: int  # day start, epoch seconds (UTC)
    cumulative_fees: int = 0
    cumulative_pnl: int = 0
    cumulative_volume: int = 0
    cumulative_margin: int = 0
    position_count: int = 0
    trade_count: int = 0


class Product(Entity):
    kind: ClassVar[str] = "product"

    cumulative_fees: int = 0
    cumulative_pnl: int = 0
    cumulative_volume: int = 0
    cumulative_margin: int = 0
    position_count: int = 0
    trade_count: int = 0


class Position(Entity):
    kind: ClassVar[str] = "position"

    product_id: int
    price: int
    margin: int
    size: int
    leverage: int
    user: str
    currency: str
    fee: int
    is_long: bool
    liquidation_price: int
    created_at_timestamp: int
    created_at_block_number: int
    updated_at_timestamp: int | None = None
    updated_at_block_number: int | None = None


class Trade(Entity):
    kind: ClassVar[str] = "trade"

    tx_hash: str
    position_id: int
    product_id: int
    leverage: int
    size: int
    entry_price: int
    close_price: int
    margin: int
    user: str
    currency: str
    fee: int
    pnl: int
    was_liquidated: bool
    is_full_close: bool
    is_long: bool
    duration: int
    timestamp: int
    block_number: int


class IndexerState(Entity):
    """Stream checkpoint, committed together with each event's changes."""

    kind: ClassVar[str] = "indexer_state"

    last_block_number: int | None = None
    last_log_index: int | None = None
    halted: bool = False
    halt_reason: str = ""

    @property
    def cursor(self) -> tuple[int, int] | None:
        if self.last_block_number is None or self.last_log_index is None:
            return None
        return (self.last_block_number, self.last_log_index)


ENTITY_TYPES: dict[str, type[Entity]] = {
    cls.kind: cls for cls in (GlobalStats, DayStats, Product, Position, Trade, IndexerState)
}
