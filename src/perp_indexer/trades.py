"""Trade records built at close time."""

from __future__ import annotations

from perp_indexer.models.entities import GlobalStats, Position, Trade
from perp_indexer.models.events import ClosePosition


def record_trade(
    global_stats: GlobalStats,
    position: Position,
    event: ClosePosition,
    is_full_close: bool,
) -> Trade:
    """Allocate the next trade id from global_stats and snapshot the close.

    Mutates global_stats.trade_count; the caller saves it with the trade.
    """
    global_stats.trade_count += 1
    return Trade(
        id=str(global_stats.trade_count),
        tx_hash=event.meta.tx_hash,
        position_id=event.position_id,
        product_id=event.product_id,
        leverage=position.leverage,
        size=event.size,
        entry_price=position.price,
        close_price=event.price,
        margin=event.margin,
        user=event.user,
        currency=position.currency,
        fee=event.fee,
        pnl=event.pnl,
        was_liquidated=event.was_liquidated,
        is_full_close=is_full_close,
        is_long=position.is_long,
        duration=event.meta.timestamp - position.created_at_timestamp,
        timestamp=event.meta.timestamp,
        block_number=event.meta.block_number,
    )
