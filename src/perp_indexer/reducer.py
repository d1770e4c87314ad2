"""Position lifecycle reducer: NewPosition, AddMargin, ClosePosition.

Each handler loads what it needs through a StagedChanges unit of work,
mutates working copies and stages every entity it touched. Nothing reaches
the store until the processor commits the staged set, so an event is
applied either in full or not at all.

Outcomes:
- Applied: the staged changes should be committed.
- Skip: the event refers to a position that does not exist. Nothing is
  staged; the stream continues.
- FatalInconsistency: applying the event would corrupt rollups. The stream
  must stop.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

import structlog

from perp_indexer.aggregates import (
    get_or_create_day_stats,
    get_or_create_global_stats,
    get_or_create_product,
)
from perp_indexer.errors import InvariantViolation, MissingProductError
from perp_indexer.fixed_point import compute_leverage, compute_liquidation_price
from perp_indexer.models.entities import DayStats, GlobalStats, Position, Product
from perp_indexer.models.events import AddMargin, ClosePosition, NewPosition, TradingEvent
from perp_indexer.store.base import Found, StagedChanges
from perp_indexer.trades import record_trade

logger = structlog.get_logger()


@dataclass(frozen=True)
class Applied:
    event_type: str
    position_id: str
    trade_id: str | None = None
    full_close: bool = False


@dataclass(frozen=True)
class Skip:
    event_type: str
    position_id: str
    reason: str = "position_not_found"


@dataclass(frozen=True)
class FatalInconsistency:
    event_type: str
    position_id: str
    reason: str
    error: Exception | None = field(default=None, compare=False)


Outcome = Union[Applied, Skip, FatalInconsistency]

Rollup = Union[GlobalStats, DayStats, Product]


def _add_totals(
    scopes: tuple[Rollup, ...],
    fee: int = 0,
    volume: int = 0,
    margin: int = 0,
    pnl: int = 0,
) -> None:
    for scope in scopes:
        scope.cumulative_fees += fee
        scope.cumulative_volume += volume
        scope.cumulative_margin += margin
        scope.cumulative_pnl += pnl


async def _load_product(staged: StagedChanges, product_id: int, position_id: str) -> Product:
    """Product that an existing position refers to. Its absence is fatal."""
    result = await staged.load(Product, str(product_id))
    if not isinstance(result, Found):
        raise MissingProductError(str(product_id), position_id)
    return result.entity


async def handle_new_position(staged: StagedChanges, event: NewPosition) -> Outcome:
    position_id = str(event.position_id)
    leverage = compute_leverage(event.size, event.margin)

    position = Position(
        id=position_id,
        product_id=event.product_id,
        price=event.price,
        margin=event.margin,
        size=event.size,
        leverage=leverage,
        user=event.user,
        currency=event.currency,
        fee=event.fee,
        is_long=event.is_long,
        liquidation_price=compute_liquidation_price(event.price, leverage, event.is_long),
        created_at_timestamp=event.meta.timestamp,
        created_at_block_number=event.meta.block_number,
    )

    product = await get_or_create_product(staged, event.product_id)
    global_stats = await get_or_create_global_stats(staged)
    day_stats = await get_or_create_day_stats(staged, event.meta.timestamp)

    scopes = (global_stats, day_stats, product)
    _add_totals(scopes, fee=event.fee, volume=event.size, margin=event.margin)
    for scope in scopes:
        scope.position_count += 1

    staged.save(position)
    staged.save(global_stats)
    staged.save(day_stats)
    staged.save(product)

    logger.info(
        "position_opened",
        position_id=position_id,
        product_id=event.product_id,
        user=event.user,
        is_long=event.is_long,
        leverage=leverage,
        block_number=event.meta.block_number,
    )
    return Applied(event.type, position_id)


async def handle_add_margin(staged: StagedChanges, event: AddMargin) -> Outcome:
    position_id = str(event.position_id)
    result = await staged.load(Position, position_id)
    if not isinstance(result, Found):
        return Skip(event.type, position_id)
    position = result.entity

    position.margin = event.new_margin
    position.leverage = event.new_leverage
    position.liquidation_price = compute_liquidation_price(
        position.price, position.leverage, position.is_long
    )
    position.updated_at_timestamp = event.meta.timestamp
    position.updated_at_block_number = event.meta.block_number

    global_stats = await get_or_create_global_stats(staged)
    day_stats = await get_or_create_day_stats(staged, event.meta.timestamp)
    product = await _load_product(staged, position.product_id, position_id)

    _add_totals((global_stats, day_stats, product), margin=event.margin)

    staged.save(position)
    staged.save(global_stats)
    staged.save(day_stats)
    staged.save(product)

    logger.info(
        "margin_added",
        position_id=position_id,
        margin=event.margin,
        new_margin=event.new_margin,
        new_leverage=event.new_leverage,
    )
    return Applied(event.type, position_id)


async def handle_close_position(staged: StagedChanges, event: ClosePosition) -> Outcome:
    position_id = str(event.position_id)
    result = await staged.load(Position, position_id)
    if not isinstance(result, Found):
        return Skip(event.type, position_id)
    position = result.entity

    global_stats = await get_or_create_global_stats(staged)
    day_stats = await get_or_create_day_stats(staged, event.meta.timestamp)
    product = await _load_product(staged, event.product_id, position_id)

    # exact match on the remaining margin, no tolerance
    is_full_close = event.margin == position.margin
    trade = record_trade(global_stats, position, event, is_full_close)

    if is_full_close:
        staged.remove(Position, position_id)
        global_stats.position_count -= 1
        product.position_count -= 1
    else:
        # liquidation price keeps its last computed value
        position.margin -= event.margin
        position.size -= event.size
        staged.save(position)

    _add_totals(
        (global_stats, day_stats, product),
        fee=event.fee,
        volume=event.size,
        margin=event.margin,
        pnl=event.pnl,
    )
    day_stats.trade_count += 1
    product.trade_count += 1

    staged.save(trade)
    staged.save(global_stats)
    staged.save(day_stats)
    staged.save(product)

    logger.info(
        "position_closed",
        position_id=position_id,
        trade_id=trade.id,
        full_close=is_full_close,
        was_liquidated=event.was_liquidated,
        pnl=event.pnl,
    )
    return Applied(event.type, position_id, trade_id=trade.id, full_close=is_full_close)


_HANDLERS = {
    "new_position": handle_new_position,
    "add_margin": handle_add_margin,
    "close_position": handle_close_position,
}


class PositionReducer:
    """Dispatch trading events to their handlers and classify the outcome."""

    async def apply(self, staged: StagedChanges, event: TradingEvent) -> Outcome:
        handler = _HANDLERS[event.type]
        try:
            return await handler(staged, event)
        except InvariantViolation as e:
            return FatalInconsistency(event.type, str(event.position_id), str(e), error=e)
