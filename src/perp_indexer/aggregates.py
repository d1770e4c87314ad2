"""Load-or-initialize accessors for the three rollup scopes."""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from perp_indexer.fixed_point import SECONDS_PER_DAY
from perp_indexer.models.entities import GLOBAL_STATS_ID, DayStats, Entity, GlobalStats, Product
from perp_indexer.store.base import Found, StagedChanges

E = TypeVar("E", bound=Entity)


async def get_or_init(
    staged: StagedChanges,
    entity_type: type[E],
    key: str,
    factory: Callable[[str], E],
) -> tuple[E, bool]:
    """Return (entity, created). A missing record is initialized, never an error."""
    result = await staged.load(entity_type, key)
    if isinstance(result, Found):
        return result.entity, False
    entity = factory(key)
    staged.track(entity)
    return entity, True


async def get_or_create_global_stats(staged: StagedChanges) -> GlobalStats:
    stats, _ = await get_or_init(staged, GlobalStats, GLOBAL_STATS_ID, lambda key: GlobalStats(id=key))
    return stats


async def get_or_create_day_stats(staged: StagedChanges, timestamp: int) -> DayStats:
    """DayStats for the UTC day containing timestamp.

    A new day is staged right away; the other accessors leave saving to the
    caller.
    """
    day_index = timestamp // SECONDS_PER_DAY
    stats, created = await get_or_init(
        staged,
        DayStats,
        str(day_index),
        lambda key: DayStats(id=key, date=day_index * SECONDS_PER_DAY),
    )
    if created:
        staged.save(stats)
    return stats


async def get_or_create_product(staged: StagedChanges, product_id: int) -> Product:
    product, _ = await get_or_init(staged, Product, str(product_id), lambda key: Product(id=key))
    return product
