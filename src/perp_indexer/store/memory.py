"""Dict-backed entity store for replays and tests."""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

import structlog

from perp_indexer.models.entities import Entity
from perp_indexer.store.base import Found, LoadResult, NotFound

if TYPE_CHECKING:
    from perp_indexer.store.base import StagedChanges

logger = structlog.get_logger()

E = TypeVar("E", bound=Entity)


class InMemoryStore:
    def __init__(self) -> None:
        self.records: dict[str, dict[str, Entity]] = {}

    async def load(self, entity_type: type[E], key: str) -> LoadResult[E]:
        entity = self.records.get(entity_type.kind, {}).get(key)
        if entity is None:
            return NotFound(entity_type.kind, key)
        return Found(entity.model_copy(deep=True))

    async def commit(self, changes: StagedChanges) -> None:
        for (kind, key), entity in changes.upserts.items():
            self.records.setdefault(kind, {})[key] = entity.model_copy(deep=True)
        for kind, key in changes.deletes:
            self.records.get(kind, {}).pop(key, None)
        logger.debug(
            "store_committed",
            upserts=len(changes.upserts),
            deletes=len(changes.deletes),
        )

    def get(self, entity_type: type[E], key: str) -> E | None:
        """Stored snapshot by key, None if absent."""
        return self.records.get(entity_type.kind, {}).get(key)

    def all(self, entity_type: type[E]) -> list[E]:
        return list(self.records.get(entity_type.kind, {}).values())
