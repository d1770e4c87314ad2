"""Entity store protocol, load results and the per-event unit of work."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Protocol, TypeVar, Union

from perp_indexer.models.entities import Entity

E = TypeVar("E", bound=Entity)


@dataclass(frozen=True)
class Found(Generic[E]):
    entity: E


@dataclass(frozen=True)
class NotFound:
    kind: str
    key: str


LoadResult = Union[Found[E], NotFound]


class EntityStore(Protocol):
    async def load(self, entity_type: type[E], key: str) -> LoadResult[E]: ...

    async def commit(self, changes: StagedChanges) -> None: ...


@dataclass
class StagedChanges:
    """Reads through to a store and buffers writes until commit.

    Every load returns a working copy; saved entities and removals are only
    visible to the store once the whole set is committed.
    """

    store: EntityStore
    upserts: dict[tuple[str, str], Entity] = field(default_factory=dict)
    deletes: set[tuple[str, str]] = field(default_factory=set)
    _loaded: dict[tuple[str, str], Entity] = field(default_factory=dict)

    async def load(self, entity_type: type[E], key: str) -> LoadResult[E]:
        ref = (entity_type.kind, key)
        if ref in self.deletes:
            return NotFound(entity_type.kind, key)
        if ref in self.upserts:
            return Found(self.upserts[ref])
        if ref in self._loaded:
            return Found(self._loaded[ref])
        result = await self.store.load(entity_type, key)
        if isinstance(result, Found):
            self._loaded[ref] = result.entity
        return result

    def track(self, entity: Entity) -> None:
        """Make a newly built entity visible to later loads without saving it."""
        self._loaded[(entity.kind, entity.id)] = entity

    def save(self, entity: Entity) -> None:
        ref = (entity.kind, entity.id)
        self.deletes.discard(ref)
        self.upserts[ref] = entity

    def remove(self, entity_type: type[Entity], key: str) -> None:
        ref = (entity_type.kind, key)
        self.upserts.pop(ref, None)
        self._loaded.pop(ref, None)
        self.deletes.add(ref)

    @property
    def is_empty(self) -> bool:
        return not self.upserts and not self.deletes
