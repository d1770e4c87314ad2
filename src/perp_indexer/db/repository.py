"""SQL-backed entity store."""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

import structlog
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from perp_indexer.db.models import ORM_BY_KIND, Base
from perp_indexer.models.entities import Entity
from perp_indexer.store.base import Found, LoadResult, NotFound

if TYPE_CHECKING:
    from perp_indexer.store.base import StagedChanges

logger = structlog.get_logger()

E = TypeVar("E", bound=Entity)


def _entity_to_orm(entity: Entity) -> Base:
    orm_cls = ORM_BY_KIND[entity.kind]
    return orm_cls(**entity.model_dump())


def _orm_to_entity(entity_type: type[E], orm: Base) -> E:
    return entity_type.model_validate(orm, from_attributes=True)


class SqlEntityStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def load(self, entity_type: type[E], key: str) -> LoadResult[E]:
        """Load one entity by primary key."""
        async with self.session_factory() as session:
            orm = await session.get(ORM_BY_KIND[entity_type.kind], key)
            if orm is None:
                return NotFound(entity_type.kind, key)
            return Found(_orm_to_entity(entity_type, orm))

    @retry(
        retry=retry_if_exception_type(OperationalError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def commit(self, changes: StagedChanges) -> None:
        """Apply every staged upsert and delete in a single transaction.

        A failed transaction rolls back as a whole, so retrying it on a
        dropped connection cannot double-apply.
        """
        async with self.session_factory() as session:
            for entity in changes.upserts.values():
                await session.merge(_entity_to_orm(entity))
            for kind, key in changes.deletes:
                orm = await session.get(ORM_BY_KIND[kind], key)
                if orm is not None:
                    await session.delete(orm)
            await session.commit()
            logger.debug(
                "store_committed",
                upserts=len(changes.upserts),
                deletes=len(changes.deletes),
            )
