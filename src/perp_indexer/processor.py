"""Sequential event processor: one event, one atomic commit."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

import structlog

from perp_indexer.errors import OutOfOrderEventError, StreamHaltedError
from perp_indexer.models.entities import IndexerState
from perp_indexer.reducer import Applied, FatalInconsistency, Outcome, PositionReducer, Skip
from perp_indexer.store.base import Found, StagedChanges

if TYPE_CHECKING:
    from perp_indexer.models.events import TradingEvent
    from perp_indexer.store.base import EntityStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class AlreadyApplied:
    """Redelivery of the last committed event (committed, then not acked)."""

    event_type: str
    position_id: str


ProcessResult = Union[Outcome, AlreadyApplied]


class EventProcessor:
    """Single writer for one event stream.

    Events must arrive in strictly increasing (block_number, log_index)
    order. The last applied cursor and the halted flag are an IndexerState
    record, committed in the same unit of work as the event's changes, so a
    restarted processor picks up exactly where the previous one stopped.
    A fatal outcome halts the processor for good; later events are refused
    rather than skipped.
    """

    def __init__(
        self,
        store: EntityStore,
        reducer: PositionReducer | None = None,
        state_id: str = "default",
    ) -> None:
        self.store = store
        self.reducer = reducer or PositionReducer()
        self.state = IndexerState(id=state_id)
        self.applied = 0
        self.skipped = 0
        self._restored = False
        self._lock = asyncio.Lock()

    @property
    def last_cursor(self) -> tuple[int, int] | None:
        return self.state.cursor

    @property
    def halted(self) -> bool:
        return self.state.halted

    async def restore(self) -> IndexerState:
        """Load the persisted checkpoint; a missing record means a fresh stream."""
        result = await self.store.load(IndexerState, self.state.id)
        if isinstance(result, Found):
            self.state = result.entity
        self._restored = True
        logger.info(
            "indexer_state_restored",
            state_id=self.state.id,
            cursor=self.state.cursor,
            halted=self.state.halted,
        )
        return self.state

    async def resume(self) -> None:
        """Clear a persisted halt once the offending data has been dealt with."""
        async with self._lock:
            if not self._restored:
                await self.restore()
            state = self.state.model_copy(update={"halted": False, "halt_reason": ""})
            await self._commit_state(state)
            self.state = state
            logger.warning("stream_resumed", state_id=self.state.id, cursor=self.state.cursor)

    async def process(self, event: TradingEvent) -> ProcessResult:
        async with self._lock:
            if not self._restored:
                await self.restore()
            if self.halted:
                raise StreamHaltedError(f"processor halted, refusing further events: {self.state.halt_reason}")

            cursor = event.meta.cursor
            last = self.last_cursor
            if last is not None and cursor == last:
                logger.info("event_already_applied", event_type=event.type, cursor=cursor)
                return AlreadyApplied(event.type, str(event.position_id))
            if last is not None and cursor < last:
                reason = f"event at {cursor} is not after last applied event {last}"
                await self._halt(event.type, reason, cursor=cursor)
                raise OutOfOrderEventError(reason)

            staged = StagedChanges(self.store)
            outcome = await self.reducer.apply(staged, event)

            if isinstance(outcome, FatalInconsistency):
                await self._halt(event.type, outcome.reason, position_id=outcome.position_id, cursor=cursor)
                raise StreamHaltedError(outcome.reason) from outcome.error

            # a skip commits only the cursor
            state = self.state.model_copy(
                update={"last_block_number": cursor[0], "last_log_index": cursor[1]}
            )
            staged.save(state)
            await self.store.commit(staged)
            self.state = state

            if isinstance(outcome, Skip):
                self.skipped += 1
                logger.warning(
                    "event_skipped",
                    event_type=outcome.event_type,
                    position_id=outcome.position_id,
                    reason=outcome.reason,
                    block_number=event.meta.block_number,
                    tx_hash=event.meta.tx_hash,
                    skipped_total=self.skipped,
                )
            elif isinstance(outcome, Applied):
                self.applied += 1
            return outcome

    async def process_many(self, events: Iterable[TradingEvent]) -> list[ProcessResult]:
        """Apply a batch in order; stops at the first halting error."""
        return [await self.process(event) for event in events]

    async def _halt(self, event_type: str, reason: str, **context: object) -> None:
        logger.error("stream_halted", event_type=event_type, reason=reason, **context)
        # halted in memory even if persisting the flag fails
        self.state = self.state.model_copy(update={"halted": True, "halt_reason": reason})
        await self._commit_state(self.state)

    async def _commit_state(self, state: IndexerState) -> None:
        staged = StagedChanges(self.store)
        staged.save(state)
        await self.store.commit(staged)
