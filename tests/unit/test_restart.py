"""Restart behaviour: unacked messages are redelivered to a fresh process."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from perp_indexer.config import Settings
from perp_indexer.errors import StreamHaltedError
from perp_indexer.models.entities import IndexerState, Position
from perp_indexer.models.messages import TradingEventMessage
from perp_indexer.processor import EventProcessor
from perp_indexer.redis_client import RedisClient
from perp_indexer.server import IndexerServer
from perp_indexer.store.memory import InMemoryStore

STREAM = "trading:events"


class FakeStreamBackend:
    """One stream, one consumer group: new entries, per-consumer pending lists, acks."""

    def __init__(self) -> None:
        self.entries: list[tuple[bytes, dict]] = []
        self.delivered = 0
        self.pending: dict[str, list[bytes]] = {}
        self.reads: list[tuple[str, list[bytes]]] = []
        self.on_idle = lambda: None

    def add(self, event) -> bytes:
        msg_id = f"{len(self.entries) + 1}-0".encode()
        self.entries.append((msg_id, TradingEventMessage.from_event(event).to_redis()))
        return msg_id

    async def xgroup_create(self, stream, group, id="0", mkstream=False) -> None:
        return None

    async def xreadgroup(self, groupname, consumername, streams, count=10, block=None):
        ((stream, read_id),) = streams.items()
        data = dict(self.entries)
        pending = self.pending.setdefault(consumername, [])
        if read_id == "0":
            ids = pending[:count]
        else:
            batch = self.entries[self.delivered : self.delivered + count]
            self.delivered += len(batch)
            ids = [msg_id for msg_id, _ in batch]
            pending.extend(ids)
        self.reads.append((read_id, ids))
        if not ids and read_id == ">":
            self.on_idle()
        return [(stream.encode(), [(msg_id, data[msg_id]) for msg_id in ids])]

    async def xack(self, stream, group, msg_id) -> None:
        for ids in self.pending.values():
            if msg_id in ids:
                ids.remove(msg_id)


def _run(backend: FakeStreamBackend, store: InMemoryStore) -> IndexerServer:
    """A fresh process: new redis client, new processor, same stream and store."""
    redis = RedisClient(consumer_name="perp-indexer-1")
    redis.client = backend

    def _stop() -> None:
        redis.running = False

    backend.on_idle = _stop
    processor = EventProcessor(store, state_id=STREAM)
    return IndexerServer(settings=Settings(EVENT_STREAM=STREAM), redis=redis, processor=processor)


class TestRestart:
    @pytest.mark.asyncio
    async def test_halt_persists_and_pending_event_is_redelivered(self, events) -> None:
        backend = FakeStreamBackend()
        store = InMemoryStore()
        m1 = backend.add(events.new_position(position_id=1, margin=0))
        backend.add(events.new_position(position_id=2))

        with pytest.raises(StreamHaltedError):
            await _run(backend, store).start()
        assert m1 in backend.pending["perp-indexer-1"]

        backend.reads.clear()
        with pytest.raises(StreamHaltedError, match="refusing"):
            await _run(backend, store).start()

        assert backend.reads[0] == ("0", backend.pending["perp-indexer-1"][:10])
        assert backend.reads[0][1][0] == m1
        assert backend.pending["perp-indexer-1"][0] == m1
        assert store.get(IndexerState, STREAM).halted is True
        assert store.all(Position) == []

    @pytest.mark.asyncio
    async def test_commit_failure_replays_pending_in_order(self, events) -> None:
        backend = FakeStreamBackend()
        store = InMemoryStore()
        first = events.new_position(position_id=1)
        second = events.new_position(position_id=2)
        backend.add(first)
        backend.add(second)

        real_commit = store.commit
        store.commit = AsyncMock(side_effect=ConnectionError("db down"))
        with pytest.raises(ConnectionError):
            await _run(backend, store).start()
        assert backend.pending["perp-indexer-1"] == [b"1-0", b"2-0"]

        store.commit = real_commit
        await _run(backend, store).start()

        assert backend.reads[-3][0] == "0"
        assert store.get(Position, "1") is not None
        assert store.get(Position, "2") is not None
        assert backend.pending["perp-indexer-1"] == []
        assert store.get(IndexerState, STREAM).cursor == second.meta.cursor

    @pytest.mark.asyncio
    async def test_committed_but_unacked_event_is_not_reapplied(self, events) -> None:
        backend = FakeStreamBackend()
        store = InMemoryStore()
        event = events.new_position(position_id=1)
        backend.add(event)

        # crash between commit and ack
        backend.xack = AsyncMock(side_effect=ConnectionError("redis gone"))
        with pytest.raises(ConnectionError):
            await _run(backend, store).start()
        assert store.get(IndexerState, STREAM).cursor == event.meta.cursor

        del backend.xack
        await _run(backend, store).start()

        assert backend.pending["perp-indexer-1"] == []
        assert len(store.all(Position)) == 1
        assert store.get(IndexerState, STREAM).halted is False
