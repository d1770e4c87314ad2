"""Indexer server: feed the event stream into the processor."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from perp_indexer.models.messages import StreamMessage, parse_event

if TYPE_CHECKING:
    from perp_indexer.config import Settings
    from perp_indexer.processor import EventProcessor, ProcessResult
    from perp_indexer.redis_client import RedisClient

logger = structlog.get_logger()


class IndexerServer:
    def __init__(self, settings: Settings, redis: RedisClient, processor: EventProcessor) -> None:
        self.settings = settings
        self.redis = redis
        self.processor = processor
        self.running = False

    async def start(self) -> None:
        """Restore the checkpoint, then consume settings.EVENT_STREAM until stopped or halted."""
        self.running = True
        await self.processor.restore()
        logger.info("indexer_server_starting", stream=self.settings.EVENT_STREAM)
        await self.redis.consume(
            self.settings.EVENT_STREAM,
            self.handle_message,
            count=self.settings.READ_BATCH_SIZE,
            block_ms=self.settings.READ_BLOCK_MS,
        )

    async def stop(self) -> None:
        self.running = False
        self.redis.running = False
        logger.info(
            "indexer_server_stopped",
            applied=self.processor.applied,
            skipped=self.processor.skipped,
            halted=self.processor.halted,
        )

    async def handle_message(self, message: StreamMessage) -> ProcessResult:
        event = parse_event(message)
        return await self.processor.process(event)
