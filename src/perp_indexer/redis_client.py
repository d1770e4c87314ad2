"""Redis Streams consumer for the trading event stream."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
import structlog

from perp_indexer.errors import StreamHaltedError
from perp_indexer.models.messages import StreamMessage

logger = structlog.get_logger()


class RedisClient:
    def __init__(
        self,
        redis_url: str = "redis://redis:6379",
        consumer_group: str = "perp_indexer",
        consumer_name: str = "perp-indexer-1",
        socket_timeout: float | None = None,
        socket_connect_timeout: float | None = None,
        retry_on_timeout: bool = True,
    ) -> None:
        self.redis_url = redis_url
        self.consumer_group = consumer_group
        self.consumer_name = consumer_name
        self.socket_timeout = socket_timeout
        self.socket_connect_timeout = socket_connect_timeout
        self.retry_on_timeout = retry_on_timeout
        self.client: aioredis.Redis | None = None
        self.running = False

    async def connect(self) -> None:
        """Connect to Redis."""
        self.client = aioredis.from_url(
            self.redis_url,
            decode_responses=False,
            max_connections=10,
            socket_timeout=self.socket_timeout,
            socket_connect_timeout=self.socket_connect_timeout,
            retry_on_timeout=self.retry_on_timeout,
        )
        await self.client.ping()
        logger.info("redis_connected", url=self.redis_url, group=self.consumer_group)

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.client:
            await self.client.aclose()
            logger.info("redis_disconnected")

    async def publish(self, stream: str, message: StreamMessage) -> str:
        """XADD message to stream. Returns message ID."""
        assert self.client is not None
        msg_id = await self.client.xadd(stream, message.to_redis())
        logger.debug("redis_published", stream=stream, msg_id=msg_id, type=message.type)
        return msg_id.decode() if isinstance(msg_id, bytes) else msg_id

    async def consume(
        self,
        stream: str,
        callback: Callable[[StreamMessage], Awaitable[object]],
        count: int = 10,
        block_ms: int = 5000,
    ) -> None:
        """XREADGROUP loop, one message at a time, in stream order.

        Starts with this consumer's pending entries (id "0"): messages that an
        earlier run read but never acked, because it stopped or crashed before
        committing them. Only once those are drained does it read new
        messages (id ">"). A message is acked only after callback returns; a
        callback error ends the loop and leaves the message pending.
        """
        assert self.client is not None
        await self.create_consumer_group(stream)
        self.running = True
        read_id = "0"

        while self.running:
            try:
                results = await self.client.xreadgroup(
                    groupname=self.consumer_group,
                    consumername=self.consumer_name,
                    streams={stream: read_id},
                    count=count,
                    block=block_ms,
                )
            except asyncio.CancelledError:
                break
            except aioredis.RedisError:
                logger.exception("redis_consume_error", stream=stream)
                await asyncio.sleep(1)
                continue

            messages = [entry for _stream_name, entries in results or [] for entry in entries]
            if not messages:
                if read_id == "0":
                    logger.info("redis_pending_drained", stream=stream, consumer=self.consumer_name)
                    read_id = ">"
                continue

            for msg_id, data in messages:
                if not data:
                    # pending entry whose payload was trimmed from the stream
                    self.running = False
                    raise StreamHaltedError(f"pending message {msg_id!r} no longer in {stream}")
                try:
                    await callback(StreamMessage.from_redis(data))
                except Exception:
                    logger.exception(
                        "redis_message_processing_error",
                        stream=stream,
                        msg_id=msg_id,
                        pending=read_id == "0",
                    )
                    self.running = False
                    raise
                await self.ack(stream, msg_id)

    async def create_consumer_group(self, stream: str) -> None:
        """Create consumer group, ignore if already exists."""
        assert self.client is not None
        try:
            await self.client.xgroup_create(
                stream, self.consumer_group, id="0", mkstream=True
            )
            logger.debug("redis_group_created", stream=stream, group=self.consumer_group)
        except aioredis.ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise

    async def ack(self, stream: str, message_id: str | bytes) -> None:
        """Acknowledge a message."""
        assert self.client is not None
        await self.client.xack(stream, self.consumer_group, message_id)
