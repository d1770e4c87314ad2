"""Entry point: consume trading events and maintain the analytics tables."""

import asyncio
import signal
import sys

import structlog

from perp_indexer.config import Settings
from perp_indexer.db.engine import create_db_engine, create_schema, create_session_factory
from perp_indexer.db.repository import SqlEntityStore
from perp_indexer.processor import EventProcessor
from perp_indexer.redis_client import RedisClient
from perp_indexer.server import IndexerServer

logger = structlog.get_logger()


async def main() -> None:
    settings = Settings()

    redis = RedisClient(
        redis_url=settings.REDIS_URL,
        consumer_group=settings.CONSUMER_GROUP,
        consumer_name=settings.CONSUMER_NAME,
        socket_timeout=30.0,
        socket_connect_timeout=10.0,
        retry_on_timeout=True,
    )
    await redis.connect()

    engine = create_db_engine(
        settings.DATABASE_URL,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_timeout=settings.DB_POOL_TIMEOUT,
    )
    if settings.CREATE_SCHEMA:
        await create_schema(engine)

    store = SqlEntityStore(create_session_factory(engine))
    processor = EventProcessor(store, state_id=settings.EVENT_STREAM)
    server = IndexerServer(settings=settings, redis=redis, processor=processor)

    loop = asyncio.get_running_loop()

    def _signal_handler() -> None:
        logger.info("shutdown_signal_received")
        redis.running = False

    if sys.platform != "win32":
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, _signal_handler)
    else:
        signal.signal(signal.SIGINT, lambda *_: _signal_handler())

    try:
        await server.start()
    except asyncio.CancelledError:
        pass
    finally:
        await server.stop()
        await redis.disconnect()
        await engine.dispose()
        logger.info("shutdown_complete")


if __name__ == "__main__":
    asyncio.run(main())
