import asyncio
import logging
import uuid
from typing import Union

from hubsub.db.session import async_engine
from hubsub.queue.redis_conn import hub_queue
from hubsub.wiring import build_controller

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def ensure_uuid(value: Union[str, uuid.UUID]) -> uuid.UUID:
    """Convert string to UUID if needed."""
    if isinstance(value, str):
        return uuid.UUID(value)
    return value


def enqueue_seed(subscription_id: Union[str, uuid.UUID]) -> None:
    """Hand the seed fetch to an RQ worker so the challenge answer is not held up."""
    hub_queue.enqueue(fetch_seed_sync, str(subscription_id))
    logger.info(f"[Seed] Sub {subscription_id}: seed fetch enqueued")


async def fetch_seed(subscription_id: Union[str, uuid.UUID]) -> bool:
    controller = build_controller()
    return await controller.seed(ensure_uuid(subscription_id))


def fetch_seed_sync(subscription_id: Union[str, uuid.UUID]) -> bool:
    """Synchronous wrapper for RQ worker compatibility."""
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        return loop.run_until_complete(fetch_seed(subscription_id))
    finally:
        # pooled connections belong to this loop
        loop.run_until_complete(async_engine.dispose())
        loop.close()
