import asyncio
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from hubsub.config import LOG_PURGE_INTERVAL, LOG_RETENTION
from hubsub.core.clock import utcnow
from hubsub.db.session import AsyncSessionLocal, async_engine
from hubsub.models.subscription_log import SubscriptionLog
from hubsub.queue.redis_conn import hub_queue

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def purge_old_logs(db: Optional[AsyncSession] = None, now: Optional[datetime] = None) -> int:
    """
    Delete subscription logs older than LOG_RETENTION.

    Error logs feed the health check, so only rows past the retention
    window go. A passed-in session is left for the caller to commit.
    """
    cutoff = (now or utcnow()) - LOG_RETENTION
    stmt = delete(SubscriptionLog).where(SubscriptionLog.timestamp < cutoff)

    if db is not None:
        result = await db.execute(stmt)
        deleted = result.rowcount
    else:
        async with AsyncSessionLocal() as session:
            try:
                result = await session.execute(stmt)
                await session.commit()
            except Exception:
                await session.rollback()
                logger.exception("[Retention] Log purge failed.")
                raise
            deleted = result.rowcount

    logger.info(f"[Retention] Purged {deleted} subscription log(s) older than {cutoff.isoformat()}")
    return deleted


def purge_old_logs_sync(reschedule: bool = True) -> int:
    """
    Synchronous wrapper for RQ worker compatibility.
    With `reschedule` the next purge is queued LOG_PURGE_INTERVAL from now.
    """
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        return loop.run_until_complete(purge_old_logs())
    finally:
        loop.run_until_complete(async_engine.dispose())
        loop.close()
        if reschedule:
            hub_queue.enqueue_in(LOG_PURGE_INTERVAL, purge_old_logs_sync)
