import asyncio
import logging
import uuid
from collections import Counter
from datetime import datetime
from typing import Dict, Optional, Union

from sqlalchemy import select

from hubsub.config import RENEWAL_INTERVAL
from hubsub.core.controller import RenewalAction, SubscriptionController
from hubsub.db.session import async_engine
from hubsub.models.subscription import Subscription
from hubsub.queue.redis_conn import hub_queue
from hubsub.wiring import build_controller
from hubsub.workers.seed_worker import enqueue_seed, ensure_uuid

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def run_renewal_tick(
    controller: Optional[SubscriptionController] = None,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """
    Run check_and_renew for every subscription.
    Subscriptions are independent, so they are checked concurrently and a
    failure on one is logged without affecting the others.
    """
    if controller is None:
        controller = build_controller(schedule_seed=enqueue_seed)

    async with controller.store.session_factory() as session:
        result = await session.execute(select(Subscription.id))
        subscription_ids = result.scalars().all()

    outcomes = await asyncio.gather(
        *(controller.check_and_renew(sid, now) for sid in subscription_ids),
        return_exceptions=True,
    )

    counts: Counter = Counter()
    for sid, outcome in zip(subscription_ids, outcomes):
        if isinstance(outcome, Exception):
            logger.error(f"[Renewal] Sub {sid}: check failed: {outcome!r}")
            counts["error"] += 1
        else:
            counts[outcome.value] += 1

    logger.info(f"[Renewal] Checked {len(subscription_ids)} subscription(s): {dict(counts)}")
    return dict(counts)


async def check_subscription(subscription_id: Union[str, uuid.UUID]) -> RenewalAction:
    controller = build_controller(schedule_seed=enqueue_seed)
    return await controller.check_and_renew(ensure_uuid(subscription_id))


def _run(coro):
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        return loop.run_until_complete(coro)
    finally:
        loop.run_until_complete(async_engine.dispose())
        loop.close()


def check_subscription_sync(subscription_id: Union[str, uuid.UUID]) -> str:
    """Synchronous wrapper for RQ worker compatibility."""
    return _run(check_subscription(subscription_id)).value


def run_renewal_tick_sync(reschedule: bool = True) -> Dict[str, int]:
    """
    Synchronous wrapper for RQ worker compatibility.
    With `reschedule` the next tick is queued RENEWAL_INTERVAL from now,
    whether or not this one succeeded.
    """
    try:
        return _run(run_renewal_tick())
    except Exception:
        logger.exception("[Renewal] Tick failed.")
        raise
    finally:
        if reschedule:
            hub_queue.enqueue_in(RENEWAL_INTERVAL, run_renewal_tick_sync)


if __name__ == "__main__":
    from hubsub.workers.log_retention import purge_old_logs_sync

    hub_queue.enqueue(run_renewal_tick_sync)
    hub_queue.enqueue(purge_old_logs_sync)
    logger.info("[Renewal] First renewal tick and log purge enqueued")
