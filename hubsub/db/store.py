import asyncio
import logging
from typing import Callable, Dict, Optional, Tuple, TypeVar
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from hubsub.models.subscription import Subscription
from hubsub.models.subscription_log import SubscriptionLog

logger = logging.getLogger(__name__)

T = TypeVar("T")

STALE_WRITE_ATTEMPTS = 3


def log_entry(subscription_id: UUID, level: str, message: str) -> SubscriptionLog:
    return SubscriptionLog(subscription_id=subscription_id, level=level, message=message)


class SubscriptionStore:
    """
    Persisted subscription records.

    `update` is the only write path for subscription state. Inside one
    process it is serialized by a per-subscription asyncio.Lock; across
    processes (API and RQ workers) the row's version counter turns a lost
    update into a StaleDataError, after which the mutation is replayed on
    a fresh copy of the row.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory
        self._locks: Dict[UUID, asyncio.Lock] = {}

    def lock_for(self, subscription_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(subscription_id)
        if lock is None:
            lock = self._locks[subscription_id] = asyncio.Lock()
        return lock

    def forget(self, subscription_id: UUID) -> None:
        self._locks.pop(subscription_id, None)

    async def load(self, subscription_id: UUID) -> Optional[Subscription]:
        async with self.session_factory() as session:
            return await session.get(Subscription, subscription_id)

    async def update(
        self,
        subscription_id: UUID,
        mutate: Callable[[Subscription, AsyncSession], T],
    ) -> Tuple[Optional[Subscription], Optional[T]]:
        """
        Load, mutate and commit under the subscription's lock.

        `mutate` runs synchronously against the loaded row and may add
        extra objects (log entries) to the session. Returns the committed
        row and whatever `mutate` returned, or (None, None) when the
        subscription does not exist.
        """
        lock = self.lock_for(subscription_id)
        async with lock:
            for attempt in range(1, STALE_WRITE_ATTEMPTS + 1):
                async with self.session_factory() as session:
                    sub = await session.get(Subscription, subscription_id)
                    if sub is None:
                        # unknown ids must not leave a lock behind
                        if self._locks.get(subscription_id) is lock:
                            del self._locks[subscription_id]
                        return None, None
                    result = mutate(sub, session)
                    try:
                        await session.commit()
                    except StaleDataError:
                        await session.rollback()
                        logger.warning(
                            f"[Store] Sub {subscription_id}: concurrent write detected "
                            f"(attempt {attempt}/{STALE_WRITE_ATTEMPTS})"
                        )
                        if attempt == STALE_WRITE_ATTEMPTS:
                            raise
                        continue
                    return sub, result
        return None, None

    async def add_log(self, subscription_id: UUID, level: str, message: str) -> None:
        async with self.session_factory() as session:
            session.add(log_entry(subscription_id, level, message))
            await session.commit()
