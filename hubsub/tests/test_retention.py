import uuid
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from hubsub.config import LOG_PURGE_INTERVAL
from hubsub.core.clock import utcnow
from hubsub.models.subscription_log import SubscriptionLog
from hubsub.workers.log_retention import purge_old_logs, purge_old_logs_sync


async def test_purge_old_logs(session_factory):
    # Insert one old and one recent log
    old_id = uuid.uuid4()
    new_id = uuid.uuid4()
    subscription_id = uuid.uuid4()

    old = SubscriptionLog(
        id=old_id,
        subscription_id=subscription_id,
        timestamp=utcnow() - timedelta(hours=73),
        level="error",
        message="Subscribe request failed: HTTP 503",
    )
    new = SubscriptionLog(
        id=new_id,
        subscription_id=subscription_id,
        timestamp=utcnow() - timedelta(hours=1),
        level="info",
        message="Subscription confirmed",
    )

    async with session_factory() as session:
        session.add_all([old, new])
        await session.flush()

        # Purge using the *same* async session
        deleted_count = await purge_old_logs(db=session)
        assert deleted_count == 1

        old_result = await session.execute(
            select(SubscriptionLog).where(SubscriptionLog.id == old_id)
        )
        new_result = await session.execute(
            select(SubscriptionLog).where(SubscriptionLog.id == new_id)
        )

        assert old_result.scalar_one_or_none() is None, "Old log should have been deleted"
        assert new_result.scalar_one_or_none() is not None, "New log should still exist"


def test_purge_sync_wrapper_reschedules_itself(mocker):
    from hubsub.queue.redis_conn import hub_queue

    mock_purge = mocker.patch(
        "hubsub.workers.log_retention.purge_old_logs",
        new_callable=AsyncMock,
        return_value=4,
    )

    assert purge_old_logs_sync() == 4

    mock_purge.assert_called_once_with()
    hub_queue.enqueue_in.assert_called_once_with(LOG_PURGE_INTERVAL, purge_old_logs_sync)


def test_purge_sync_wrapper_reschedules_after_failure(mocker):
    from hubsub.queue.redis_conn import hub_queue

    mocker.patch(
        "hubsub.workers.log_retention.purge_old_logs",
        new_callable=AsyncMock,
        side_effect=RuntimeError("database went away"),
    )

    with pytest.raises(RuntimeError):
        purge_old_logs_sync()
    hub_queue.enqueue_in.assert_called_once_with(LOG_PURGE_INTERVAL, purge_old_logs_sync)
