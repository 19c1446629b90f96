from datetime import datetime, timedelta
from typing import Optional

from hubsub.models.subscription import Subscription, SubscriptionState


def is_working(
    sub: Subscription,
    last_event_at: Optional[datetime],
    last_error_log_at: Optional[datetime],
    now: datetime,
) -> bool:
    """
    An event arrived within the expected receive period and nothing has
    gone wrong since.
    """
    if last_event_at is None:
        return False
    if now - last_event_at > timedelta(days=sub.expected_receive_period_in_days):
        return False
    return last_error_log_at is None or last_error_log_at <= last_event_at


def is_renewal_overdue(sub: Subscription, now: datetime) -> bool:
    if sub.state == SubscriptionState.ACTIVE:
        return sub.lease_expiry is not None and sub.lease_expiry <= now
    if sub.state == SubscriptionState.PENDING_SUBSCRIBE:
        return sub.last_error is not None
    return False
