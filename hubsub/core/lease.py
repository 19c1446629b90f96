"""
Lease bookkeeping for a subscription.

These helpers only mutate the Subscription row in memory; committing is
left to the caller, which holds the per-subscription lock.
"""
from datetime import datetime, timedelta

from hubsub.config import RENEWAL_WINDOW
from hubsub.models.subscription import Subscription, SubscriptionState


def is_renewal_due(
    sub: Subscription,
    now: datetime,
    renewal_window: timedelta = RENEWAL_WINDOW,
) -> bool:
    """
    True when a subscribe request should go out.

    For an active subscription that means the lease ends within
    `renewal_window`. Unsubscribed (or still pending) means the first
    subscription has to be initiated.
    """
    if sub.state == SubscriptionState.ACTIVE:
        if sub.lease_expiry is None:
            return True
        return sub.lease_expiry - now <= renewal_window
    return sub.state in (
        SubscriptionState.UNSUBSCRIBED,
        SubscriptionState.PENDING_SUBSCRIBE,
    )


def on_subscribed(sub: Subscription, lease_seconds: int, now: datetime) -> None:
    sub.state = SubscriptionState.ACTIVE
    sub.lease_expiry = now + timedelta(seconds=lease_seconds)
    sub.last_error = None
    sub.last_error_at = None


def on_unsubscribed(sub: Subscription) -> None:
    sub.state = SubscriptionState.UNSUBSCRIBED
    sub.lease_expiry = None


def on_pending_subscribe(sub: Subscription, now: datetime) -> None:
    sub.state = SubscriptionState.PENDING_SUBSCRIBE
    sub.lease_expiry = None
    sub.last_attempt_at = now


def on_pending_unsubscribe(sub: Subscription, now: datetime) -> None:
    sub.state = SubscriptionState.PENDING_UNSUBSCRIBE
    sub.lease_expiry = None
    sub.last_attempt_at = now


def record_error(sub: Subscription, message: str, now: datetime) -> None:
    sub.last_error = message
    sub.last_error_at = now
