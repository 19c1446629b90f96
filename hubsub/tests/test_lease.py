import uuid
from datetime import datetime, timedelta
import pytest

from hubsub.core.lease import (
    is_renewal_due,
    on_pending_subscribe,
    on_subscribed,
    on_unsubscribed,
)
from hubsub.models.subscription import Subscription, SubscriptionState

NOW = datetime(2026, 10, 18, 12, 0, 0)
WINDOW = timedelta(hours=24)


def make_sub(state, lease_expiry=None, **fields):
    return Subscription(
        id=uuid.uuid4(),
        feed_url="http://feed.example/rss",
        hub_url="http://hub.example",
        secret="s",
        state=state,
        lease_expiry=lease_expiry,
        **fields,
    )


def test_renewal_due_inside_window():
    sub = make_sub(SubscriptionState.ACTIVE, lease_expiry=NOW + timedelta(hours=23))
    assert is_renewal_due(sub, NOW, WINDOW)


def test_renewal_not_due_outside_window():
    sub = make_sub(SubscriptionState.ACTIVE, lease_expiry=NOW + timedelta(hours=25))
    assert not is_renewal_due(sub, NOW, WINDOW)


def test_renewal_due_exactly_at_window_edge():
    sub = make_sub(SubscriptionState.ACTIVE, lease_expiry=NOW + WINDOW)
    assert is_renewal_due(sub, NOW, WINDOW)


def test_expired_lease_is_due():
    sub = make_sub(SubscriptionState.ACTIVE, lease_expiry=NOW - timedelta(minutes=1))
    assert is_renewal_due(sub, NOW, WINDOW)


@pytest.mark.parametrize(
    "state, due",
    [
        (SubscriptionState.UNSUBSCRIBED, True),
        (SubscriptionState.PENDING_SUBSCRIBE, True),
        (SubscriptionState.PENDING_UNSUBSCRIBE, False),
    ],
)
def test_renewal_due_without_lease(state, due):
    assert is_renewal_due(make_sub(state), NOW, WINDOW) is due


def test_on_subscribed_computes_absolute_expiry_and_clears_error():
    sub = make_sub(
        SubscriptionState.PENDING_SUBSCRIBE,
        last_error="Subscribe request failed",
        last_error_at=NOW - timedelta(hours=1),
    )
    on_subscribed(sub, 864000, NOW)
    assert sub.state == SubscriptionState.ACTIVE
    assert sub.lease_expiry == NOW + timedelta(days=10)
    assert sub.last_error is None
    assert sub.last_error_at is None


def test_on_subscribed_never_keeps_old_expiry():
    sub = make_sub(SubscriptionState.ACTIVE, lease_expiry=NOW + timedelta(days=30))
    on_subscribed(sub, 60, NOW)
    assert sub.lease_expiry == NOW + timedelta(seconds=60)


def test_on_unsubscribed_clears_lease():
    sub = make_sub(SubscriptionState.ACTIVE, lease_expiry=NOW + timedelta(days=1))
    on_unsubscribed(sub)
    assert sub.state == SubscriptionState.UNSUBSCRIBED
    assert sub.lease_expiry is None


def test_on_pending_subscribe_drops_lease_and_stamps_attempt():
    sub = make_sub(SubscriptionState.ACTIVE, lease_expiry=NOW + timedelta(hours=2))
    on_pending_subscribe(sub, NOW)
    assert sub.state == SubscriptionState.PENDING_SUBSCRIBE
    assert sub.lease_expiry is None
    assert sub.last_attempt_at == NOW
