import uuid
from datetime import datetime, timedelta

from hubsub.core.health import is_renewal_overdue, is_working
from hubsub.models.subscription import Subscription, SubscriptionState

NOW = datetime(2026, 10, 18, 12, 0, 0)


def make_sub(state=SubscriptionState.ACTIVE, **fields):
    return Subscription(
        id=uuid.uuid4(),
        feed_url="http://feed.example/rss",
        hub_url="http://hub.example",
        secret="s",
        state=state,
        expected_receive_period_in_days=2,
        **fields,
    )


def test_not_working_without_events():
    assert not is_working(make_sub(), None, None, NOW)


def test_working_with_recent_event():
    assert is_working(make_sub(), NOW - timedelta(days=1), None, NOW)


def test_not_working_when_event_is_too_old():
    assert not is_working(make_sub(), NOW - timedelta(days=3), None, NOW)


def test_error_after_last_event_means_not_working():
    last_event = NOW - timedelta(hours=5)
    assert not is_working(make_sub(), last_event, last_event + timedelta(hours=1), NOW)


def test_error_before_last_event_is_forgiven():
    last_event = NOW - timedelta(hours=5)
    assert is_working(make_sub(), last_event, last_event - timedelta(hours=1), NOW)


def test_renewal_overdue_for_expired_active_lease():
    assert is_renewal_overdue(make_sub(lease_expiry=NOW - timedelta(seconds=1)), NOW)
    assert not is_renewal_overdue(make_sub(lease_expiry=NOW + timedelta(hours=1)), NOW)


def test_renewal_overdue_for_failed_pending_subscribe():
    failing = make_sub(SubscriptionState.PENDING_SUBSCRIBE, last_error="Subscribe request failed")
    assert is_renewal_overdue(failing, NOW)
    assert not is_renewal_overdue(make_sub(SubscriptionState.PENDING_SUBSCRIBE), NOW)
    assert not is_renewal_overdue(make_sub(SubscriptionState.UNSUBSCRIBED), NOW)
