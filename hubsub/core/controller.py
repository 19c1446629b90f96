import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Set
from urllib.parse import urlencode
from uuid import UUID

from hubsub.config import PUBLIC_BASE_URL, RENEWAL_WINDOW, SUBSCRIBE_RETRY_COOLDOWN
from hubsub.core.clock import utcnow
from hubsub.core.lease import (
    is_renewal_due,
    on_pending_subscribe,
    on_pending_unsubscribe,
    on_subscribed,
    on_unsubscribed,
    record_error,
)
from hubsub.core.validator import Transition, WebRequest, validate
from hubsub.db.store import SubscriptionStore, log_entry
from hubsub.emitter import NotificationEmitter
from hubsub.errors import UpstreamFetchFailed
from hubsub.hub_client import HubClient
from hubsub.models.subscription import Subscription, SubscriptionState

logger = logging.getLogger(__name__)


class RenewalAction(str, enum.Enum):
    NOOP = "noop"
    SUBSCRIBE_SENT = "subscribe_sent"
    SUBSCRIBE_FAILED = "subscribe_failed"
    NOT_FOUND = "not_found"


class UnsubscribeAction(str, enum.Enum):
    NOOP = "noop"
    UNSUBSCRIBE_SENT = "unsubscribe_sent"
    UNSUBSCRIBE_FAILED = "unsubscribe_failed"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class WebResponse:
    body: str
    status_code: int


@dataclass(frozen=True)
class _HubRequest:
    hub_url: str
    topic: str
    callback: str


class SubscriptionController:
    """
    Drives the subscription lifecycle.

    State is only read and written through `SubscriptionStore.update`, which
    holds the subscription's lock. Hub requests and the seed fetch are
    performed after that lock is released, and their outcome is committed
    with a second, short update.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        hub_client: HubClient,
        emitter: NotificationEmitter,
        schedule_seed: Optional[Callable[[UUID], Any]] = None,
        renewal_window: timedelta = RENEWAL_WINDOW,
        retry_cooldown: timedelta = SUBSCRIBE_RETRY_COOLDOWN,
        base_url: str = PUBLIC_BASE_URL,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.hub_client = hub_client
        self.emitter = emitter
        self.schedule_seed = schedule_seed or self._seed_in_background
        self.renewal_window = renewal_window
        self.retry_cooldown = retry_cooldown
        self.base_url = base_url.rstrip("/")
        self.clock = clock
        self._background: Set[asyncio.Task] = set()

    def callback_url(self, sub: Subscription) -> str:
        return f"{self.base_url}/callback/{sub.id}?{urlencode({'secret': sub.secret})}"

    async def check_and_renew(
        self, subscription_id: UUID, now: Optional[datetime] = None
    ) -> RenewalAction:
        now = now or self.clock()

        def start(sub, session):
            if not is_renewal_due(sub, now, self.renewal_window):
                return None
            if (
                sub.state == SubscriptionState.PENDING_SUBSCRIBE
                and sub.last_attempt_at is not None
                and now - sub.last_attempt_at < self.retry_cooldown
            ):
                # a request is already out; wait for the hub or the cooldown
                return None
            previous = sub.state.value
            on_pending_subscribe(sub, now)
            session.add(log_entry(sub.id, "info", f"Subscribe request issued (was {previous})"))
            return _HubRequest(sub.hub_url, sub.feed_url, self.callback_url(sub))

        sub, request = await self.store.update(subscription_id, start)
        if sub is None:
            return RenewalAction.NOT_FOUND
        if request is None:
            return RenewalAction.NOOP

        logger.info(f"[Controller] Sub {subscription_id}: subscribing to {request.topic} via {request.hub_url}")
        try:
            await self.hub_client.subscribe(request.hub_url, request.topic, request.callback)
        except UpstreamFetchFailed as exc:
            await self._record_failure(subscription_id, f"Subscribe request failed: {exc.detail}")
            return RenewalAction.SUBSCRIBE_FAILED
        return RenewalAction.SUBSCRIBE_SENT

    async def request_unsubscribe(
        self, subscription_id: UUID, now: Optional[datetime] = None
    ) -> UnsubscribeAction:
        """
        Ask the hub to drop the subscription.

        Nothing is sent when already unsubscribed, or while a subscribe or
        unsubscribe request went out less than `retry_cooldown` ago.
        """
        now = now or self.clock()

        def start(sub, session):
            if sub.state == SubscriptionState.UNSUBSCRIBED:
                return None
            if (
                sub.state in (SubscriptionState.PENDING_SUBSCRIBE, SubscriptionState.PENDING_UNSUBSCRIBE)
                and sub.last_attempt_at is not None
                and now - sub.last_attempt_at < self.retry_cooldown
            ):
                return None
            on_pending_unsubscribe(sub, now)
            session.add(log_entry(sub.id, "info", "Unsubscribe request issued"))
            return _HubRequest(sub.hub_url, sub.feed_url, self.callback_url(sub))

        sub, request = await self.store.update(subscription_id, start)
        if sub is None:
            return UnsubscribeAction.NOT_FOUND
        if request is None:
            return UnsubscribeAction.NOOP

        try:
            await self.hub_client.unsubscribe(request.hub_url, request.topic, request.callback)
        except UpstreamFetchFailed as exc:
            await self._record_failure(subscription_id, f"Unsubscribe request failed: {exc.detail}")
            return UnsubscribeAction.UNSUBSCRIBE_FAILED
        return UnsubscribeAction.UNSUBSCRIBE_SENT

    async def handle_web_request(
        self, subscription_id: UUID, request: WebRequest, now: Optional[datetime] = None
    ) -> WebResponse:
        now = now or self.clock()

        def apply(sub, session):
            result = validate(request, sub)
            if result.transition == Transition.DENY:
                on_unsubscribed(sub)
                record_error(sub, result.error, now)
                session.add(log_entry(sub.id, "error", result.error))
                logger.error(f"[Controller] Sub {sub.id}: {result.error}")
            elif result.transition == Transition.CONFIRM_SUBSCRIBE:
                on_subscribed(sub, result.lease_seconds, now)
                session.add(
                    log_entry(sub.id, "info", f"Subscription confirmed, lease expires {sub.lease_expiry.isoformat()}")
                )
            elif result.transition == Transition.CONFIRM_UNSUBSCRIBE:
                if sub.state == SubscriptionState.PENDING_UNSUBSCRIBE:
                    on_unsubscribed(sub)
                    session.add(log_entry(sub.id, "info", "Unsubscription confirmed"))
            return result

        sub, result = await self.store.update(subscription_id, apply)
        if sub is None:
            return WebResponse("Not Found", 404)

        if result.transition == Transition.EMIT:
            await self.emitter.emit(sub.id, result.event)
        if result.seed:
            self.schedule_seed(sub.id)
        return WebResponse(result.body, result.status_code)

    async def seed(self, subscription_id: UUID) -> bool:
        """Fetch the feed once and emit it as a seed event."""
        sub = await self.store.load(subscription_id)
        if sub is None:
            return False
        try:
            feed = await self.hub_client.fetch(sub.feed_url)
        except UpstreamFetchFailed as exc:
            await self._record_failure(subscription_id, f"Unable to retrieve feed_url. {exc.detail}")
            return False
        await self.emitter.emit(
            subscription_id,
            {"source": "seed", "format": feed.content_type, "raw": feed.body},
        )
        return True

    def _seed_in_background(self, subscription_id: UUID) -> None:
        task = asyncio.get_running_loop().create_task(self.seed(subscription_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _record_failure(self, subscription_id: UUID, message: str) -> None:
        logger.error(f"[Controller] Sub {subscription_id}: {message}")
        now = self.clock()

        def fail(sub, session):
            record_error(sub, message, now)
            session.add(log_entry(sub.id, "error", message))

        await self.store.update(subscription_id, fail)
