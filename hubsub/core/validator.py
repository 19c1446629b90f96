"""
Authentication and classification of inbound hub callbacks.

`validate` never touches the database or the network. It looks at the
request and a snapshot of the stored subscription and returns the HTTP
answer together with the transition the controller has to apply.

Push authentication is the shared `secret` query parameter plus a `Link`
header naming both the feed and the hub. That header check is a substring
match with no signature behind it and is a known weak point; anyone holding
the callback URL can forge a push.
"""
import enum
import hmac
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from hubsub.models.subscription import Subscription, SubscriptionState

logger = logging.getLogger(__name__)

# Hubs grant far shorter leases; anything longer is treated as malformed
MAX_LEASE_SECONDS = 366 * 24 * 60 * 60


class Transition(str, enum.Enum):
    NONE = "none"
    DENY = "deny"
    CONFIRM_SUBSCRIBE = "confirm_subscribe"
    CONFIRM_UNSUBSCRIBE = "confirm_unsubscribe"
    EMIT = "emit"


@dataclass
class WebRequest:
    method: str
    params: Mapping[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""
    content_type: Optional[str] = None

    def header(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


@dataclass(frozen=True)
class ValidationResult:
    body: str
    status_code: int
    transition: Transition = Transition.NONE
    lease_seconds: Optional[int] = None
    seed: bool = False
    error: Optional[str] = None
    event: Optional[Dict[str, Any]] = None

    @property
    def accepted(self) -> bool:
        return self.status_code == 200


def unauthorized() -> ValidationResult:
    return ValidationResult("Not Authorized", 401)


def bad_request() -> ValidationResult:
    return ValidationResult("Bad Request", 400)


def method_not_allowed() -> ValidationResult:
    return ValidationResult("Method Not Allowed", 405)


def parse_lease_seconds(value: Optional[str]) -> Optional[int]:
    """Plain ASCII digits no larger than MAX_LEASE_SECONDS, otherwise None."""
    if not value or len(value) > len(str(MAX_LEASE_SECONDS)):
        return None
    if not (value.isascii() and value.isdigit()):
        return None
    seconds = int(value)
    if seconds > MAX_LEASE_SECONDS:
        return None
    return seconds


def secret_matches(provided: Optional[str], expected: str) -> bool:
    if provided is None:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def validate(request: WebRequest, sub: Subscription) -> ValidationResult:
    params = dict(request.params)
    secret = params.pop("secret", None)
    if not secret_matches(secret, sub.secret):
        logger.warning(f"[Webhook] Sub {sub.id}: secret mismatch on {request.method}")
        return unauthorized()

    method = request.method.lower()
    if method == "get":
        return _validate_get(request, params, sub)
    if method == "post":
        return _validate_post(request, sub)

    logger.warning(f"[Webhook] Sub {sub.id}: unsupported request method {request.method}")
    return method_not_allowed()


def _validate_get(request: WebRequest, params: Dict[str, str], sub: Subscription) -> ValidationResult:
    topic = params.get("hub.topic")
    if topic != sub.feed_url:
        logger.warning(f"[Webhook] Sub {sub.id}: received unexpected get for topic {topic!r}")
        return bad_request()

    mode = params.get("hub.mode")
    challenge = params.get("hub.challenge")
    state = sub.state

    if mode == "denied" and state == SubscriptionState.PENDING_SUBSCRIBE:
        parts = ["Subscription was denied:"]
        if params.get("hub.reason"):
            parts.append(params["hub.reason"])
        location = request.header("Location")
        if location:
            parts.append(location)
        return ValidationResult(
            "Not really OK, but... OK",
            200,
            transition=Transition.DENY,
            error="\n".join(parts),
        )

    if mode == "subscribe" and state in (
        SubscriptionState.PENDING_SUBSCRIBE,
        SubscriptionState.ACTIVE,
    ):
        lease_seconds = parse_lease_seconds(params.get("hub.lease_seconds"))
        if not challenge or lease_seconds is None:
            logger.warning(
                f"[Webhook] Sub {sub.id}: subscribe challenge without usable "
                f"hub.challenge/hub.lease_seconds"
            )
            return bad_request()
        return ValidationResult(
            challenge,
            200,
            transition=Transition.CONFIRM_SUBSCRIBE,
            lease_seconds=lease_seconds,
            # a repeat while already active only refreshes the lease
            seed=state == SubscriptionState.PENDING_SUBSCRIBE,
        )

    if mode == "unsubscribe" and state != SubscriptionState.ACTIVE:
        if not challenge:
            return bad_request()
        return ValidationResult(
            challenge,
            200,
            transition=Transition.CONFIRM_UNSUBSCRIBE,
        )

    logger.warning(f"[Webhook] Sub {sub.id}: unexpected hub.mode {mode!r} in state {state.value}")
    return bad_request()


def _validate_post(request: WebRequest, sub: Subscription) -> ValidationResult:
    link = request.header("Link") or ""
    if sub.state != SubscriptionState.ACTIVE:
        logger.warning(f"[Webhook] Sub {sub.id}: received post when not subscribed, Link: {link!r}")
        return unauthorized()

    if sub.feed_url not in link or sub.hub_url not in link:
        logger.warning(f"[Webhook] Sub {sub.id}: received unexpected post, Link: {link!r}")
        return unauthorized()

    return ValidationResult(
        "OK",
        200,
        transition=Transition.EMIT,
        event={
            "source": "hub",
            "format": request.content_type,
            "raw": bytes(request.body),
        },
    )
