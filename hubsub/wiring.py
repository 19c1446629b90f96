from typing import Any, Callable, Optional
from uuid import UUID

from hubsub.core.controller import SubscriptionController
from hubsub.db.store import SubscriptionStore
from hubsub.emitter import DatabaseEmitter
from hubsub.hub_client import HubClient


def build_controller(
    session_factory=None,
    schedule_seed: Optional[Callable[[UUID], Any]] = None,
    hub_client: Optional[HubClient] = None,
) -> SubscriptionController:
    """Controller backed by the database store and emitter, and the httpx hub client."""
    if session_factory is None:
        from hubsub.db.session import AsyncSessionLocal
        session_factory = AsyncSessionLocal
    return SubscriptionController(
        store=SubscriptionStore(session_factory),
        hub_client=hub_client or HubClient(),
        emitter=DatabaseEmitter(session_factory),
        schedule_seed=schedule_seed,
    )
