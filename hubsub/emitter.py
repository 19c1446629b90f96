import logging
from typing import Any, Dict, Protocol
from uuid import UUID

from hubsub.models.event import Event

logger = logging.getLogger(__name__)


class NotificationEmitter(Protocol):
    async def emit(self, subscription_id: UUID, payload: Dict[str, Any]) -> None:
        ...


class DatabaseEmitter:
    """Records every validated payload as one Event row."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def emit(self, subscription_id: UUID, payload: Dict[str, Any]) -> None:
        async with self.session_factory() as session:
            event = Event(
                subscription_id=subscription_id,
                source=payload["source"],
                format=payload.get("format"),
                raw=payload.get("raw") or b"",
            )
            session.add(event)
            await session.commit()
        logger.info(
            f"[Emitter] Sub {subscription_id}: {payload['source']} event "
            f"({payload.get('format')}, {len(payload.get('raw') or b'')} bytes)"
        )
