from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from uuid import UUID
from typing import List

from hubsub.api.deps import get_async_db
from hubsub.core.clock import utcnow
from hubsub.core.health import is_renewal_overdue, is_working
from hubsub.models.event import Event
from hubsub.models.subscription import Subscription
from hubsub.models.subscription_log import SubscriptionLog
from hubsub.api.schemas import EventOut, HealthResponse, LogOut

router = APIRouter()

async def _get_subscription_or_404(db: AsyncSession, subscription_id: UUID) -> Subscription:
    sub = await db.get(Subscription, subscription_id)
    if not sub:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription not found",
        )
    return sub

@router.get(
    "/subscriptions/{subscription_id}/events",
    response_model=List[EventOut],
    summary="List recent events emitted for a subscription",
)
async def list_subscription_events(
    subscription_id: UUID,
    limit: int = 20,
    db: AsyncSession = Depends(get_async_db),
):
    await _get_subscription_or_404(db, subscription_id)
    events = await db.execute(
        select(Event)
        .where(Event.subscription_id == subscription_id)
        .order_by(Event.created_at.desc())
        .limit(limit)
    )
    return events.scalars().all()

@router.get(
    "/subscriptions/{subscription_id}/logs",
    response_model=List[LogOut],
    summary="List recent lifecycle and error logs for a subscription",
)
async def list_subscription_logs(
    subscription_id: UUID,
    limit: int = 20,
    db: AsyncSession = Depends(get_async_db),
):
    await _get_subscription_or_404(db, subscription_id)
    logs = await db.execute(
        select(SubscriptionLog)
        .where(SubscriptionLog.subscription_id == subscription_id)
        .order_by(SubscriptionLog.timestamp.desc())
        .limit(limit)
    )
    return logs.scalars().all()

@router.get(
    "/subscriptions/{subscription_id}/health",
    response_model=HealthResponse,
    summary="Report whether a subscription is receiving events",
)
async def get_subscription_health(
    subscription_id: UUID,
    db: AsyncSession = Depends(get_async_db),
):
    sub = await _get_subscription_or_404(db, subscription_id)
    now = utcnow()

    last_event_at = await db.scalar(
        select(func.max(Event.created_at))
        .where(Event.subscription_id == subscription_id)
    )
    errors = await db.execute(
        select(SubscriptionLog)
        .where(SubscriptionLog.subscription_id == subscription_id)
        .where(SubscriptionLog.level == "error")
        .order_by(SubscriptionLog.timestamp.desc())
        .limit(5)
    )
    recent_errors = errors.scalars().all()
    last_error_log_at = recent_errors[0].timestamp if recent_errors else None

    return {
        "subscription_id": subscription_id,
        "working": is_working(sub, last_event_at, last_error_log_at, now),
        "renewal_overdue": is_renewal_overdue(sub, now),
        "state": sub.state,
        "lease_expiry": sub.lease_expiry,
        "last_event_at": last_event_at,
        "last_error": sub.last_error,
        "last_error_at": sub.last_error_at,
        "recent_errors": recent_errors,
    }
