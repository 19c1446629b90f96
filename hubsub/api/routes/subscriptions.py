import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete, select
from typing import List
from uuid import UUID

from hubsub.api.deps import get_async_db, get_controller
from hubsub.core.controller import RenewalAction, SubscriptionController, UnsubscribeAction
from hubsub.models.subscription import Subscription
from hubsub.queue.redis_conn import hub_queue
from hubsub.api.schemas import (
    RenewResponse,
    SubscriptionCreate,
    SubscriptionOut,
    SubscriptionUpdate,
    UnsubscribeResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post(
    "/",
    response_model=SubscriptionOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_subscription(
    subscription_in: SubscriptionCreate,
    db: AsyncSession = Depends(get_async_db),
):
    sub = Subscription(**subscription_in.model_dump())

    db.add(sub)
    await db.commit()
    await db.refresh(sub)

    # Start the first subscription now rather than at the next renewal tick
    hub_queue.enqueue(
        "hubsub.workers.renewal_worker.check_subscription_sync",
        str(sub.id),
    )

    return sub

@router.get("/{subscription_id}", response_model=SubscriptionOut)
async def read_subscription(
    subscription_id: UUID,
    db: AsyncSession = Depends(get_async_db),
):
    sub = await db.get(Subscription, subscription_id)
    if not sub:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription not found",
        )
    return sub

@router.get("/", response_model=List[SubscriptionOut])
async def list_subscriptions(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_async_db),
):
    result = await db.execute(
        select(Subscription)
        .order_by(Subscription.created_at)
        .offset(skip)
        .limit(limit)
    )
    return result.scalars().all()

@router.patch("/{subscription_id}", response_model=SubscriptionOut)
async def update_subscription(
    subscription_id: UUID,
    subscription_in: SubscriptionUpdate,
    controller: SubscriptionController = Depends(get_controller),
):
    update_data = subscription_in.model_dump(exclude_unset=True, exclude_none=True)

    def apply(sub, session):
        for field, value in update_data.items():
            setattr(sub, field, value)

    # Goes through the store so it cannot race a state transition
    sub, _ = await controller.store.update(subscription_id, apply)
    if not sub:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription not found",
        )
    return sub

@router.delete(
    "/{subscription_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_subscription(
    subscription_id: UUID,
    db: AsyncSession = Depends(get_async_db),
    controller: SubscriptionController = Depends(get_controller),
):
    if await controller.store.load(subscription_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription not found",
        )

    # Best effort: the lease runs out on its own if the hub never hears from us
    action = await controller.request_unsubscribe(subscription_id)
    if action == UnsubscribeAction.UNSUBSCRIBE_FAILED:
        logger.warning(f"[API] Sub {subscription_id}: deleting although the unsubscribe request failed")

    await db.execute(
        delete(Subscription)
        .where(Subscription.id == subscription_id)
    )
    await db.commit()
    controller.store.forget(subscription_id)

    return

@router.post("/{subscription_id}/renew", response_model=RenewResponse)
async def renew_subscription(
    subscription_id: UUID,
    controller: SubscriptionController = Depends(get_controller),
):
    action = await controller.check_and_renew(subscription_id)
    if action == RenewalAction.NOT_FOUND:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription not found",
        )
    return {"subscription_id": subscription_id, "action": action.value}

@router.post("/{subscription_id}/unsubscribe", response_model=UnsubscribeResponse)
async def unsubscribe(
    subscription_id: UUID,
    controller: SubscriptionController = Depends(get_controller),
):
    action = await controller.request_unsubscribe(subscription_id)
    if action == UnsubscribeAction.NOT_FOUND:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription not found",
        )
    return {
        "subscription_id": subscription_id,
        "action": action.value,
        "accepted": action == UnsubscribeAction.UNSUBSCRIBE_SENT,
    }
