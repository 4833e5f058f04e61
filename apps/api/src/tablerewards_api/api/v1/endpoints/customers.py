"""Per-customer loyalty views: snapshot, visit history, rewards."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.api.dependencies.session import require_caller
from tablerewards_api.api.errors import DOMAIN_ERRORS, to_http_exception
from tablerewards_api.db.session import get_session
from tablerewards_api.models.loyalty import RewardStatusEnum, Visit
from tablerewards_api.schemas.loyalty import RewardResponse
from tablerewards_api.services.access import Caller
from tablerewards_api.services.loyalty import RewardService, build_loyalty_snapshot, ensure_aware


router = APIRouter(prefix="/customers", tags=["customers"])


class LoyaltySnapshotResponse(BaseModel):
    customerId: UUID
    fullName: str
    referralCode: str
    totalVisits: int
    currentTier: str
    tierDiscountPercentage: int
    tierUpdatedAt: Optional[datetime]
    nextTier: Optional[str]
    visitsToNextTier: Optional[int]
    visitsToNextMilestone: int
    availableRewards: int
    referralsMade: int


class VisitResponse(BaseModel):
    id: UUID
    visitedAt: datetime
    staffId: Optional[UUID]
    orderId: Optional[UUID]
    notes: Optional[str]


def _ensure_access(caller: Caller, customer_id: UUID) -> None:
    if not caller.can_act_as(customer_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not permitted for this customer")


@router.get("/{customer_id}/loyalty", response_model=LoyaltySnapshotResponse)
async def read_loyalty_snapshot(
    customer_id: UUID,
    caller: Caller = Depends(require_caller),
    db: AsyncSession = Depends(get_session),
) -> LoyaltySnapshotResponse:
    _ensure_access(caller, customer_id)
    try:
        snapshot = await build_loyalty_snapshot(db, customer_id)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc

    return LoyaltySnapshotResponse(
        customerId=snapshot.customer_id,
        fullName=snapshot.full_name,
        referralCode=snapshot.referral_code,
        totalVisits=snapshot.total_visits,
        currentTier=snapshot.current_tier.value,
        tierDiscountPercentage=snapshot.tier_discount_percentage,
        tierUpdatedAt=snapshot.tier_updated_at,
        nextTier=snapshot.next_tier.value if snapshot.next_tier else None,
        visitsToNextTier=snapshot.visits_to_next_tier,
        visitsToNextMilestone=snapshot.visits_to_next_milestone,
        availableRewards=snapshot.available_rewards,
        referralsMade=snapshot.referrals_made,
    )


@router.get("/{customer_id}/visits", response_model=List[VisitResponse])
async def list_customer_visits(
    customer_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    caller: Caller = Depends(require_caller),
    db: AsyncSession = Depends(get_session),
) -> List[VisitResponse]:
    _ensure_access(caller, customer_id)
    stmt = (
        select(Visit)
        .where(Visit.customer_id == customer_id)
        .order_by(Visit.visited_at.desc())
        .limit(limit)
    )
    visits = (await db.execute(stmt)).scalars().all()
    return [
        VisitResponse(
            id=visit.id,
            visitedAt=ensure_aware(visit.visited_at),
            staffId=visit.staff_id,
            orderId=visit.order_id,
            notes=visit.notes,
        )
        for visit in visits
    ]


@router.get("/{customer_id}/rewards", response_model=List[RewardResponse])
async def list_customer_rewards(
    customer_id: UUID,
    reward_status: Literal["available", "claimed", "all"] = Query("available", alias="status"),
    caller: Caller = Depends(require_caller),
    db: AsyncSession = Depends(get_session),
) -> List[RewardResponse]:
    """``available`` lists redeemable rewards, best value first."""

    _ensure_access(caller, customer_id)
    service = RewardService(db)
    if reward_status == "available":
        rewards = await service.list_available(customer_id)
    elif reward_status == "claimed":
        rewards = await service.list_for_customer(customer_id, status=RewardStatusEnum.CLAIMED)
    else:
        rewards = await service.list_for_customer(customer_id)
    return [RewardResponse.from_model(reward) for reward in rewards]
