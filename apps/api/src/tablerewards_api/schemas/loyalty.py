"""Response models shared by the loyalty endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from tablerewards_api.models.loyalty import Reward
from tablerewards_api.services.loyalty import VisitOutcome, ensure_aware


class RewardResponse(BaseModel):
    id: UUID
    customerId: UUID
    kind: str
    status: str
    title: str
    description: Optional[str]
    rewardValue: Optional[float]
    discountPercentage: Optional[int]
    applicableTo: str
    minimumOrderValue: float
    expirationDate: Optional[datetime]
    unlockedAt: Optional[datetime]
    milestoneVisits: Optional[int]
    claimedAt: Optional[datetime]
    appliedToOrderId: Optional[UUID]

    @classmethod
    def from_model(cls, reward: Reward) -> "RewardResponse":
        return cls(
            id=reward.id,
            customerId=reward.customer_id,
            kind=reward.kind.value,
            status=reward.status.value,
            title=reward.title,
            description=reward.description,
            rewardValue=float(reward.reward_value) if reward.reward_value is not None else None,
            discountPercentage=reward.discount_percentage,
            applicableTo=reward.applicable_to,
            minimumOrderValue=float(reward.minimum_order_value or 0),
            expirationDate=ensure_aware(reward.expiration_date),
            unlockedAt=ensure_aware(reward.unlocked_at),
            milestoneVisits=reward.milestone_visits,
            claimedAt=ensure_aware(reward.claimed_at),
            appliedToOrderId=reward.applied_to_order_id,
        )


class VisitResultResponse(BaseModel):
    visitId: UUID
    customerId: UUID
    totalVisits: int
    tier: str
    tierChanged: bool
    previousTier: Optional[str]
    rewardsIssued: List[RewardResponse]

    @classmethod
    def from_outcome(cls, outcome: VisitOutcome) -> "VisitResultResponse":
        change = outcome.tier_change
        return cls(
            visitId=outcome.visit.id,
            customerId=outcome.visit.customer_id,
            totalVisits=outcome.total_visits,
            tier=outcome.tier.value,
            tierChanged=change is not None,
            previousTier=change.from_tier.value if change else None,
            rewardsIssued=[RewardResponse.from_model(reward) for reward in outcome.rewards],
        )
