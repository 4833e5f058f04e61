"""Read-only loyalty overview for dashboards."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.models.customer_profile import CustomerProfile
from tablerewards_api.models.loyalty import CustomerStats, LoyaltyTierEnum, Referral
from tablerewards_api.services.errors import LoyaltyNotFoundError
from tablerewards_api.services.loyalty.rewards import RewardService, ensure_aware
from tablerewards_api.services.loyalty.settings_store import LoyaltySettingsStore
from tablerewards_api.services.loyalty.tiers import next_tier_for


@dataclass
class LoyaltySnapshot:
    customer_id: UUID
    full_name: str
    referral_code: str
    total_visits: int
    current_tier: LoyaltyTierEnum
    tier_discount_percentage: int
    tier_updated_at: Optional[datetime]
    next_tier: Optional[LoyaltyTierEnum]
    visits_to_next_tier: Optional[int]
    visits_to_next_milestone: int
    available_rewards: int
    referrals_made: int


async def build_loyalty_snapshot(session: AsyncSession, customer_id: UUID) -> LoyaltySnapshot:
    profile = await session.get(CustomerProfile, customer_id)
    if profile is None:
        raise LoyaltyNotFoundError(f"Customer {customer_id} not found")

    settings_store = LoyaltySettingsStore(session)
    config = await settings_store.load()

    stats = (
        await session.execute(select(CustomerStats).where(CustomerStats.customer_id == customer_id))
    ).scalar_one_or_none()
    visits = stats.total_visits if stats else 0
    tier = LoyaltyTierEnum(stats.current_tier) if stats else LoyaltyTierEnum.BRONZE

    upcoming = next_tier_for(visits, config.tier_thresholds)
    frequency = config.milestone_frequency
    to_milestone = frequency - (visits % frequency)

    available = await RewardService(session, settings_store=settings_store).list_available(customer_id)
    referrals_made = (
        await session.execute(select(func.count(Referral.id)).where(Referral.referrer_id == customer_id))
    ).scalar_one()

    return LoyaltySnapshot(
        customer_id=customer_id,
        full_name=profile.full_name,
        referral_code=profile.referral_code,
        total_visits=visits,
        current_tier=tier,
        tier_discount_percentage=config.tier_discounts.get(tier, 0),
        tier_updated_at=ensure_aware(stats.tier_updated_at) if stats else None,
        next_tier=upcoming[0] if upcoming else None,
        visits_to_next_tier=upcoming[1] if upcoming else None,
        visits_to_next_milestone=to_milestone,
        available_rewards=len(available),
        referrals_made=int(referrals_made or 0),
    )


__all__ = ["LoyaltySnapshot", "build_loyalty_snapshot"]
