"""Single entry point for counting a customer visit.

Staff check-ins and order-generated visits both go through
:meth:`VisitRecorder.record_visit`, which appends the visit, bumps the counter
and then runs tier and milestone evaluation inside the caller's transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.models.customer_profile import CustomerProfile
from tablerewards_api.models.loyalty import CustomerStats, LoyaltyTierEnum, Reward, Visit
from tablerewards_api.observability.loyalty import get_loyalty_store
from tablerewards_api.services.errors import LoyaltyValidationError
from tablerewards_api.services.loyalty.milestones import MilestoneEvaluator
from tablerewards_api.services.loyalty.rewards import RewardService, utcnow
from tablerewards_api.services.loyalty.settings_store import LoyaltySettingsStore
from tablerewards_api.services.loyalty.tiers import TierChange, TierEvaluator


@dataclass
class VisitOutcome:
    visit: Visit
    total_visits: int
    tier: LoyaltyTierEnum
    tier_change: Optional[TierChange] = None
    rewards: List[Reward] = field(default_factory=list)


class VisitRecorder:
    def __init__(self, session: AsyncSession, *, settings_store: LoyaltySettingsStore | None = None) -> None:
        self._db = session
        self._settings = settings_store or LoyaltySettingsStore(session)
        rewards = RewardService(session, settings_store=self._settings)
        self._tiers = TierEvaluator(session, settings_store=self._settings, reward_service=rewards)
        self._milestones = MilestoneEvaluator(session, settings_store=self._settings, reward_service=rewards)

    async def record_visit(
        self,
        customer_id: UUID,
        *,
        staff_id: UUID | None = None,
        notes: str | None = None,
        order_id: UUID | None = None,
        now: datetime | None = None,
    ) -> VisitOutcome:
        now = now or utcnow()
        if await self._db.get(CustomerProfile, customer_id) is None:
            raise LoyaltyValidationError(f"Unknown customer {customer_id}")

        visit = Visit(
            customer_id=customer_id,
            staff_id=staff_id,
            order_id=order_id,
            notes=notes,
            visited_at=now,
        )
        self._db.add(visit)
        await self._db.flush()

        stats = await self._increment(customer_id, now)

        outcome = VisitOutcome(
            visit=visit,
            total_visits=stats.total_visits,
            tier=LoyaltyTierEnum(stats.current_tier),
        )
        tier_change = await self._tiers.apply(stats, now=now)
        if tier_change is not None:
            outcome.tier_change = tier_change
            outcome.tier = tier_change.to_tier
            if tier_change.reward is not None:
                outcome.rewards.append(tier_change.reward)

        milestone = await self._milestones.apply(stats, now=now)
        if milestone is not None:
            outcome.rewards.append(milestone)

        get_loyalty_store().record_visit("order" if order_id else "staff")
        logger.info(
            "Recorded customer visit",
            customer_id=str(customer_id),
            visit_id=str(visit.id),
            order_id=str(order_id) if order_id else None,
            total_visits=outcome.total_visits,
            tier=outcome.tier.value,
            rewards_issued=len(outcome.rewards),
        )
        return outcome

    async def _increment(self, customer_id: UUID, now: datetime) -> CustomerStats:
        """Add exactly one visit and return the row, locked until the transaction ends."""

        bump = (
            update(CustomerStats)
            .where(CustomerStats.customer_id == customer_id)
            .values(total_visits=CustomerStats.total_visits + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self._db.execute(bump)
        if result.rowcount == 0:
            try:
                async with self._db.begin_nested():
                    self._db.add(
                        CustomerStats(
                            customer_id=customer_id,
                            total_visits=1,
                            current_tier=LoyaltyTierEnum.BRONZE,
                            created_at=now,
                            updated_at=now,
                        )
                    )
            except IntegrityError:
                # A concurrent first visit created the row; count this one on top.
                logger.warning("Detected race creating customer stats", customer_id=str(customer_id))
                await self._db.execute(bump)

        stmt = (
            select(CustomerStats)
            .where(CustomerStats.customer_id == customer_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return (await self._db.execute(stmt)).scalar_one()


__all__ = ["VisitOutcome", "VisitRecorder"]
