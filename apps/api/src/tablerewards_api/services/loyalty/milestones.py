"""Every-Nth-visit milestone rewards."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.models.loyalty import CustomerStats, Reward, RewardKindEnum
from tablerewards_api.services.loyalty.rewards import FixedAmount, MilestoneGrant, RewardService
from tablerewards_api.services.loyalty.settings_store import LoyaltySettingsStore


def is_milestone(visits: int, frequency: int) -> bool:
    return frequency >= 1 and visits > 0 and visits % frequency == 0


class MilestoneEvaluator:
    """Issue at most one milestone reward per (customer, visit count)."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        settings_store: LoyaltySettingsStore | None = None,
        reward_service: RewardService | None = None,
    ) -> None:
        self._db = session
        self._settings = settings_store or LoyaltySettingsStore(session)
        self._rewards = reward_service or RewardService(session, settings_store=self._settings)

    async def apply(self, stats: CustomerStats, *, now: datetime | None = None) -> Reward | None:
        config = await self._settings.load()
        visits = stats.total_visits
        if not is_milestone(visits, config.milestone_frequency):
            return None

        if await self._already_granted(stats.customer_id, visits):
            logger.debug("Milestone already rewarded", customer_id=str(stats.customer_id), visits=visits)
            return None

        amount = config.milestone_reward_value
        return await self._rewards.issue(
            stats.customer_id,
            MilestoneGrant(visits=visits),
            FixedAmount(amount),
            title=f"Milestone Reward - {visits} Visits!",
            description=f"Congratulations on reaching {visits} visits! Enjoy ${amount:.2f} off your next order.",
            now=now,
            config=config,
        )

    async def _already_granted(self, customer_id: UUID, visits: int) -> bool:
        stmt = (
            select(Reward.id)
            .where(
                Reward.customer_id == customer_id,
                Reward.kind == RewardKindEnum.MILESTONE,
                Reward.milestone_visits == visits,
            )
            .limit(1)
        )
        return (await self._db.execute(stmt)).scalar_one_or_none() is not None


__all__ = ["MilestoneEvaluator", "is_milestone"]
