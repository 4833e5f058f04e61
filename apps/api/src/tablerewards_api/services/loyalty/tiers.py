"""Tier computation and graduation rewards."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP
from typing import Optional
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.models.loyalty import CustomerStats, LoyaltyTierEnum, Reward
from tablerewards_api.observability.loyalty import get_loyalty_store
from tablerewards_api.services.errors import LoyaltyNotFoundError
from tablerewards_api.services.loyalty.rewards import (
    FixedAmount,
    PercentOff,
    RewardService,
    TierUpgradeGrant,
    utcnow,
)
from tablerewards_api.services.loyalty.settings_store import (
    GraduationReward,
    LoyaltyConfig,
    LoyaltySettingsStore,
    TierThresholds,
)


def tier_for_visits(visits: int, thresholds: TierThresholds) -> LoyaltyTierEnum:
    """Gold wins over silver when thresholds overlap; anything below silver is bronze."""

    if visits >= thresholds.gold.min:
        return LoyaltyTierEnum.GOLD
    if visits >= thresholds.silver.min:
        return LoyaltyTierEnum.SILVER
    return LoyaltyTierEnum.BRONZE


def next_tier_for(visits: int, thresholds: TierThresholds) -> tuple[LoyaltyTierEnum, int] | None:
    """Return the next tier up and the visits still needed, or None at the top."""

    current = tier_for_visits(visits, thresholds)
    if current == LoyaltyTierEnum.GOLD:
        return None
    target = LoyaltyTierEnum.SILVER if current == LoyaltyTierEnum.BRONZE else LoyaltyTierEnum.GOLD
    if target == LoyaltyTierEnum.SILVER and thresholds.gold.min <= thresholds.silver.min:
        target = LoyaltyTierEnum.GOLD
    return target, max(thresholds.minimum_for(target) - visits, 0)


def resolve_graduation(
    config: LoyaltyConfig,
    from_tier: LoyaltyTierEnum,
    to_tier: LoyaltyTierEnum,
) -> GraduationReward | None:
    """Find the definition for ``from_to_to``.

    Without an exact entry, an upward move falls back to the single definition
    that ends in ``_to_<to_tier>`` so a bronze customer jumping straight to gold
    still gets the gold graduation reward. Downward moves only match exactly.
    """

    definitions = config.tier_graduation_rewards
    exact = definitions.get(f"{from_tier.value}_to_{to_tier.value}")
    if exact is not None:
        return exact
    if to_tier.rank <= from_tier.rank:
        return None

    suffix = f"_to_{to_tier.value}"
    candidates = [definition for key, definition in sorted(definitions.items()) if key.endswith(suffix)]
    if len(candidates) == 1:
        return candidates[0]
    return None


@dataclass
class TierChange:
    customer_id: UUID
    from_tier: LoyaltyTierEnum
    to_tier: LoyaltyTierEnum
    reward: Optional[Reward]


class TierEvaluator:
    """Reconcile the stored tier with the visit count and issue graduation rewards."""

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

    async def evaluate(self, customer_id: UUID, *, now: datetime | None = None) -> TierChange | None:
        stmt = select(CustomerStats).where(CustomerStats.customer_id == customer_id).with_for_update()
        stats = (await self._db.execute(stmt)).scalar_one_or_none()
        if stats is None:
            raise LoyaltyNotFoundError(f"No loyalty stats for customer {customer_id}")
        return await self.apply(stats, now=now)

    async def apply(self, stats: CustomerStats, *, now: datetime | None = None) -> TierChange | None:
        """Evaluate a stats row the caller already holds a lock on."""

        now = now or utcnow()
        config = await self._settings.load()
        current = LoyaltyTierEnum(stats.current_tier)
        target = tier_for_visits(stats.total_visits, config.tier_thresholds)
        if target == current:
            return None

        stats.current_tier = target
        stats.tier_updated_at = now
        stats.updated_at = now
        await self._db.flush()

        get_loyalty_store().record_tier_change(current.value, target.value)
        logger.info(
            "Customer tier changed",
            customer_id=str(stats.customer_id),
            from_tier=current.value,
            to_tier=target.value,
            total_visits=stats.total_visits,
        )

        reward: Reward | None = None
        definition = resolve_graduation(config, current, target)
        if definition is not None:
            value = (
                FixedAmount(definition.reward_value)
                if definition.reward_type == "fixed"
                else PercentOff(int(definition.reward_value.to_integral_value(rounding=ROUND_HALF_UP)))
            )
            reward = await self._rewards.issue(
                stats.customer_id,
                TierUpgradeGrant(from_tier=current, to_tier=target),
                value,
                title=_render(definition.reward_title, target),
                description=_render(definition.reward_description, target),
                now=now,
                config=config,
            )

        return TierChange(customer_id=stats.customer_id, from_tier=current, to_tier=target, reward=reward)


def _render(template: str | None, tier: LoyaltyTierEnum) -> str | None:
    if template is None:
        return None
    return template.replace("{tier}", tier.value.capitalize())


__all__ = ["TierChange", "TierEvaluator", "next_tier_for", "resolve_graduation", "tier_for_visits"]
