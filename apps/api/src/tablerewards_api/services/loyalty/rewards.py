"""Reward issuance, discount quoting and compare-and-swap claiming."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import ClassVar, Optional, Sequence, Union
from uuid import UUID

from loguru import logger
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.models.loyalty import LoyaltyTierEnum, Reward, RewardKindEnum, RewardStatusEnum
from tablerewards_api.observability.loyalty import get_loyalty_store
from tablerewards_api.services.errors import LoyaltyValidationError
from tablerewards_api.services.loyalty.settings_store import LoyaltyConfig, LoyaltySettingsStore


MONEY = Decimal("0.01")
ZERO = Decimal("0.00")

UNAVAILABLE_MESSAGE = "Reward is not available or has expired"
INVALID_CONFIGURATION_MESSAGE = "Invalid reward configuration"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(MONEY, rounding=ROUND_HALF_UP)


# Reward values: a reward carries exactly one of these.


@dataclass(frozen=True)
class FixedAmount:
    amount: Decimal


@dataclass(frozen=True)
class PercentOff:
    percentage: int


RewardValue = Union[FixedAmount, PercentOff]


# Grants: why the reward was issued, with the data that keeps issuance idempotent.


@dataclass(frozen=True)
class MilestoneGrant:
    kind: ClassVar[RewardKindEnum] = RewardKindEnum.MILESTONE
    visits: int


@dataclass(frozen=True)
class TierUpgradeGrant:
    kind: ClassVar[RewardKindEnum] = RewardKindEnum.TIER_UPGRADE
    from_tier: LoyaltyTierEnum
    to_tier: LoyaltyTierEnum


@dataclass(frozen=True)
class ReferralGrant:
    kind: ClassVar[RewardKindEnum] = RewardKindEnum.REFERRAL
    referral_id: UUID
    referred_customer_id: UUID


@dataclass(frozen=True)
class BirthdayGrant:
    kind: ClassVar[RewardKindEnum] = RewardKindEnum.BIRTHDAY
    year: int


RewardGrant = Union[MilestoneGrant, TierUpgradeGrant, ReferralGrant, BirthdayGrant]


class QuoteError(str, Enum):
    UNAVAILABLE = "unavailable"
    MINIMUM_NOT_MET = "minimum_not_met"
    INVALID_CONFIGURATION = "invalid_configuration"


@dataclass(frozen=True)
class DiscountQuote:
    """Outcome of pricing a reward against a subtotal. Never raises for business failures."""

    discount: Decimal
    error: Optional[QuoteError] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def compute_discount(
    *,
    subtotal: Decimal,
    reward_value: Decimal | None,
    discount_percentage: int | None,
    minimum_order_value: Decimal | None = None,
) -> DiscountQuote:
    """Price a redeemable reward. The result always satisfies ``0 <= discount <= subtotal``."""

    subtotal = to_money(subtotal)
    if subtotal < 0:
        raise LoyaltyValidationError("Order subtotal cannot be negative")

    minimum = to_money(minimum_order_value or 0)
    if subtotal < minimum:
        return DiscountQuote(ZERO, QuoteError.MINIMUM_NOT_MET, f"Minimum order value of ${minimum:.2f} required")

    if reward_value is not None:
        raw = min(to_money(reward_value), subtotal)
    elif discount_percentage is not None:
        raw = (subtotal * Decimal(discount_percentage) / Decimal(100)).quantize(MONEY, rounding=ROUND_HALF_UP)
    else:
        return DiscountQuote(ZERO, QuoteError.INVALID_CONFIGURATION, INVALID_CONFIGURATION_MESSAGE)

    return DiscountQuote(max(ZERO, min(raw, subtotal)))


def is_redeemable(reward: Reward, now: datetime) -> bool:
    if reward.status != RewardStatusEnum.AVAILABLE:
        return False
    expires_at = ensure_aware(reward.expiration_date)
    return expires_at is None or expires_at > now


class RewardApplicationEngine:
    """Side-effect-free discount quotes for a stored reward."""

    def __init__(self, session: AsyncSession) -> None:
        self._db = session

    async def quote(
        self,
        reward_id: UUID,
        subtotal: Decimal,
        *,
        customer_id: UUID | None = None,
        now: datetime | None = None,
    ) -> DiscountQuote:
        now = now or utcnow()
        reward = await self._db.get(Reward, reward_id)
        if reward is None or not is_redeemable(reward, now):
            return DiscountQuote(ZERO, QuoteError.UNAVAILABLE, UNAVAILABLE_MESSAGE)
        if customer_id is not None and reward.customer_id != customer_id:
            return DiscountQuote(ZERO, QuoteError.UNAVAILABLE, UNAVAILABLE_MESSAGE)

        return compute_discount(
            subtotal=subtotal,
            reward_value=reward.reward_value,
            discount_percentage=reward.discount_percentage,
            minimum_order_value=reward.minimum_order_value,
        )


class RewardService:
    """Issue rewards and move them from ``available`` to ``claimed`` exactly once."""

    def __init__(self, session: AsyncSession, *, settings_store: LoyaltySettingsStore | None = None) -> None:
        self._db = session
        self._settings = settings_store or LoyaltySettingsStore(session)

    async def issue(
        self,
        customer_id: UUID,
        grant: RewardGrant,
        value: RewardValue,
        *,
        title: str,
        description: str | None = None,
        now: datetime | None = None,
        config: LoyaltyConfig | None = None,
    ) -> Reward:
        now = now or utcnow()
        config = config or await self._settings.load()
        expiration = (
            now + timedelta(days=config.reward_expiration_days)
            if config.reward_expiration_days
            else None
        )

        reward = Reward(
            customer_id=customer_id,
            kind=grant.kind,
            status=RewardStatusEnum.AVAILABLE,
            title=title,
            description=description,
            applicable_to="all",
            minimum_order_value=ZERO,
            expiration_date=expiration,
            unlocked_at=now,
        )
        if isinstance(value, FixedAmount):
            reward.reward_value = to_money(value.amount)
        else:
            reward.discount_percentage = value.percentage

        if isinstance(grant, MilestoneGrant):
            reward.milestone_visits = grant.visits
        elif isinstance(grant, TierUpgradeGrant):
            reward.from_tier = grant.from_tier.value
            reward.to_tier = grant.to_tier.value
        elif isinstance(grant, ReferralGrant):
            reward.referral_id = grant.referral_id
        elif isinstance(grant, BirthdayGrant):
            reward.birthday_year = grant.year

        self._db.add(reward)
        await self._db.flush()

        get_loyalty_store().record_reward_issued(grant.kind.value)
        logger.info(
            "Issued loyalty reward",
            customer_id=str(customer_id),
            reward_id=str(reward.id),
            kind=grant.kind.value,
            reward_value=str(reward.reward_value) if reward.reward_value is not None else None,
            discount_percentage=reward.discount_percentage,
        )
        return reward

    async def claim_for_order(self, reward_id: UUID, order_id: UUID, *, now: datetime | None = None) -> bool:
        """Attach the reward to an order. Returns False when another caller won the claim."""

        won = await self._compare_and_claim(
            reward_id,
            now=now or utcnow(),
            values={"applied_to_order_id": order_id},
        )
        get_loyalty_store().record_claim(won=won, channel="order")
        logger.info("Reward claim for order", reward_id=str(reward_id), order_id=str(order_id), won=won)
        return won

    async def redeem(
        self,
        reward_id: UUID,
        *,
        staff_id: UUID,
        now: datetime | None = None,
    ) -> bool:
        """Staff-confirmed redemption at the counter."""

        won = await self._compare_and_claim(
            reward_id,
            now=now or utcnow(),
            values={"claimed_by_staff_id": staff_id},
        )
        get_loyalty_store().record_claim(won=won, channel="staff")
        logger.info("Reward redeemed by staff", reward_id=str(reward_id), staff_id=str(staff_id), won=won)
        return won

    async def list_available(self, customer_id: UUID, *, now: datetime | None = None) -> Sequence[Reward]:
        """Redeemable rewards, best value first (fixed by amount, then percentage)."""

        now = now or utcnow()
        stmt = (
            select(Reward)
            .where(
                Reward.customer_id == customer_id,
                Reward.status == RewardStatusEnum.AVAILABLE,
                or_(Reward.expiration_date.is_(None), Reward.expiration_date > now),
            )
            .order_by(
                Reward.reward_value.desc().nulls_last(),
                Reward.discount_percentage.desc().nulls_last(),
                Reward.unlocked_at.asc(),
            )
        )
        result = await self._db.execute(stmt)
        return result.scalars().all()

    async def list_for_customer(
        self,
        customer_id: UUID,
        *,
        status: RewardStatusEnum | None = None,
    ) -> Sequence[Reward]:
        stmt = select(Reward).where(Reward.customer_id == customer_id)
        if status is not None:
            stmt = stmt.where(Reward.status == status)
        stmt = stmt.order_by(Reward.unlocked_at.desc())
        result = await self._db.execute(stmt)
        return result.scalars().all()

    async def _compare_and_claim(self, reward_id: UUID, *, now: datetime, values: dict) -> bool:
        stmt = (
            update(Reward)
            .where(
                Reward.id == reward_id,
                Reward.status == RewardStatusEnum.AVAILABLE,
                or_(Reward.expiration_date.is_(None), Reward.expiration_date > now),
            )
            .values(status=RewardStatusEnum.CLAIMED, claimed_at=now, **values)
            .execution_options(synchronize_session="fetch")
        )
        result = await self._db.execute(stmt)
        return result.rowcount == 1


__all__ = [
    "BirthdayGrant",
    "DiscountQuote",
    "FixedAmount",
    "MilestoneGrant",
    "PercentOff",
    "QuoteError",
    "ReferralGrant",
    "RewardApplicationEngine",
    "RewardGrant",
    "RewardService",
    "RewardValue",
    "TierUpgradeGrant",
    "compute_discount",
    "ensure_aware",
    "is_redeemable",
    "to_money",
    "utcnow",
]
