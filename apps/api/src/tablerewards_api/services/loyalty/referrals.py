"""Referral code generation and signup-time referral resolution."""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.core.settings import settings
from tablerewards_api.models.customer_profile import CustomerProfile
from tablerewards_api.models.loyalty import Referral, Reward
from tablerewards_api.observability.loyalty import get_loyalty_store
from tablerewards_api.services.errors import LoyaltyConflictError
from tablerewards_api.services.loyalty.rewards import FixedAmount, ReferralGrant, RewardService
from tablerewards_api.services.loyalty.settings_store import LoyaltySettingsStore


def normalize_referral_code(code: str | None) -> str | None:
    if code is None:
        return None
    cleaned = code.strip().upper()
    return cleaned or None


class ReferralCodeGenerator:
    """Short upper-case codes, unique across customer profiles."""

    def __init__(self, session: AsyncSession, *, length: int | None = None, max_attempts: int | None = None) -> None:
        self._db = session
        self._length = length or settings.referral_code_length
        self._max_attempts = max_attempts or settings.referral_code_max_attempts

    async def generate(self) -> str:
        for _ in range(self._max_attempts):
            candidate = uuid4().hex[: self._length].upper()
            stmt = select(CustomerProfile.id).where(CustomerProfile.referral_code == candidate)
            if (await self._db.execute(stmt)).scalar_one_or_none() is None:
                return candidate
            logger.debug("Referral code collision", attempts=self._max_attempts)
        raise LoyaltyConflictError("Unable to allocate a unique referral code")


class ReferralResolver:
    """Credit the referrer named by a signup's referral code.

    An unknown code is not an error: the signup proceeds exactly as if no code
    had been given.
    """

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

    async def resolve(
        self,
        new_customer: CustomerProfile,
        code: str | None,
        *,
        now: datetime | None = None,
    ) -> tuple[Referral, Reward] | None:
        store = get_loyalty_store()
        code = normalize_referral_code(code)
        if code is None:
            return None

        stmt = select(CustomerProfile).where(CustomerProfile.referral_code == code)
        referrer = (await self._db.execute(stmt)).scalar_one_or_none()
        if referrer is None or referrer.id == new_customer.id:
            store.record_referral_event("unmatched")
            logger.info("Referral code did not match a customer", referred_id=str(new_customer.id), code=code)
            return None

        referral = Referral(
            referrer_id=referrer.id,
            referred_id=new_customer.id,
            referral_code=code,
            reward_granted=True,
        )
        self._db.add(referral)
        await self._db.flush()

        config = await self._settings.load()
        amount = config.referral_reward_value
        reward = await self._rewards.issue(
            referrer.id,
            ReferralGrant(referral_id=referral.id, referred_customer_id=new_customer.id),
            FixedAmount(amount),
            title="Referral Bonus!",
            description=f"Thank you for referring a new customer! Enjoy ${amount:.2f} off your next order.",
            now=now,
            config=config,
        )

        store.record_referral_event("converted")
        logger.info(
            "Referral resolved",
            referrer_id=str(referrer.id),
            referred_id=str(new_customer.id),
            reward_id=str(reward.id),
        )
        return referral, reward


__all__ = ["ReferralCodeGenerator", "ReferralResolver", "normalize_referral_code"]
