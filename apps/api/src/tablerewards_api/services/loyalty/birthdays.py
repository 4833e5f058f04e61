"""Annual birthday rewards."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime
from typing import List
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.models.customer_profile import CustomerProfile
from tablerewards_api.models.loyalty import Reward, RewardKindEnum
from tablerewards_api.services.loyalty.rewards import BirthdayGrant, FixedAmount, RewardService, utcnow
from tablerewards_api.services.loyalty.settings_store import LoyaltySettingsStore


def celebrates_on(date_of_birth: date, day: date) -> bool:
    """Feb 29 birthdays are celebrated on Feb 28 in non-leap years."""

    if (date_of_birth.month, date_of_birth.day) == (day.month, day.day):
        return True
    return (
        date_of_birth.month == 2
        and date_of_birth.day == 29
        and not calendar.isleap(day.year)
        and (day.month, day.day) == (2, 28)
    )


@dataclass
class BirthdaySweepResult:
    day: date
    enabled: bool
    issued: List[UUID]
    skipped: int


class BirthdayRewardService:
    def __init__(self, session: AsyncSession, *, settings_store: LoyaltySettingsStore | None = None) -> None:
        self._db = session
        self._settings = settings_store or LoyaltySettingsStore(session)
        self._rewards = RewardService(session, settings_store=self._settings)

    async def issue_for_date(self, day: date, *, now: datetime | None = None) -> BirthdaySweepResult:
        now = now or utcnow()
        config = await self._settings.load()
        if not config.birthday_rewards_enabled:
            logger.info("Birthday rewards disabled", day=day.isoformat())
            return BirthdaySweepResult(day=day, enabled=False, issued=[], skipped=0)

        profiles = (
            await self._db.execute(select(CustomerProfile).where(CustomerProfile.date_of_birth.is_not(None)))
        ).scalars().all()
        celebrants = [profile for profile in profiles if celebrates_on(profile.date_of_birth, day)]

        issued: List[UUID] = []
        skipped = 0
        amount = config.birthday_reward_value
        for profile in celebrants:
            if await self._already_granted(profile.id, day.year):
                skipped += 1
                continue
            try:
                async with self._db.begin_nested():
                    await self._rewards.issue(
                        profile.id,
                        BirthdayGrant(year=day.year),
                        FixedAmount(amount),
                        title="Happy Birthday!",
                        description=f"Happy birthday from all of us! Enjoy ${amount:.2f} off your next order.",
                        now=now,
                        config=config,
                    )
            except IntegrityError:
                skipped += 1
                continue
            issued.append(profile.id)

        logger.info(
            "Birthday reward sweep finished",
            day=day.isoformat(),
            celebrants=len(celebrants),
            issued=len(issued),
            skipped=skipped,
        )
        return BirthdaySweepResult(day=day, enabled=True, issued=issued, skipped=skipped)

    async def _already_granted(self, customer_id: UUID, year: int) -> bool:
        stmt = select(Reward.id).where(
            Reward.customer_id == customer_id,
            Reward.kind == RewardKindEnum.BIRTHDAY,
            Reward.birthday_year == year,
        )
        return (await self._db.execute(stmt.limit(1))).scalar_one_or_none() is not None


__all__ = ["BirthdayRewardService", "BirthdaySweepResult", "celebrates_on"]
