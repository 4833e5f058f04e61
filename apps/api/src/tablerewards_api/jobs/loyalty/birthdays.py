"""Daily sweep that issues birthday rewards."""

# meta: job: loyalty-birthdays

from __future__ import annotations

import datetime as dt
from typing import Any, Awaitable, Callable, Dict
from zoneinfo import ZoneInfo

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.core.settings import settings
from tablerewards_api.services.loyalty import BirthdayRewardService

SessionFactory = Callable[[], AsyncSession] | Callable[[], Awaitable[AsyncSession]]


def local_today(timezone_name: str | None = None) -> dt.date:
    return dt.datetime.now(ZoneInfo(timezone_name or settings.birthday_rewards_timezone)).date()


async def run_birthday_rewards(
    *,
    session_factory: SessionFactory,
    day: dt.date | None = None,
) -> Dict[str, Any]:
    """Issue birthday rewards for ``day`` (default: today in the configured timezone)."""

    maybe_session = session_factory()
    session: AsyncSession
    if isinstance(maybe_session, AsyncSession):
        session = maybe_session
    else:
        session = await maybe_session

    target_day = day or local_today()
    async with session as managed_session:
        result = await BirthdayRewardService(managed_session).issue_for_date(target_day)
        await managed_session.commit()

    summary = {
        "day": target_day.isoformat(),
        "enabled": result.enabled,
        "issued": len(result.issued),
        "skipped": result.skipped,
    }
    logger.bind(summary=summary).info("Birthday reward job completed")
    return summary
