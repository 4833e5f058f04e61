"""Reward quoting, staff redemption and the birthday sweep trigger."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.api.dependencies.session import require_admin, require_caller, require_staff
from tablerewards_api.api.errors import DOMAIN_ERRORS, to_http_exception
from tablerewards_api.db.session import get_session
from tablerewards_api.jobs.loyalty.birthdays import local_today
from tablerewards_api.models.loyalty import Reward
from tablerewards_api.schemas.loyalty import RewardResponse
from tablerewards_api.services.access import Caller
from tablerewards_api.services.loyalty import BirthdayRewardService, RewardApplicationEngine, RewardService


router = APIRouter(prefix="/rewards", tags=["rewards"])


class RewardQuoteRequest(BaseModel):
    rewardId: UUID
    subtotal: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)


class RewardQuoteResponse(BaseModel):
    rewardId: UUID
    subtotal: float
    discount: float
    total: float
    error: Optional[str]
    message: Optional[str]


class BirthdayRunRequest(BaseModel):
    day: Optional[date] = Field(None, description="Defaults to today in the configured timezone")


class BirthdayRunResponse(BaseModel):
    day: date
    enabled: bool
    issued: int
    skipped: int


@router.post("/quote", response_model=RewardQuoteResponse)
async def quote_reward(
    payload: RewardQuoteRequest,
    caller: Caller = Depends(require_caller),
    db: AsyncSession = Depends(get_session),
) -> RewardQuoteResponse:
    """Preview the discount a reward would give; customers can only quote their own rewards."""

    owner = None if caller.is_staff else caller.profile_id
    try:
        quote = await RewardApplicationEngine(db).quote(payload.rewardId, payload.subtotal, customer_id=owner)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc

    return RewardQuoteResponse(
        rewardId=payload.rewardId,
        subtotal=float(payload.subtotal),
        discount=float(quote.discount),
        total=float(payload.subtotal - quote.discount),
        error=quote.error.value if quote.error else None,
        message=quote.message,
    )


@router.post("/{reward_id}/redeem", response_model=RewardResponse)
async def redeem_reward(
    reward_id: UUID,
    staff: Caller = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
) -> RewardResponse:
    """Mark a reward as used at the counter."""

    try:
        won = await RewardService(db).redeem(reward_id, staff_id=staff.profile_id)
        if not won:
            await db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Reward is not available or has expired")
        await db.commit()
        reward = await db.get(Reward, reward_id, populate_existing=True)
    except HTTPException:
        raise
    except Exception as exc:
        logger.error("Reward redemption failed", reward_id=str(reward_id), error=str(exc))
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to redeem reward",
        ) from exc

    return RewardResponse.from_model(reward)


@router.post("/birthdays/run", response_model=BirthdayRunResponse)
async def run_birthday_sweep(
    payload: BirthdayRunRequest,
    _: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> BirthdayRunResponse:
    day = payload.day or local_today()
    try:
        result = await BirthdayRewardService(db).issue_for_date(day)
        await db.commit()
    except Exception as exc:
        logger.error("Birthday sweep failed", day=day.isoformat(), error=str(exc))
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to run birthday sweep",
        ) from exc

    return BirthdayRunResponse(day=day, enabled=result.enabled, issued=len(result.issued), skipped=result.skipped)
