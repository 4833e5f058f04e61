"""Account creation hook and caller profile."""

from __future__ import annotations

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.api.dependencies.security import require_internal_api_key
from tablerewards_api.api.dependencies.session import require_caller
from tablerewards_api.api.errors import DOMAIN_ERRORS, to_http_exception
from tablerewards_api.db.session import get_session
from tablerewards_api.models.customer_profile import CustomerProfile
from tablerewards_api.services.access import Caller
from tablerewards_api.services.accounts import AccountRegistration, AccountService


router = APIRouter(prefix="/accounts", tags=["accounts"])


class AccountCreateRequest(BaseModel):
    userId: UUID = Field(..., description="Identifier issued by the auth provider")
    email: str = Field(..., max_length=255)
    fullName: Optional[str] = Field(None, max_length=100)
    phoneNumber: Optional[str] = Field(None, max_length=20)
    dateOfBirth: Optional[date] = None
    referredByCode: Optional[str] = Field(None, max_length=20, description="Referral code entered at signup")


class AccountResponse(BaseModel):
    id: UUID
    email: str
    fullName: str
    phoneNumber: Optional[str]
    dateOfBirth: Optional[date]
    referralCode: str
    referredByCode: Optional[str]
    roles: List[str]


class AccountCreateResponse(AccountResponse):
    referrerId: Optional[UUID] = None


def _account_response(profile: CustomerProfile) -> dict:
    return {
        "id": profile.id,
        "email": profile.email,
        "fullName": profile.full_name,
        "phoneNumber": profile.phone_number,
        "dateOfBirth": profile.date_of_birth,
        "referralCode": profile.referral_code,
        "referredByCode": profile.referred_by_code,
        "roles": sorted(role.value for role in profile.role_names),
    }


@router.post(
    "",
    response_model=AccountCreateResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_internal_api_key)],
)
async def create_account(
    payload: AccountCreateRequest,
    db: AsyncSession = Depends(get_session),
) -> AccountCreateResponse:
    """Called by the auth provider once per new user."""

    registration = AccountRegistration(
        user_id=payload.userId,
        email=payload.email,
        full_name=payload.fullName,
        phone_number=payload.phoneNumber,
        date_of_birth=payload.dateOfBirth,
        referred_by_code=payload.referredByCode,
    )
    try:
        result = await AccountService(db).create_account(registration)
        await db.commit()
    except DOMAIN_ERRORS as exc:
        await db.rollback()
        raise to_http_exception(exc) from exc
    except Exception as exc:
        logger.error("Account creation failed", user_id=str(payload.userId), error=str(exc))
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create account",
        ) from exc

    return AccountCreateResponse(
        **_account_response(result.profile),
        referrerId=result.referral.referrer_id if result.referral else None,
    )


@router.get("/me", response_model=AccountResponse)
async def read_own_account(
    caller: Caller = Depends(require_caller),
    db: AsyncSession = Depends(get_session),
) -> AccountResponse:
    profile = await AccountService(db).get_profile(caller.profile_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    return AccountResponse(**_account_response(profile))
