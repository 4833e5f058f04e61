"""Account creation hook: profile, default role and referral resolution."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from loguru import logger
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.models.customer_profile import CustomerProfile, CustomerRole, CustomerRoleEnum
from tablerewards_api.models.loyalty import Referral, Reward
from tablerewards_api.services.errors import LoyaltyConflictError, LoyaltyValidationError
from tablerewards_api.services.loyalty.referrals import (
    ReferralCodeGenerator,
    ReferralResolver,
    normalize_referral_code,
)
from tablerewards_api.services.loyalty.rewards import utcnow
from tablerewards_api.services.loyalty.settings_store import LoyaltySettingsStore


_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_PATTERN = re.compile(r"^[0-9+\-\s()]+$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass
class AccountRegistration:
    user_id: UUID
    email: str
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    date_of_birth: Optional[date] = None
    referred_by_code: Optional[str] = None


@dataclass
class AccountCreationResult:
    profile: CustomerProfile
    referral: Optional[Referral]
    referrer_reward: Optional[Reward]


def validate_registration(registration: AccountRegistration, *, today: date | None = None) -> AccountRegistration:
    """Return a cleaned copy of ``registration`` or raise LoyaltyValidationError."""

    today = today or utcnow().date()
    email = normalize_email(registration.email or "")
    if not email or len(email) > 255 or not _EMAIL_PATTERN.match(email):
        raise LoyaltyValidationError("Invalid email address")

    full_name = (registration.full_name or "").strip() or email
    if len(full_name) < 2 or len(full_name) > 100:
        raise LoyaltyValidationError("Name must be between 2 and 100 characters")

    phone = (registration.phone_number or "").strip() or None
    if phone is not None and (len(phone) < 7 or len(phone) > 20 or not _PHONE_PATTERN.match(phone)):
        raise LoyaltyValidationError("Invalid phone number")

    if registration.date_of_birth is not None and registration.date_of_birth > today:
        raise LoyaltyValidationError("Date of birth cannot be in the future")

    code = normalize_referral_code(registration.referred_by_code)
    if code is not None and len(code) > 20:
        raise LoyaltyValidationError("Referral code is too long")

    return AccountRegistration(
        user_id=registration.user_id,
        email=email,
        full_name=full_name,
        phone_number=phone,
        date_of_birth=registration.date_of_birth,
        referred_by_code=code,
    )


class AccountService:
    def __init__(self, session: AsyncSession) -> None:
        self._db = session
        self._settings = LoyaltySettingsStore(session)

    async def create_account(
        self,
        registration: AccountRegistration,
        *,
        now: datetime | None = None,
    ) -> AccountCreationResult:
        """Create profile + customer role and credit any referrer, all or nothing."""

        cleaned = validate_registration(registration)
        duplicate = await self._db.execute(
            select(CustomerProfile.id).where(
                or_(
                    CustomerProfile.id == cleaned.user_id,
                    func.lower(CustomerProfile.email) == cleaned.email,
                )
            )
        )
        if duplicate.first() is not None:
            raise LoyaltyConflictError("An account already exists for this user")

        profile = CustomerProfile(
            id=cleaned.user_id,
            email=cleaned.email,
            full_name=cleaned.full_name,
            phone_number=cleaned.phone_number,
            date_of_birth=cleaned.date_of_birth,
            referral_code=await ReferralCodeGenerator(self._db).generate(),
            referred_by_code=cleaned.referred_by_code,
        )
        profile.roles.append(CustomerRole(role=CustomerRoleEnum.CUSTOMER))
        self._db.add(profile)
        try:
            await self._db.flush()
        except IntegrityError as exc:
            raise LoyaltyConflictError("An account already exists for this user") from exc

        resolved = await ReferralResolver(self._db, settings_store=self._settings).resolve(
            profile, cleaned.referred_by_code, now=now
        )

        logger.info(
            "Created customer account",
            customer_id=str(profile.id),
            referred=resolved is not None,
        )
        return AccountCreationResult(
            profile=profile,
            referral=resolved[0] if resolved else None,
            referrer_reward=resolved[1] if resolved else None,
        )

    async def get_profile(self, customer_id: UUID) -> CustomerProfile | None:
        return await self._db.get(CustomerProfile, customer_id)


__all__ = [
    "AccountCreationResult",
    "AccountRegistration",
    "AccountService",
    "normalize_email",
    "validate_registration",
]
