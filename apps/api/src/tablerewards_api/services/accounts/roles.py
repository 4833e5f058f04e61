"""Role administration and the admin invitation workflow."""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from loguru import logger
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.core.settings import settings
from tablerewards_api.models.customer_profile import CustomerProfile, CustomerRole, CustomerRoleEnum, RoleInvitation
from tablerewards_api.services.access import Caller
from tablerewards_api.services.accounts.account_service import normalize_email
from tablerewards_api.services.errors import (
    AuthorizationError,
    LoyaltyConflictError,
    LoyaltyNotFoundError,
    LoyaltyValidationError,
)
from tablerewards_api.services.loyalty.rewards import ensure_aware, utcnow


def hash_invitation_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass
class IssuedInvitation:
    invitation: RoleInvitation
    token: str


class RoleService:
    def __init__(self, session: AsyncSession) -> None:
        self._db = session

    async def grant_role(self, actor: Caller, email: str, role: CustomerRoleEnum) -> tuple[CustomerProfile, bool]:
        """Add ``role`` to the profile registered under ``email``; no-op if already held."""

        actor.require_role(CustomerRoleEnum.ADMIN)
        profile = await self.profile_by_email(email)
        created = await self._add_role(profile, role, granted_by_id=actor.profile_id)
        logger.info(
            "Role granted",
            customer_id=str(profile.id),
            role=role.value,
            granted_by=str(actor.profile_id),
            created=created,
        )
        return profile, created

    async def revoke_role(self, actor: Caller, email: str, role: CustomerRoleEnum) -> bool:
        actor.require_role(CustomerRoleEnum.ADMIN)
        profile = await self.profile_by_email(email)
        if profile.id == actor.profile_id and role == CustomerRoleEnum.ADMIN:
            raise LoyaltyValidationError("Admins cannot revoke their own admin role")

        result = await self._db.execute(
            delete(CustomerRole).where(CustomerRole.profile_id == profile.id, CustomerRole.role == role)
        )
        await self._db.flush()
        await self._db.refresh(profile, attribute_names=["roles"])
        removed = result.rowcount > 0
        logger.info("Role revoked", customer_id=str(profile.id), role=role.value, removed=removed)
        return removed

    async def create_invitation(
        self,
        actor: Caller,
        email: str,
        role: CustomerRoleEnum,
        *,
        ttl_hours: int | None = None,
        now: datetime | None = None,
    ) -> IssuedInvitation:
        """Issue a single-use token. Only its digest is stored."""

        actor.require_role(CustomerRoleEnum.ADMIN)
        now = now or utcnow()
        token = secrets.token_urlsafe(32)
        invitation = RoleInvitation(
            email=normalize_email(email),
            role=role,
            token_digest=hash_invitation_token(token),
            invited_by_id=actor.profile_id,
            expires_at=now + timedelta(hours=ttl_hours or settings.role_invitation_ttl_hours),
        )
        self._db.add(invitation)
        await self._db.flush()
        logger.info(
            "Role invitation issued",
            invitation_id=str(invitation.id),
            role=role.value,
            invited_by=str(actor.profile_id),
        )
        return IssuedInvitation(invitation=invitation, token=token)

    async def redeem_invitation(self, caller: Caller, token: str, *, now: datetime | None = None) -> CustomerProfile:
        now = now or utcnow()
        stmt = select(RoleInvitation).where(RoleInvitation.token_digest == hash_invitation_token(token))
        invitation = (await self._db.execute(stmt)).scalar_one_or_none()
        if invitation is None:
            raise LoyaltyNotFoundError("Invitation not found")
        if invitation.redeemed_at is not None:
            raise LoyaltyConflictError("Invitation already used")
        if ensure_aware(invitation.expires_at) <= now:
            raise LoyaltyValidationError("Invitation has expired")
        if normalize_email(caller.email) != invitation.email:
            raise AuthorizationError("Invitation was issued to a different email")

        claimed = await self._db.execute(
            update(RoleInvitation)
            .where(RoleInvitation.id == invitation.id, RoleInvitation.redeemed_at.is_(None))
            .values(redeemed_at=now, redeemed_by_id=caller.profile_id)
            .execution_options(synchronize_session="fetch")
        )
        if claimed.rowcount != 1:
            raise LoyaltyConflictError("Invitation already used")

        profile = await self._db.get(CustomerProfile, caller.profile_id)
        if profile is None:
            raise LoyaltyNotFoundError("Caller profile not found")
        await self._add_role(profile, CustomerRoleEnum(invitation.role), granted_by_id=invitation.invited_by_id)
        logger.info("Role invitation redeemed", invitation_id=str(invitation.id), customer_id=str(profile.id))
        return profile

    async def profile_by_email(self, email: str) -> CustomerProfile:
        stmt = select(CustomerProfile).where(func.lower(CustomerProfile.email) == normalize_email(email))
        profile = (await self._db.execute(stmt)).scalar_one_or_none()
        if profile is None:
            raise LoyaltyNotFoundError(f"No account registered for {email}")
        return profile

    async def _add_role(self, profile: CustomerProfile, role: CustomerRoleEnum, *, granted_by_id: UUID | None) -> bool:
        if role in profile.role_names:
            return False
        profile.roles.append(CustomerRole(role=role, granted_by_id=granted_by_id))
        await self._db.flush()
        return True


__all__ = ["IssuedInvitation", "RoleService", "hash_invitation_token"]
