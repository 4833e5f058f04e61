"""Role grants and admin invitations."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.api.dependencies.session import require_admin, require_caller
from tablerewards_api.api.errors import DOMAIN_ERRORS, to_http_exception
from tablerewards_api.db.session import get_session
from tablerewards_api.models.customer_profile import CustomerRoleEnum
from tablerewards_api.services.access import Caller
from tablerewards_api.services.accounts import RoleService
from tablerewards_api.services.loyalty import ensure_aware


router = APIRouter(prefix="/roles", tags=["roles"])


class RoleGrantRequest(BaseModel):
    email: str = Field(..., max_length=255)
    role: CustomerRoleEnum


class RoleAssignmentResponse(BaseModel):
    customerId: UUID
    email: str
    roles: List[str]
    changed: bool


class InvitationCreateRequest(BaseModel):
    email: str = Field(..., max_length=255)
    role: CustomerRoleEnum = CustomerRoleEnum.ADMIN
    ttlHours: Optional[int] = Field(None, ge=1, le=24 * 30)


class InvitationResponse(BaseModel):
    id: UUID
    email: str
    role: str
    token: str = Field(..., description="Shown once; only a digest is stored")
    expiresAt: datetime


class InvitationRedeemRequest(BaseModel):
    token: str = Field(..., min_length=1)


async def _run(db: AsyncSession, action):
    try:
        result = await action()
        await db.commit()
        return result
    except DOMAIN_ERRORS as exc:
        await db.rollback()
        raise to_http_exception(exc) from exc
    except Exception as exc:
        logger.error("Role operation failed", error=str(exc))
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Role operation failed",
        ) from exc


@router.post("/grants", response_model=RoleAssignmentResponse)
async def grant_role(
    payload: RoleGrantRequest,
    admin: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> RoleAssignmentResponse:
    profile, created = await _run(db, lambda: RoleService(db).grant_role(admin, payload.email, payload.role))
    return RoleAssignmentResponse(
        customerId=profile.id,
        email=profile.email,
        roles=sorted(role.value for role in profile.role_names),
        changed=created,
    )


@router.delete("/grants/{role}", response_model=RoleAssignmentResponse)
async def revoke_role(
    role: CustomerRoleEnum,
    email: str = Query(..., max_length=255),
    admin: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> RoleAssignmentResponse:
    service = RoleService(db)
    removed = await _run(db, lambda: service.revoke_role(admin, email, role))
    profile = await service.profile_by_email(email)
    return RoleAssignmentResponse(
        customerId=profile.id,
        email=profile.email,
        roles=sorted(role_name.value for role_name in profile.role_names),
        changed=removed,
    )


@router.post("/invitations", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
async def create_invitation(
    payload: InvitationCreateRequest,
    admin: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> InvitationResponse:
    issued = await _run(
        db,
        lambda: RoleService(db).create_invitation(admin, payload.email, payload.role, ttl_hours=payload.ttlHours),
    )
    invitation = issued.invitation
    return InvitationResponse(
        id=invitation.id,
        email=invitation.email,
        role=CustomerRoleEnum(invitation.role).value,
        token=issued.token,
        expiresAt=ensure_aware(invitation.expires_at),
    )


@router.post("/invitations/redeem", response_model=RoleAssignmentResponse)
async def redeem_invitation(
    payload: InvitationRedeemRequest,
    caller: Caller = Depends(require_caller),
    db: AsyncSession = Depends(get_session),
) -> RoleAssignmentResponse:
    profile = await _run(db, lambda: RoleService(db).redeem_invitation(caller, payload.token))
    return RoleAssignmentResponse(
        customerId=profile.id,
        email=profile.email,
        roles=sorted(role.value for role in profile.role_names),
        changed=True,
    )
