"""Session-aware dependencies resolving the caller and their roles."""

from __future__ import annotations

from typing import Callable
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.db.session import get_session
from tablerewards_api.models.customer_profile import CustomerProfile, CustomerRoleEnum
from tablerewards_api.services.access import Caller


async def require_caller(
    session_user: str | None = Header(None, alias="X-Session-User"),
    db: AsyncSession = Depends(get_session),
) -> Caller:
    """Resolve the authenticated profile from forwarded session headers."""

    if not session_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing session user context",
        )

    try:
        user_id = UUID(session_user)
    except ValueError as error:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid session user identifier",
        ) from error

    profile = await db.get(CustomerProfile, user_id)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session user not found",
        )

    return Caller.from_profile(profile)


def require_roles(*roles: CustomerRoleEnum) -> Callable:
    """Dependency factory admitting callers holding any of ``roles``."""

    async def _dependency(caller: Caller = Depends(require_caller)) -> Caller:
        if not caller.has_role(*roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role",
            )
        return caller

    return _dependency


require_staff = require_roles(CustomerRoleEnum.STAFF, CustomerRoleEnum.ADMIN)
require_admin = require_roles(CustomerRoleEnum.ADMIN)
