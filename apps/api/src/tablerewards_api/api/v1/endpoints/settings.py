"""Admin configuration of loyalty tunables."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.api.dependencies.session import require_admin
from tablerewards_api.api.errors import DOMAIN_ERRORS, to_http_exception
from tablerewards_api.db.session import get_session
from tablerewards_api.services.access import Caller
from tablerewards_api.services.loyalty import LoyaltySettingsStore, SettingEntry, ensure_aware


router = APIRouter(prefix="/settings", tags=["settings"], dependencies=[Depends(require_admin)])


class SettingResponse(BaseModel):
    key: str
    value: Any
    description: str
    isDefault: bool
    updatedAt: Optional[datetime]
    updatedById: Optional[UUID]


class SettingUpdateRequest(BaseModel):
    value: Any = Field(..., description="JSON value validated against the setting's schema")
    description: Optional[str] = Field(None, max_length=500)


def _setting_response(entry: SettingEntry) -> SettingResponse:
    return SettingResponse(
        key=entry.key,
        value=entry.value,
        description=entry.description,
        isDefault=entry.is_default,
        updatedAt=ensure_aware(entry.updated_at),
        updatedById=entry.updated_by_id,
    )


@router.get("", response_model=List[SettingResponse])
async def list_settings(db: AsyncSession = Depends(get_session)) -> List[SettingResponse]:
    entries = await LoyaltySettingsStore(db).list_entries()
    return [_setting_response(entry) for entry in entries]


@router.get("/{key}", response_model=SettingResponse)
async def read_setting(key: str, db: AsyncSession = Depends(get_session)) -> SettingResponse:
    try:
        entry = await LoyaltySettingsStore(db).get_entry(key)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return _setting_response(entry)


@router.put("/{key}", response_model=SettingResponse)
async def update_setting(
    key: str,
    payload: SettingUpdateRequest,
    admin: Caller = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> SettingResponse:
    try:
        entry = await LoyaltySettingsStore(db).upsert(
            key,
            payload.value,
            updated_by_id=admin.profile_id,
            description=payload.description,
        )
        await db.commit()
    except DOMAIN_ERRORS as exc:
        await db.rollback()
        raise to_http_exception(exc) from exc
    except Exception as exc:
        logger.error("Setting update failed", setting_key=key, error=str(exc))
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update setting",
        ) from exc
    return _setting_response(entry)


@router.delete("/{key}", response_model=SettingResponse)
async def reset_setting(key: str, db: AsyncSession = Depends(get_session)) -> SettingResponse:
    """Drop the stored override so the key reverts to its default."""

    try:
        entry = await LoyaltySettingsStore(db).reset(key)
        await db.commit()
    except DOMAIN_ERRORS as exc:
        await db.rollback()
        raise to_http_exception(exc) from exc
    return _setting_response(entry)
