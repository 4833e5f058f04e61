"""Staff visit logging."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.api.dependencies.session import require_staff
from tablerewards_api.api.errors import DOMAIN_ERRORS, to_http_exception
from tablerewards_api.db.session import get_session
from tablerewards_api.schemas.loyalty import VisitResultResponse
from tablerewards_api.services.access import Caller
from tablerewards_api.services.loyalty import VisitRecorder


router = APIRouter(prefix="/visits", tags=["visits"])


class VisitCreateRequest(BaseModel):
    customerId: UUID
    notes: Optional[str] = Field(None, max_length=500)


@router.post("", response_model=VisitResultResponse, status_code=status.HTTP_201_CREATED)
async def log_visit(
    payload: VisitCreateRequest,
    staff: Caller = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
) -> VisitResultResponse:
    """Count one visit for a customer checked in by staff."""

    try:
        outcome = await VisitRecorder(db).record_visit(
            payload.customerId,
            staff_id=staff.profile_id,
            notes=payload.notes,
        )
        await db.commit()
    except DOMAIN_ERRORS as exc:
        await db.rollback()
        raise to_http_exception(exc) from exc
    except Exception as exc:
        logger.error("Visit logging failed", customer_id=str(payload.customerId), error=str(exc))
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to record visit",
        ) from exc

    return VisitResultResponse.from_outcome(outcome)
