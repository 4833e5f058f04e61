"""Order placement and kitchen status endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.api.dependencies.session import require_caller, require_staff
from tablerewards_api.api.errors import DOMAIN_ERRORS, to_http_exception
from tablerewards_api.db.session import get_session
from tablerewards_api.models.order import Order, OrderStatusEnum
from tablerewards_api.schemas.loyalty import VisitResultResponse
from tablerewards_api.services.access import Caller
from tablerewards_api.services.loyalty import ensure_aware
from tablerewards_api.services.orders import OrderLine, OrderService, OrderStateMachine


router = APIRouter(prefix="/orders", tags=["orders"])


class OrderItemCreate(BaseModel):
    """Menu item snapshot captured at order time."""
    id: Optional[str] = Field(None, description="Menu item identifier")
    name: str = Field(..., min_length=1, max_length=100)
    quantity: int = Field(..., ge=1)
    price: Decimal = Field(..., gt=0)


class OrderCreate(BaseModel):
    tableNumber: str = Field(..., description="Table the order is served to")
    items: List[OrderItemCreate] = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=500)
    customerId: Optional[UUID] = Field(None, description="Defaults to the caller unless staff places a guest order")
    rewardId: Optional[UUID] = Field(None, description="Reward to redeem against this order")


class OrderResponse(BaseModel):
    id: UUID
    tableNumber: str
    status: str
    items: List[Dict[str, Any]]
    originalAmount: float
    discountAmount: float
    totalAmount: float
    notes: Optional[str]
    customerId: Optional[UUID]
    appliedRewardId: Optional[UUID]
    deliveredAt: Optional[datetime]
    createdAt: Optional[datetime]
    updatedAt: Optional[datetime]


class OrderPlacementResponse(OrderResponse):
    rewardClaimed: bool
    visit: Optional[VisitResultResponse]


class OrderStatusUpdate(BaseModel):
    status: OrderStatusEnum = Field(..., description="New order status")


def _order_payload(order: Order) -> dict:
    return {
        "id": order.id,
        "tableNumber": order.table_number,
        "status": OrderStatusEnum(order.status).value,
        "items": list(order.items or []),
        "originalAmount": float(order.original_amount),
        "discountAmount": float(order.discount_amount),
        "totalAmount": float(order.total_amount),
        "notes": order.notes,
        "customerId": order.customer_id,
        "appliedRewardId": order.applied_reward_id,
        "deliveredAt": ensure_aware(order.delivered_at),
        "createdAt": ensure_aware(order.created_at),
        "updatedAt": ensure_aware(order.updated_at),
    }


@router.post("", response_model=OrderPlacementResponse, status_code=status.HTTP_201_CREATED)
async def place_order(
    payload: OrderCreate,
    caller: Caller = Depends(require_caller),
    db: AsyncSession = Depends(get_session),
) -> OrderPlacementResponse:
    """Place an order, count the visit and claim the reward in one transaction."""

    customer_id = payload.customerId
    if customer_id is None and not caller.is_staff:
        customer_id = caller.profile_id
    if customer_id is not None and not caller.can_act_as(customer_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not permitted for this customer")

    lines = [
        OrderLine(name=item.name, quantity=item.quantity, price=item.price, item_id=item.id)
        for item in payload.items
    ]
    try:
        placement = await OrderService(db).place_order(
            lines=lines,
            table_number=payload.tableNumber,
            customer_id=customer_id,
            notes=payload.notes,
            reward_id=payload.rewardId,
            placed_by_id=caller.profile_id,
        )
        await db.commit()
        await db.refresh(placement.order)
    except DOMAIN_ERRORS as exc:
        await db.rollback()
        raise to_http_exception(exc) from exc
    except Exception as exc:
        logger.error("Order placement failed", table_number=payload.tableNumber, error=str(exc))
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to place order",
        ) from exc

    return OrderPlacementResponse(
        **_order_payload(placement.order),
        rewardClaimed=placement.reward_claimed,
        visit=VisitResultResponse.from_outcome(placement.visit) if placement.visit else None,
    )


@router.get("", response_model=List[OrderResponse])
async def list_orders(
    order_status: Optional[OrderStatusEnum] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _: Caller = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
) -> List[OrderResponse]:
    orders = await OrderService(db).list_orders(status=order_status, limit=limit, offset=offset)
    return [OrderResponse(**_order_payload(order)) for order in orders]


@router.get("/{order_id}", response_model=OrderResponse)
async def read_order(
    order_id: UUID,
    caller: Caller = Depends(require_caller),
    db: AsyncSession = Depends(get_session),
) -> OrderResponse:
    order = await OrderService(db).get_order(order_id)
    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    if not caller.is_staff and order.customer_id != caller.profile_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not permitted for this order")
    return OrderResponse(**_order_payload(order))


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: UUID,
    payload: OrderStatusUpdate,
    staff: Caller = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
) -> OrderResponse:
    try:
        order = await OrderStateMachine(db).transition(
            order_id=order_id,
            target_status=payload.status,
            actor_id=staff.profile_id,
        )
        await db.commit()
        await db.refresh(order)
    except DOMAIN_ERRORS as exc:
        await db.rollback()
        raise to_http_exception(exc) from exc
    except Exception as exc:
        logger.error("Order status update failed", order_id=str(order_id), error=str(exc))
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update order status",
        ) from exc

    return OrderResponse(**_order_payload(order))
