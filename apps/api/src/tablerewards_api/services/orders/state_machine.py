"""Kitchen workflow for orders: pending -> preparing -> delivered."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.models.order import Order, OrderStatusEnum
from tablerewards_api.services.loyalty.rewards import utcnow


class OrderStateError(RuntimeError):
    """Base exception for order state machine failures."""


class InvalidOrderTransitionError(OrderStateError):
    """Raised when a state transition violates the configured state machine."""

    def __init__(self, current_status: OrderStatusEnum, requested_status: OrderStatusEnum) -> None:
        message = f"Cannot transition order from {current_status.value} to {requested_status.value}"
        super().__init__(message)
        self.current_status = current_status
        self.requested_status = requested_status


class OrderNotFoundError(OrderStateError):
    """Raised when attempting to mutate a missing order."""


class OrderStateMachine:
    """Delivered orders are final."""

    _ALLOWED_TRANSITIONS: dict[OrderStatusEnum, set[OrderStatusEnum]] = {
        OrderStatusEnum.PENDING: {OrderStatusEnum.PREPARING, OrderStatusEnum.DELIVERED},
        OrderStatusEnum.PREPARING: {OrderStatusEnum.DELIVERED},
        OrderStatusEnum.DELIVERED: set(),
    }

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @classmethod
    def allowed_targets(cls, status: OrderStatusEnum) -> set[OrderStatusEnum]:
        return set(cls._ALLOWED_TRANSITIONS.get(status, set()))

    async def transition(
        self,
        *,
        order_id: UUID,
        target_status: OrderStatusEnum,
        actor_id: UUID | None = None,
        now: datetime | None = None,
    ) -> Order:
        order = await self._get_order(order_id)
        current_status = OrderStatusEnum(order.status)
        if target_status not in self._ALLOWED_TRANSITIONS.get(current_status, set()):
            raise InvalidOrderTransitionError(current_status, target_status)

        order.status = target_status
        if target_status == OrderStatusEnum.DELIVERED:
            order.delivered_at = now or utcnow()
        await self._session.flush()

        logger.info(
            "Order status transitioned",
            order_id=str(order.id),
            from_status=current_status.value,
            to_status=target_status.value,
            actor_id=str(actor_id) if actor_id else None,
        )
        return order

    async def _get_order(self, order_id: UUID) -> Order:
        stmt = select(Order).where(Order.id == order_id).with_for_update()
        result = await self._session.execute(stmt)
        order = result.scalar_one_or_none()
        if not order:
            raise OrderNotFoundError(f"Order {order_id} not found")
        return order


__all__ = [
    "InvalidOrderTransitionError",
    "OrderNotFoundError",
    "OrderStateError",
    "OrderStateMachine",
]
