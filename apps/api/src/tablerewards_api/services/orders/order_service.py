"""Order placement and the order-to-visit bridge."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.models.customer_profile import CustomerProfile
from tablerewards_api.models.order import Order, OrderStatusEnum
from tablerewards_api.services.errors import LoyaltyValidationError
from tablerewards_api.services.loyalty.rewards import (
    ZERO,
    DiscountQuote,
    RewardApplicationEngine,
    RewardService,
    to_money,
    utcnow,
)
from tablerewards_api.services.loyalty.settings_store import LoyaltySettingsStore
from tablerewards_api.services.loyalty.visits import VisitOutcome, VisitRecorder


MAX_ORDER_TOTAL = Decimal("999999.99")
MAX_NOTES_LENGTH = 500
_TABLE_NUMBER_PATTERN = re.compile(r"^[A-Za-z0-9\-]{1,10}$")


class RewardNotApplicableError(LoyaltyValidationError):
    """Raised when a reward was requested for an order but cannot be applied."""

    def __init__(self, quote: DiscountQuote) -> None:
        super().__init__(quote.message or "Reward cannot be applied")
        self.quote = quote


@dataclass(frozen=True)
class OrderLine:
    name: str
    quantity: int
    price: Decimal
    item_id: Optional[str] = None

    def as_json(self) -> dict:
        return {
            "id": self.item_id,
            "name": self.name,
            "quantity": self.quantity,
            "price": str(to_money(self.price)),
        }


@dataclass
class OrderPlacement:
    order: Order
    visit: Optional[VisitOutcome]
    reward_claimed: bool


def order_subtotal(lines: Sequence[OrderLine]) -> Decimal:
    return to_money(sum((Decimal(line.quantity) * to_money(line.price) for line in lines), ZERO))


def validate_order_input(
    *,
    table_number: str,
    lines: Sequence[OrderLine],
    notes: str | None,
    customer_id: UUID | None,
    reward_id: UUID | None,
) -> str:
    """Reject malformed orders before anything is written; returns the cleaned table number."""

    table = (table_number or "").strip()
    if not _TABLE_NUMBER_PATTERN.match(table):
        raise LoyaltyValidationError("Table number must be 1-10 letters, digits or dashes")
    if not lines:
        raise LoyaltyValidationError("Order must contain at least one item")
    for line in lines:
        if not line.name or not line.name.strip():
            raise LoyaltyValidationError("Item name is required")
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity < 1:
            raise LoyaltyValidationError("Item quantity must be a positive whole number")
        if to_money(line.price) <= 0:
            raise LoyaltyValidationError("Item price must be positive")
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        raise LoyaltyValidationError(f"Notes must be at most {MAX_NOTES_LENGTH} characters")
    if order_subtotal(lines) > MAX_ORDER_TOTAL:
        raise LoyaltyValidationError("Order total exceeds the maximum allowed")
    if reward_id is not None and customer_id is None:
        raise LoyaltyValidationError("Rewards can only be applied to customer orders")
    return table


class OrderService:
    def __init__(self, session: AsyncSession) -> None:
        self._db = session
        self._settings = LoyaltySettingsStore(session)
        self._rewards = RewardService(session, settings_store=self._settings)

    async def place_order(
        self,
        *,
        lines: Sequence[OrderLine],
        table_number: str,
        customer_id: UUID | None = None,
        notes: str | None = None,
        reward_id: UUID | None = None,
        placed_by_id: UUID | None = None,
        now: datetime | None = None,
    ) -> OrderPlacement:
        now = now or utcnow()
        table = validate_order_input(
            table_number=table_number,
            lines=lines,
            notes=notes,
            customer_id=customer_id,
            reward_id=reward_id,
        )
        if customer_id is not None and await self._db.get(CustomerProfile, customer_id) is None:
            raise LoyaltyValidationError(f"Unknown customer {customer_id}")

        subtotal = order_subtotal(lines)
        discount = ZERO
        if reward_id is not None:
            quote = await RewardApplicationEngine(self._db).quote(
                reward_id, subtotal, customer_id=customer_id, now=now
            )
            if not quote.ok:
                raise RewardNotApplicableError(quote)
            discount = quote.discount

        order = Order(
            table_number=table,
            status=OrderStatusEnum.PENDING,
            items=[line.as_json() for line in lines],
            original_amount=subtotal,
            discount_amount=discount,
            total_amount=subtotal - discount,
            notes=notes,
            customer_id=customer_id,
            placed_by_id=placed_by_id,
            applied_reward_id=reward_id,
        )
        self._db.add(order)
        await self._db.flush()

        visit: VisitOutcome | None = None
        if customer_id is not None:
            visit = await VisitRecorder(self._db, settings_store=self._settings).record_visit(
                customer_id,
                staff_id=placed_by_id if placed_by_id and placed_by_id != customer_id else None,
                notes=f"Order #{order.id} - Table {table}",
                order_id=order.id,
                now=now,
            )

        reward_claimed = False
        if reward_id is not None:
            reward_claimed = await self._rewards.claim_for_order(reward_id, order.id, now=now)
            if not reward_claimed:
                # Lost the race to a concurrent order: keep the order, drop the discount.
                order.discount_amount = ZERO
                order.total_amount = subtotal
                order.applied_reward_id = None
                await self._db.flush()
                logger.warning(
                    "Reward claimed concurrently; order placed without discount",
                    order_id=str(order.id),
                    reward_id=str(reward_id),
                )

        logger.info(
            "Order placed",
            order_id=str(order.id),
            customer_id=str(customer_id) if customer_id else None,
            table_number=table,
            subtotal=str(subtotal),
            discount=str(order.discount_amount),
            reward_claimed=reward_claimed,
        )
        return OrderPlacement(order=order, visit=visit, reward_claimed=reward_claimed)

    async def get_order(self, order_id: UUID) -> Order | None:
        return await self._db.get(Order, order_id)

    async def list_orders(
        self,
        *,
        status: OrderStatusEnum | None = None,
        customer_id: UUID | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Order]:
        stmt = select(Order)
        if status is not None:
            stmt = stmt.where(Order.status == status)
        if customer_id is not None:
            stmt = stmt.where(Order.customer_id == customer_id)
        stmt = stmt.order_by(Order.created_at.desc()).offset(offset).limit(limit)
        result = await self._db.execute(stmt)
        return result.scalars().all()


__all__ = [
    "MAX_ORDER_TOTAL",
    "OrderLine",
    "OrderPlacement",
    "OrderService",
    "RewardNotApplicableError",
    "order_subtotal",
    "validate_order_input",
]
