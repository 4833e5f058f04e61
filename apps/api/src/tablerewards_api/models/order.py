from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, DateTime, Enum as SqlEnum, ForeignKey, JSON, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from tablerewards_api.db.base import Base
from .customer_profile import _enum_values


class OrderStatusEnum(str, Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    DELIVERED = "delivered"


class Order(Base):
    __tablename__ = "orders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    table_number = Column(String(10), nullable=False)
    status = Column(
        SqlEnum(OrderStatusEnum, name="order_status_enum", values_callable=_enum_values),
        nullable=False,
        default=OrderStatusEnum.PENDING,
        server_default=OrderStatusEnum.PENDING.value,
        index=True,
    )
    # [{"id": ..., "name": ..., "quantity": ..., "price": ...}]
    items = Column(JSON, nullable=False, default=list)
    original_amount = Column(Numeric(12, 2), nullable=False)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    total_amount = Column(Numeric(12, 2), nullable=False)
    notes = Column(Text, nullable=True)
    customer_id = Column(
        UUID(as_uuid=True),
        ForeignKey("customer_profiles.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    placed_by_id = Column(
        UUID(as_uuid=True),
        ForeignKey("customer_profiles.id", ondelete="SET NULL"),
        nullable=True,
    )
    applied_reward_id = Column(
        UUID(as_uuid=True),
        ForeignKey("rewards.id", ondelete="SET NULL", use_alter=True, name="fk_orders_applied_reward_id_rewards"),
        nullable=True,
    )
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
