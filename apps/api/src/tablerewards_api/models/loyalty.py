"""Loyalty domain models: visit counters, visits, rewards and referrals."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from tablerewards_api.db.base import Base
from tablerewards_api.models.customer_profile import _enum_values


class LoyaltyTierEnum(str, Enum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)


_TIER_ORDER = [LoyaltyTierEnum.BRONZE, LoyaltyTierEnum.SILVER, LoyaltyTierEnum.GOLD]


class RewardKindEnum(str, Enum):
    """Why a reward was issued."""

    MILESTONE = "milestone"
    TIER_UPGRADE = "tier_upgrade"
    REFERRAL = "referral"
    BIRTHDAY = "birthday"


class RewardStatusEnum(str, Enum):
    AVAILABLE = "available"
    CLAIMED = "claimed"


class CustomerStats(Base):
    """Per-customer visit counter and current tier."""

    __tablename__ = "customer_stats"

    customer_id = Column(
        UUID(as_uuid=True),
        ForeignKey("customer_profiles.id", ondelete="CASCADE"),
        primary_key=True,
    )
    total_visits = Column(Integer, nullable=False, default=0, server_default="0")
    current_tier = Column(
        SqlEnum(LoyaltyTierEnum, name="loyalty_tier_enum", values_callable=_enum_values),
        nullable=False,
        default=LoyaltyTierEnum.BRONZE,
        server_default=LoyaltyTierEnum.BRONZE.value,
    )
    tier_updated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    customer = relationship("CustomerProfile", back_populates="stats")


class Visit(Base):
    """Append-only visit log; one row per counted visit."""

    __tablename__ = "visits"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    customer_id = Column(
        UUID(as_uuid=True),
        ForeignKey("customer_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    staff_id = Column(
        UUID(as_uuid=True),
        ForeignKey("customer_profiles.id", ondelete="SET NULL"),
        nullable=True,
    )
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=True)
    visited_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Reward(Base):
    """Redeemable benefit owned by a customer."""

    __tablename__ = "rewards"
    __table_args__ = (
        UniqueConstraint("customer_id", "kind", "milestone_visits", name="uq_rewards_customer_milestone"),
        UniqueConstraint("customer_id", "kind", "birthday_year", name="uq_rewards_customer_birthday"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    customer_id = Column(
        UUID(as_uuid=True),
        ForeignKey("customer_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    kind = Column(
        SqlEnum(RewardKindEnum, name="reward_kind_enum", values_callable=_enum_values),
        nullable=False,
    )
    status = Column(
        SqlEnum(RewardStatusEnum, name="reward_status_enum", values_callable=_enum_values),
        nullable=False,
        default=RewardStatusEnum.AVAILABLE,
        server_default=RewardStatusEnum.AVAILABLE.value,
        index=True,
    )
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    reward_value = Column(Numeric(10, 2), nullable=True)
    discount_percentage = Column(Integer, nullable=True)
    applicable_to = Column(String(50), nullable=False, default="all", server_default="all")
    minimum_order_value = Column(Numeric(10, 2), nullable=False, default=0, server_default="0")
    expiration_date = Column(DateTime(timezone=True), nullable=True)
    unlocked_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    milestone_visits = Column(Integer, nullable=True)
    from_tier = Column(String(16), nullable=True)
    to_tier = Column(String(16), nullable=True)
    referral_id = Column(UUID(as_uuid=True), ForeignKey("referrals.id", ondelete="SET NULL"), nullable=True)
    birthday_year = Column(Integer, nullable=True)

    claimed_at = Column(DateTime(timezone=True), nullable=True)
    claimed_by_staff_id = Column(
        UUID(as_uuid=True),
        ForeignKey("customer_profiles.id", ondelete="SET NULL"),
        nullable=True,
    )
    applied_to_order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Referral(Base):
    """Resolved referral linking a new account to the referrer."""

    __tablename__ = "referrals"
    __table_args__ = (
        UniqueConstraint("referred_id", name="uq_referrals_referred_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    referrer_id = Column(
        UUID(as_uuid=True),
        ForeignKey("customer_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    referred_id = Column(
        UUID(as_uuid=True),
        ForeignKey("customer_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    referral_code = Column(String(20), nullable=False)
    reward_granted = Column(Boolean, nullable=False, default=False, server_default="false")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
