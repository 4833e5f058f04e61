"""SQLAlchemy models package."""

from .customer_profile import (  # noqa: F401
    CustomerProfile,
    CustomerRole,
    CustomerRoleEnum,
    RoleInvitation,
)
from .loyalty import (  # noqa: F401
    CustomerStats,
    LoyaltyTierEnum,
    Referral,
    Reward,
    RewardKindEnum,
    RewardStatusEnum,
    Visit,
)
from .order import Order, OrderStatusEnum  # noqa: F401
from .system_setting import SystemSetting  # noqa: F401

__all__ = [
    "CustomerProfile",
    "CustomerRole",
    "CustomerRoleEnum",
    "CustomerStats",
    "LoyaltyTierEnum",
    "Order",
    "OrderStatusEnum",
    "Referral",
    "Reward",
    "RewardKindEnum",
    "RewardStatusEnum",
    "RoleInvitation",
    "SystemSetting",
    "Visit",
]
