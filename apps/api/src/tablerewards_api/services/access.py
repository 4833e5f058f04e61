"""Capability checks for the caller resolved from the session header."""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from tablerewards_api.models.customer_profile import CustomerProfile, CustomerRoleEnum
from tablerewards_api.services.errors import AuthorizationError


@dataclass(frozen=True)
class Caller:
    profile_id: UUID
    email: str
    roles: frozenset[CustomerRoleEnum] = field(default_factory=frozenset)

    @classmethod
    def from_profile(cls, profile: CustomerProfile) -> "Caller":
        return cls(profile_id=profile.id, email=profile.email, roles=frozenset(profile.role_names))

    def has_role(self, *roles: CustomerRoleEnum) -> bool:
        return bool(self.roles.intersection(roles))

    @property
    def is_staff(self) -> bool:
        return self.has_role(CustomerRoleEnum.STAFF, CustomerRoleEnum.ADMIN)

    @property
    def is_admin(self) -> bool:
        return self.has_role(CustomerRoleEnum.ADMIN)

    def require_role(self, *roles: CustomerRoleEnum) -> None:
        if not self.has_role(*roles):
            names = ", ".join(role.value for role in roles)
            raise AuthorizationError(f"Requires one of: {names}")

    def can_act_as(self, customer_id: UUID) -> bool:
        return self.profile_id == customer_id or self.is_staff

    def ensure_can_act_as(self, customer_id: UUID) -> None:
        if not self.can_act_as(customer_id):
            raise AuthorizationError("Not permitted to act for this customer")


__all__ = ["Caller"]
