"""Customer identity, role membership and role invitations."""

from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from tablerewards_api.db.base import Base


class CustomerRoleEnum(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"
    ADMIN = "admin"


def _enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class CustomerProfile(Base):
    """One row per registered person; the id is the auth provider's user id."""

    __tablename__ = "customer_profiles"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(100), nullable=False)
    phone_number = Column(String(20), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    referral_code = Column(String(20), nullable=False, unique=True, index=True)
    referred_by_code = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    roles = relationship(
        "CustomerRole",
        back_populates="profile",
        cascade="all, delete-orphan",
        foreign_keys="CustomerRole.profile_id",
        lazy="selectin",
    )
    stats = relationship("CustomerStats", back_populates="customer", uselist=False)

    @property
    def role_names(self) -> set[CustomerRoleEnum]:
        return {assignment.role for assignment in self.roles}


class CustomerRole(Base):
    """Role membership; a profile may hold several roles at once."""

    __tablename__ = "customer_roles"
    __table_args__ = (
        UniqueConstraint("profile_id", "role", name="uq_customer_roles_profile_role"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    profile_id = Column(
        UUID(as_uuid=True),
        ForeignKey("customer_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role = Column(
        SqlEnum(CustomerRoleEnum, name="customer_role_enum", values_callable=_enum_values),
        nullable=False,
    )
    granted_by_id = Column(
        UUID(as_uuid=True),
        ForeignKey("customer_profiles.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    profile = relationship("CustomerProfile", back_populates="roles", foreign_keys=[profile_id])


class RoleInvitation(Base):
    """Admin-issued, single-use grant of a role to an email address."""

    __tablename__ = "role_invitations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String(255), nullable=False, index=True)
    role = Column(
        SqlEnum(CustomerRoleEnum, name="customer_role_enum", values_callable=_enum_values),
        nullable=False,
    )
    token_digest = Column(String(64), nullable=False, unique=True)
    invited_by_id = Column(
        UUID(as_uuid=True),
        ForeignKey("customer_profiles.id", ondelete="SET NULL"),
        nullable=True,
    )
    expires_at = Column(DateTime(timezone=True), nullable=False)
    redeemed_at = Column(DateTime(timezone=True), nullable=True)
    redeemed_by_id = Column(
        UUID(as_uuid=True),
        ForeignKey("customer_profiles.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
