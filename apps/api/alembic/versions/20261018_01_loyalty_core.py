"""Create customer, loyalty, order and settings tables."""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "20261018_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


customer_role_enum = sa.Enum("customer", "staff", "admin", name="customer_role_enum")
# Reuses the type created with customer_roles.
invitation_role_enum = postgresql.ENUM("customer", "staff", "admin", name="customer_role_enum", create_type=False)
loyalty_tier_enum = sa.Enum("bronze", "silver", "gold", name="loyalty_tier_enum")
reward_kind_enum = sa.Enum("milestone", "tier_upgrade", "referral", "birthday", name="reward_kind_enum")
reward_status_enum = sa.Enum("available", "claimed", name="reward_status_enum")
order_status_enum = sa.Enum("pending", "preparing", "delivered", name="order_status_enum")


def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "customer_profiles",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(100), nullable=False),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("referral_code", sa.String(20), nullable=False, unique=True),
        sa.Column("referred_by_code", sa.String(20), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_customer_profiles_email", "customer_profiles", ["email"])
    op.create_index("ix_customer_profiles_referral_code", "customer_profiles", ["referral_code"])

    op.create_table(
        "customer_roles",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("profile_id", _uuid(), sa.ForeignKey("customer_profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", customer_role_enum, nullable=False),
        sa.Column("granted_by_id", _uuid(), sa.ForeignKey("customer_profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("profile_id", "role", name="uq_customer_roles_profile_role"),
    )
    op.create_index("ix_customer_roles_profile_id", "customer_roles", ["profile_id"])

    op.create_table(
        "role_invitations",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("role", invitation_role_enum, nullable=False),
        sa.Column("token_digest", sa.String(64), nullable=False, unique=True),
        sa.Column("invited_by_id", _uuid(), sa.ForeignKey("customer_profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("redeemed_by_id", _uuid(), sa.ForeignKey("customer_profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_role_invitations_email", "role_invitations", ["email"])

    op.create_table(
        "customer_stats",
        sa.Column("customer_id", _uuid(), sa.ForeignKey("customer_profiles.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("total_visits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_tier", loyalty_tier_enum, nullable=False, server_default="bronze"),
        sa.Column("tier_updated_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "orders",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("table_number", sa.String(10), nullable=False),
        sa.Column("status", order_status_enum, nullable=False, server_default="pending"),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("original_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("customer_id", _uuid(), sa.ForeignKey("customer_profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("placed_by_id", _uuid(), sa.ForeignKey("customer_profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("applied_reward_id", _uuid(), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_orders_status", "orders", ["status"])
    op.create_index("ix_orders_customer_id", "orders", ["customer_id"])

    op.create_table(
        "visits",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("customer_id", _uuid(), sa.ForeignKey("customer_profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("staff_id", _uuid(), sa.ForeignKey("customer_profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("order_id", _uuid(), sa.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("visited_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_visits_customer_id", "visits", ["customer_id"])

    op.create_table(
        "referrals",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("referrer_id", _uuid(), sa.ForeignKey("customer_profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("referred_id", _uuid(), sa.ForeignKey("customer_profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("referral_code", sa.String(20), nullable=False),
        sa.Column("reward_granted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("referred_id", name="uq_referrals_referred_id"),
    )
    op.create_index("ix_referrals_referrer_id", "referrals", ["referrer_id"])

    op.create_table(
        "rewards",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("customer_id", _uuid(), sa.ForeignKey("customer_profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", reward_kind_enum, nullable=False),
        sa.Column("status", reward_status_enum, nullable=False, server_default="available"),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("reward_value", sa.Numeric(10, 2), nullable=True),
        sa.Column("discount_percentage", sa.Integer(), nullable=True),
        sa.Column("applicable_to", sa.String(50), nullable=False, server_default="all"),
        sa.Column("minimum_order_value", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("expiration_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("milestone_visits", sa.Integer(), nullable=True),
        sa.Column("from_tier", sa.String(16), nullable=True),
        sa.Column("to_tier", sa.String(16), nullable=True),
        sa.Column("referral_id", _uuid(), sa.ForeignKey("referrals.id", ondelete="SET NULL"), nullable=True),
        sa.Column("birthday_year", sa.Integer(), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("claimed_by_staff_id", _uuid(), sa.ForeignKey("customer_profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("applied_to_order_id", _uuid(), sa.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("customer_id", "kind", "milestone_visits", name="uq_rewards_customer_milestone"),
        sa.UniqueConstraint("customer_id", "kind", "birthday_year", name="uq_rewards_customer_birthday"),
    )
    op.create_index("ix_rewards_customer_id", "rewards", ["customer_id"])
    op.create_index("ix_rewards_status", "rewards", ["status"])

    if op.get_bind().dialect.name != "sqlite":
        op.create_foreign_key(
            "fk_orders_applied_reward_id_rewards",
            "orders",
            "rewards",
            ["applied_reward_id"],
            ["id"],
            ondelete="SET NULL",
        )

    op.create_table(
        "system_settings",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("setting_key", sa.String(100), nullable=False, unique=True),
        sa.Column("setting_value", sa.JSON(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("updated_by_id", _uuid(), sa.ForeignKey("customer_profiles.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_system_settings_setting_key", "system_settings", ["setting_key"])


def downgrade() -> None:
    op.drop_index("ix_system_settings_setting_key", table_name="system_settings")
    op.drop_table("system_settings")
    if op.get_bind().dialect.name != "sqlite":
        op.drop_constraint("fk_orders_applied_reward_id_rewards", "orders", type_="foreignkey")
    op.drop_index("ix_rewards_status", table_name="rewards")
    op.drop_index("ix_rewards_customer_id", table_name="rewards")
    op.drop_table("rewards")
    op.drop_index("ix_referrals_referrer_id", table_name="referrals")
    op.drop_table("referrals")
    op.drop_index("ix_visits_customer_id", table_name="visits")
    op.drop_table("visits")
    op.drop_index("ix_orders_customer_id", table_name="orders")
    op.drop_index("ix_orders_status", table_name="orders")
    op.drop_table("orders")
    op.drop_table("customer_stats")
    op.drop_index("ix_role_invitations_email", table_name="role_invitations")
    op.drop_table("role_invitations")
    op.drop_index("ix_customer_roles_profile_id", table_name="customer_roles")
    op.drop_table("customer_roles")
    op.drop_index("ix_customer_profiles_referral_code", table_name="customer_profiles")
    op.drop_index("ix_customer_profiles_email", table_name="customer_profiles")
    op.drop_table("customer_profiles")

    bind = op.get_bind()
    for enum in (order_status_enum, reward_status_enum, reward_kind_enum, loyalty_tier_enum, customer_role_enum):
        enum.drop(bind, checkfirst=True)
