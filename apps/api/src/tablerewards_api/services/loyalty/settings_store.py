"""Typed access to the admin-editable loyalty tunables in ``system_settings``.

Every key has a hard-coded default. A missing row, or a row whose JSON does not
validate against the key's schema, silently falls back to that default (with a
warning log and a telemetry counter) so the loyalty engine never fails because
of configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Optional
from uuid import UUID

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter, ValidationError, model_validator
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from tablerewards_api.models.loyalty import LoyaltyTierEnum
from tablerewards_api.models.system_setting import SystemSetting
from tablerewards_api.observability.loyalty import get_loyalty_store
from tablerewards_api.services.errors import LoyaltyNotFoundError, LoyaltyValidationError


# Reward amounts are stored as Numeric(10, 2).
MAX_REWARD_AMOUNT = Decimal("99999999.99")
MAX_REWARD_EXPIRATION_DAYS = 3650

RewardAmount = Annotated[Decimal, Field(ge=0, le=MAX_REWARD_AMOUNT, decimal_places=2)]


class TierRange(BaseModel):
    model_config = ConfigDict(extra="ignore")

    min: int = Field(ge=0)
    max: Optional[int] = Field(default=None, ge=0)


class TierThresholds(BaseModel):
    """Visit ranges per tier. Only the ``min`` bounds drive tier selection."""

    model_config = ConfigDict(extra="ignore")

    bronze: TierRange = TierRange(min=0, max=9)
    silver: TierRange = TierRange(min=10, max=19)
    gold: TierRange = TierRange(min=20)

    def minimum_for(self, tier: LoyaltyTierEnum) -> int:
        return getattr(self, tier.value).min


class GraduationReward(BaseModel):
    """Reward definition issued when a customer enters a new tier."""

    model_config = ConfigDict(extra="ignore")

    reward_type: Literal["fixed", "percentage"]
    reward_value: Decimal = Field(gt=0, le=MAX_REWARD_AMOUNT, decimal_places=2)
    reward_title: str = Field(min_length=1, max_length=200)
    reward_description: Optional[str] = None

    @model_validator(mode="after")
    def _check_percentage_bounds(self) -> "GraduationReward":
        if self.reward_type == "percentage" and self.reward_value > 100:
            raise ValueError("percentage rewards cannot exceed 100")
        return self


GraduationKey = Annotated[
    str,
    StringConstraints(pattern=r"^(bronze|silver|gold)_to_(bronze|silver|gold)$"),
]


DEFAULT_GRADUATION_REWARDS: dict[str, GraduationReward] = {
    "bronze_to_silver": GraduationReward(
        reward_type="fixed",
        reward_value=Decimal("10"),
        reward_title="Upgraded to Silver Tier!",
        reward_description="Congratulations on reaching Silver tier! Enjoy $10 off your next order.",
    ),
    "silver_to_gold": GraduationReward(
        reward_type="fixed",
        reward_value=Decimal("15"),
        reward_title="Upgraded to Gold Tier!",
        reward_description="Congratulations on reaching Gold tier! Enjoy $15 off your next order.",
    ),
}


class LoyaltyConfig(BaseModel):
    """Effective loyalty configuration for one unit of work."""

    model_config = ConfigDict(frozen=True)

    tier_thresholds: TierThresholds = TierThresholds()
    tier_discounts: dict[LoyaltyTierEnum, int] = Field(
        default_factory=lambda: {
            LoyaltyTierEnum.BRONZE: 5,
            LoyaltyTierEnum.SILVER: 10,
            LoyaltyTierEnum.GOLD: 15,
        }
    )
    tier_graduation_rewards: dict[str, GraduationReward] = Field(
        default_factory=lambda: dict(DEFAULT_GRADUATION_REWARDS)
    )
    milestone_frequency: int = 6
    milestone_reward_value: Decimal = Decimal("10.00")
    referral_reward_value: Decimal = Decimal("15.00")
    reward_expiration_days: Optional[int] = 30
    birthday_rewards_enabled: bool = True
    birthday_reward_value: Decimal = Decimal("10.00")


@dataclass(frozen=True)
class _SettingSpec:
    adapter: TypeAdapter
    description: str


SETTING_SPECS: dict[str, _SettingSpec] = {
    "tier_thresholds": _SettingSpec(
        TypeAdapter(TierThresholds),
        "Visit ranges for the bronze, silver and gold tiers",
    ),
    "tier_discounts": _SettingSpec(
        TypeAdapter(dict[LoyaltyTierEnum, Annotated[int, Field(ge=0, le=100)]]),
        "Standing percentage perk advertised for each tier",
    ),
    "tier_graduation_rewards": _SettingSpec(
        TypeAdapter(dict[GraduationKey, GraduationReward]),
        "Rewards issued when a customer moves between tiers",
    ),
    "milestone_frequency": _SettingSpec(
        TypeAdapter(Annotated[int, Field(ge=1)]),
        "Issue a milestone reward every N visits",
    ),
    "milestone_reward_value": _SettingSpec(
        TypeAdapter(RewardAmount),
        "Fixed discount for milestone rewards",
    ),
    "referral_reward_value": _SettingSpec(
        TypeAdapter(RewardAmount),
        "Fixed discount given to the referrer of a new customer",
    ),
    "reward_expiration_days": _SettingSpec(
        TypeAdapter(Optional[Annotated[int, Field(ge=0, le=MAX_REWARD_EXPIRATION_DAYS)]]),
        "Days until an issued reward expires (null or 0 never expires)",
    ),
    "birthday_rewards_enabled": _SettingSpec(
        TypeAdapter(bool),
        "Whether birthday rewards are enabled",
    ),
    "birthday_reward_value": _SettingSpec(
        TypeAdapter(RewardAmount),
        "Fixed discount for birthday rewards",
    ),
}

_DEFAULTS = LoyaltyConfig()


@dataclass
class SettingEntry:
    """Serializable view of one setting as the engine sees it."""

    key: str
    value: Any
    description: str
    is_default: bool
    updated_at: Optional[datetime]
    updated_by_id: Optional[UUID]


def _dump(key: str, value: Any) -> Any:
    return SETTING_SPECS[key].adapter.dump_python(value, mode="json")


def _parse(key: str, raw: Any) -> Any:
    return SETTING_SPECS[key].adapter.validate_python(raw)


class LoyaltySettingsStore:
    """Load, cache and administer loyalty settings within one session."""

    def __init__(self, session: AsyncSession) -> None:
        self._db = session
        self._config: LoyaltyConfig | None = None

    async def load(self) -> LoyaltyConfig:
        """Return the effective configuration, reading the table at most once."""

        if self._config is not None:
            return self._config

        rows = await self._rows_by_key()
        values: dict[str, Any] = {}
        for key in SETTING_SPECS:
            row = rows.get(key)
            if row is None:
                continue
            try:
                values[key] = _parse(key, row.setting_value)
            except ValidationError as exc:
                logger.warning(
                    "Malformed loyalty setting; using default",
                    setting_key=key,
                    error_count=exc.error_count(),
                )
                get_loyalty_store().record_settings_fallback(key)

        self._config = _DEFAULTS.model_copy(update=values)
        return self._config

    def invalidate(self) -> None:
        self._config = None

    async def list_entries(self) -> list[SettingEntry]:
        rows = await self._rows_by_key()
        config = await self.load()
        return [self._entry(key, rows.get(key), config) for key in SETTING_SPECS]

    async def get_entry(self, key: str) -> SettingEntry:
        self._require_known(key)
        rows = await self._rows_by_key()
        return self._entry(key, rows.get(key), await self.load())

    async def upsert(
        self,
        key: str,
        value: Any,
        *,
        updated_by_id: UUID | None = None,
        description: str | None = None,
    ) -> SettingEntry:
        """Validate ``value`` against the key's schema and store it."""

        self._require_known(key)
        try:
            parsed = _parse(key, value)
        except ValidationError as exc:
            raise LoyaltyValidationError(f"Invalid value for {key}: {exc.errors()[0]['msg']}") from exc

        stmt = select(SystemSetting).where(SystemSetting.setting_key == key)
        row = (await self._db.execute(stmt)).scalar_one_or_none()
        if row is None:
            row = SystemSetting(setting_key=key, description=description or SETTING_SPECS[key].description)
            self._db.add(row)
        elif description is not None:
            row.description = description
        row.setting_value = _dump(key, parsed)
        row.updated_by_id = updated_by_id
        await self._db.flush()

        self.invalidate()
        logger.info("Loyalty setting updated", setting_key=key, updated_by=str(updated_by_id) if updated_by_id else None)
        return await self.get_entry(key)

    async def reset(self, key: str) -> SettingEntry:
        """Delete the stored row so the key reverts to its default."""

        self._require_known(key)
        result = await self._db.execute(delete(SystemSetting).where(SystemSetting.setting_key == key))
        await self._db.flush()
        self.invalidate()
        logger.info("Loyalty setting reset to default", setting_key=key, removed=result.rowcount)
        return await self.get_entry(key)

    async def seed_defaults(self, *, overwrite: bool = False) -> int:
        """Write every default into the table; returns the number of rows written."""

        rows = await self._rows_by_key()
        written = 0
        for key, spec in SETTING_SPECS.items():
            row = rows.get(key)
            if row is not None and not overwrite:
                continue
            if row is None:
                row = SystemSetting(setting_key=key, description=spec.description)
                self._db.add(row)
            row.setting_value = _dump(key, getattr(_DEFAULTS, key))
            written += 1
        await self._db.flush()
        self.invalidate()
        return written

    async def _rows_by_key(self) -> dict[str, SystemSetting]:
        result = await self._db.execute(select(SystemSetting))
        return {row.setting_key: row for row in result.scalars()}

    @staticmethod
    def _require_known(key: str) -> None:
        if key not in SETTING_SPECS:
            raise LoyaltyNotFoundError(f"Unknown setting: {key}")

    @staticmethod
    def _entry(key: str, row: SystemSetting | None, config: LoyaltyConfig) -> SettingEntry:
        effective = getattr(config, key)
        is_default = row is None
        if row is not None:
            try:
                _parse(key, row.setting_value)
            except ValidationError:
                is_default = True
        return SettingEntry(
            key=key,
            value=_dump(key, effective),
            description=(row.description if row is not None and row.description else SETTING_SPECS[key].description),
            is_default=is_default,
            updated_at=row.updated_at if row is not None else None,
            updated_by_id=row.updated_by_id if row is not None else None,
        )


__all__ = [
    "DEFAULT_GRADUATION_REWARDS",
    "GraduationReward",
    "LoyaltyConfig",
    "LoyaltySettingsStore",
    "SETTING_SPECS",
    "SettingEntry",
    "TierRange",
    "TierThresholds",
]
