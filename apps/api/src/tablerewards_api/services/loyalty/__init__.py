"""Loyalty service exports."""

from .birthdays import BirthdayRewardService, BirthdaySweepResult, celebrates_on  # noqa: F401
from .milestones import MilestoneEvaluator, is_milestone  # noqa: F401
from .referrals import ReferralCodeGenerator, ReferralResolver, normalize_referral_code  # noqa: F401
from .rewards import (  # noqa: F401
    BirthdayGrant,
    DiscountQuote,
    FixedAmount,
    MilestoneGrant,
    PercentOff,
    QuoteError,
    ReferralGrant,
    RewardApplicationEngine,
    RewardGrant,
    RewardService,
    RewardValue,
    TierUpgradeGrant,
    compute_discount,
    ensure_aware,
    to_money,
    utcnow,
)
from .settings_store import (  # noqa: F401
    GraduationReward,
    LoyaltyConfig,
    LoyaltySettingsStore,
    SettingEntry,
    TierThresholds,
)
from .snapshot import LoyaltySnapshot, build_loyalty_snapshot  # noqa: F401
from .tiers import TierChange, TierEvaluator, next_tier_for, resolve_graduation, tier_for_visits  # noqa: F401
from .visits import VisitOutcome, VisitRecorder  # noqa: F401
