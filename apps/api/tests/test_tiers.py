from decimal import Decimal

import pytest

from tablerewards_api.models.loyalty import LoyaltyTierEnum
from tablerewards_api.services.loyalty import (
    GraduationReward,
    LoyaltyConfig,
    TierThresholds,
    next_tier_for,
    resolve_graduation,
    tier_for_visits,
)
from tablerewards_api.services.loyalty.settings_store import TierRange


DEFAULTS = TierThresholds()


@pytest.mark.parametrize(
    ("visits", "expected"),
    [
        (0, LoyaltyTierEnum.BRONZE),
        (9, LoyaltyTierEnum.BRONZE),
        (10, LoyaltyTierEnum.SILVER),
        (19, LoyaltyTierEnum.SILVER),
        (20, LoyaltyTierEnum.GOLD),
        (250, LoyaltyTierEnum.GOLD),
    ],
)
def test_tier_for_visits_default_ladder(visits: int, expected: LoyaltyTierEnum) -> None:
    assert tier_for_visits(visits, DEFAULTS) == expected


def test_gold_takes_precedence_when_ranges_overlap() -> None:
    overlapping = TierThresholds(
        bronze=TierRange(min=0),
        silver=TierRange(min=5),
        gold=TierRange(min=5),
    )
    assert tier_for_visits(5, overlapping) == LoyaltyTierEnum.GOLD
    assert next_tier_for(2, overlapping) == (LoyaltyTierEnum.GOLD, 3)


def test_next_tier_progress() -> None:
    assert next_tier_for(0, DEFAULTS) == (LoyaltyTierEnum.SILVER, 10)
    assert next_tier_for(14, DEFAULTS) == (LoyaltyTierEnum.GOLD, 6)
    assert next_tier_for(20, DEFAULTS) is None


def test_graduation_lookup_prefers_exact_key() -> None:
    config = LoyaltyConfig()
    definition = resolve_graduation(config, LoyaltyTierEnum.BRONZE, LoyaltyTierEnum.SILVER)
    assert definition is not None
    assert definition.reward_title == "Upgraded to Silver Tier!"
    assert definition.reward_value == Decimal("10")


def test_graduation_skip_falls_back_to_target_tier_definition() -> None:
    config = LoyaltyConfig()
    definition = resolve_graduation(config, LoyaltyTierEnum.BRONZE, LoyaltyTierEnum.GOLD)
    assert definition is not None
    assert definition.reward_title == "Upgraded to Gold Tier!"


def test_downgrades_do_not_issue_graduation_rewards() -> None:
    assert resolve_graduation(LoyaltyConfig(), LoyaltyTierEnum.GOLD, LoyaltyTierEnum.SILVER) is None

    explicit = LoyaltyConfig(
        tier_graduation_rewards={
            "gold_to_silver": GraduationReward(
                reward_type="fixed",
                reward_value=Decimal("5"),
                reward_title="We miss you",
            )
        }
    )
    found = resolve_graduation(explicit, LoyaltyTierEnum.GOLD, LoyaltyTierEnum.SILVER)
    assert found is not None and found.reward_title == "We miss you"
