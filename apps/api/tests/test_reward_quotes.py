from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from tablerewards_api.models.loyalty import Reward, RewardKindEnum, RewardStatusEnum
from tablerewards_api.services.errors import LoyaltyValidationError
from tablerewards_api.services.loyalty import QuoteError, RewardApplicationEngine, compute_discount


def test_fixed_reward_discount() -> None:
    quote = compute_discount(
        subtotal=Decimal("25.00"),
        reward_value=Decimal("10.00"),
        discount_percentage=None,
        minimum_order_value=Decimal("0"),
    )

    assert quote.ok
    assert quote.discount == Decimal("10.00")
    assert Decimal("25.00") - quote.discount == Decimal("15.00")


def test_percentage_reward_discount_rounds_half_up() -> None:
    quote = compute_discount(subtotal=Decimal("40.00"), reward_value=None, discount_percentage=15)
    assert quote.discount == Decimal("6.00")

    rounded = compute_discount(subtotal=Decimal("10.10"), reward_value=None, discount_percentage=15)
    assert rounded.discount == Decimal("1.52")


def test_minimum_order_value_rejects_small_orders() -> None:
    quote = compute_discount(
        subtotal=Decimal("30.00"),
        reward_value=Decimal("10.00"),
        discount_percentage=None,
        minimum_order_value=Decimal("50.00"),
    )

    assert not quote.ok
    assert quote.error == QuoteError.MINIMUM_NOT_MET
    assert quote.discount == Decimal("0.00")
    assert quote.message == "Minimum order value of $50.00 required"


def test_fixed_reward_never_exceeds_subtotal() -> None:
    quote = compute_discount(subtotal=Decimal("4.50"), reward_value=Decimal("10.00"), discount_percentage=None)
    assert quote.discount == Decimal("4.50")

    zero = compute_discount(subtotal=Decimal("0"), reward_value=Decimal("10.00"), discount_percentage=None)
    assert zero.discount == Decimal("0.00")


@pytest.mark.parametrize(
    ("subtotal", "reward_value", "percentage"),
    [
        (Decimal("0.01"), None, 100),
        (Decimal("12.34"), None, 0),
        (Decimal("99.99"), Decimal("0.00"), None),
        (Decimal("5.00"), Decimal("5.00"), None),
        (Decimal("1000.00"), None, 33),
    ],
)
def test_discount_is_bounded_by_subtotal(subtotal, reward_value, percentage) -> None:
    quote = compute_discount(subtotal=subtotal, reward_value=reward_value, discount_percentage=percentage)
    assert Decimal("0") <= quote.discount <= subtotal


def test_reward_without_value_is_invalid_configuration() -> None:
    quote = compute_discount(subtotal=Decimal("20.00"), reward_value=None, discount_percentage=None)

    assert quote.error == QuoteError.INVALID_CONFIGURATION
    assert quote.discount == Decimal("0.00")


def test_negative_subtotal_is_rejected() -> None:
    with pytest.raises(LoyaltyValidationError):
        compute_discount(subtotal=Decimal("-1"), reward_value=Decimal("5"), discount_percentage=None)


@pytest.mark.asyncio
async def test_engine_refuses_claimed_expired_and_foreign_rewards(session_factory, make_profile) -> None:
    now = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
    async with session_factory() as session:
        owner = await make_profile(session, "owner@example.com")
        other = await make_profile(session, "other@example.com")

        def _reward(**overrides) -> Reward:
            fields = dict(
                customer_id=owner.id,
                kind=RewardKindEnum.MILESTONE,
                status=RewardStatusEnum.AVAILABLE,
                title="Milestone Reward - 6 Visits!",
                reward_value=Decimal("10.00"),
                minimum_order_value=Decimal("0"),
                unlocked_at=now,
            )
            fields.update(overrides)
            return Reward(**fields)

        usable = _reward(milestone_visits=6, expiration_date=now + timedelta(days=30))
        claimed = _reward(milestone_visits=12, status=RewardStatusEnum.CLAIMED, claimed_at=now)
        expired = _reward(milestone_visits=18, expiration_date=now - timedelta(minutes=1))
        session.add_all([usable, claimed, expired])
        await session.flush()

        engine = RewardApplicationEngine(session)

        ok = await engine.quote(usable.id, Decimal("25.00"), customer_id=owner.id, now=now)
        assert ok.ok and ok.discount == Decimal("10.00")

        for reward in (claimed, expired):
            refused = await engine.quote(reward.id, Decimal("25.00"), now=now)
            assert refused.error == QuoteError.UNAVAILABLE
            assert refused.discount == Decimal("0.00")

        foreign = await engine.quote(usable.id, Decimal("25.00"), customer_id=other.id, now=now)
        assert foreign.error == QuoteError.UNAVAILABLE
