from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from tablerewards_api.models.customer_profile import CustomerRoleEnum
from tablerewards_api.models.loyalty import CustomerStats, Referral, Reward, RewardKindEnum
from tablerewards_api.observability.loyalty import get_loyalty_store
from tablerewards_api.services.accounts import AccountRegistration, AccountService, validate_registration
from tablerewards_api.services.errors import LoyaltyConflictError, LoyaltyValidationError
from tablerewards_api.services.loyalty import ReferralCodeGenerator, normalize_referral_code
from tablerewards_api.services.loyalty.snapshot import build_loyalty_snapshot


NOW = datetime(2026, 6, 1, 9, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_signup_with_referral_credits_referrer(session_factory) -> None:
    async with session_factory() as session:
        service = AccountService(session)
        referrer = (
            await service.create_account(AccountRegistration(user_id=uuid4(), email="Rita@Example.com"), now=NOW)
        ).profile
        await session.commit()

        result = await service.create_account(
            AccountRegistration(
                user_id=uuid4(),
                email="newbie@example.com",
                full_name="New Bie",
                referred_by_code=f"  {referrer.referral_code.lower()} ",
            ),
            now=NOW,
        )
        await session.commit()

        referrals = (await session.execute(select(Referral))).scalars().all()
        assert len(referrals) == 1
        assert referrals[0].referrer_id == referrer.id
        assert referrals[0].referred_id == result.profile.id
        assert referrals[0].reward_granted is True

        reward = result.referrer_reward
        assert reward is not None
        assert reward.customer_id == referrer.id
        assert reward.kind == RewardKindEnum.REFERRAL
        assert reward.reward_value == Decimal("15.00")
        assert reward.title == "Referral Bonus!"

        assert result.profile.referred_by_code == referrer.referral_code
        assert referrer.email == "rita@example.com"

        new_stats = await session.get(CustomerStats, result.profile.id)
        snapshot = await build_loyalty_snapshot(session, result.profile.id)

    assert new_stats is None
    assert snapshot.total_visits == 0
    assert snapshot.referrals_made == 0
    assert get_loyalty_store().snapshot().referrals["converted"] == 1


@pytest.mark.asyncio
async def test_unknown_referral_code_does_not_block_signup(session_factory) -> None:
    async with session_factory() as session:
        result = await AccountService(session).create_account(
            AccountRegistration(user_id=uuid4(), email="solo@example.com", referred_by_code="NOSUCH01"),
            now=NOW,
        )
        await session.commit()

        referrals = (await session.execute(select(Referral))).scalars().all()
        rewards = (await session.execute(select(Reward))).scalars().all()

    assert result.referral is None
    assert result.referrer_reward is None
    assert result.profile.referred_by_code == "NOSUCH01"
    assert referrals == []
    assert rewards == []
    assert get_loyalty_store().snapshot().referrals["unmatched"] == 1


@pytest.mark.asyncio
async def test_new_account_gets_customer_role_and_code(session_factory) -> None:
    async with session_factory() as session:
        result = await AccountService(session).create_account(
            AccountRegistration(user_id=uuid4(), email="plain@example.com", phone_number="+1 (555) 010-2000"),
            now=NOW,
        )

    profile = result.profile
    assert profile.role_names == {CustomerRoleEnum.CUSTOMER}
    assert len(profile.referral_code) == 8
    assert profile.referral_code == profile.referral_code.upper()
    assert profile.full_name == "plain@example.com"


@pytest.mark.asyncio
async def test_duplicate_account_is_a_conflict(session_factory) -> None:
    user_id = uuid4()
    async with session_factory() as session:
        service = AccountService(session)
        await service.create_account(AccountRegistration(user_id=user_id, email="dup@example.com"))
        await session.commit()

        with pytest.raises(LoyaltyConflictError):
            await service.create_account(AccountRegistration(user_id=user_id, email="other@example.com"))
        with pytest.raises(LoyaltyConflictError):
            await service.create_account(AccountRegistration(user_id=uuid4(), email="DUP@example.com"))


@pytest.mark.parametrize(
    "registration",
    [
        AccountRegistration(user_id=uuid4(), email="not-an-email"),
        AccountRegistration(user_id=uuid4(), email="a@example.com", full_name="X"),
        AccountRegistration(user_id=uuid4(), email="a@example.com", phone_number="12"),
        AccountRegistration(user_id=uuid4(), email="a@example.com", phone_number="call me maybe"),
        AccountRegistration(user_id=uuid4(), email="a@example.com", date_of_birth=date(2031, 1, 1)),
        AccountRegistration(user_id=uuid4(), email="a@example.com", referred_by_code="X" * 21),
    ],
)
def test_registration_validation(registration: AccountRegistration) -> None:
    with pytest.raises(LoyaltyValidationError):
        validate_registration(registration, today=date(2026, 6, 1))


def test_referral_codes_are_normalized() -> None:
    assert normalize_referral_code(" ab12cd34 ") == "AB12CD34"
    assert normalize_referral_code("   ") is None
    assert normalize_referral_code(None) is None


@pytest.mark.asyncio
async def test_code_generator_gives_up_after_bounded_attempts(session_factory, make_profile, monkeypatch) -> None:
    async with session_factory() as session:
        await make_profile(session, "taken@example.com", referral_code="AAAAAAAA")

        class _FixedUUID:
            hex = "a" * 32

        monkeypatch.setattr("tablerewards_api.services.loyalty.referrals.uuid4", lambda: _FixedUUID())
        with pytest.raises(LoyaltyConflictError):
            await ReferralCodeGenerator(session, length=8, max_attempts=3).generate()
