import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select
from sqlalchemy.sql.dml import Update

from tablerewards_api.models.loyalty import CustomerStats, Reward, RewardKindEnum, RewardStatusEnum, Visit
from tablerewards_api.models.order import Order
from tablerewards_api.observability.loyalty import get_loyalty_store
from tablerewards_api.services.loyalty import RewardApplicationEngine, RewardService, VisitRecorder
from tablerewards_api.services.orders import OrderLine, OrderService, RewardNotApplicableError


NOW = datetime(2026, 9, 12, 20, 15, tzinfo=timezone.utc)
VISITORS = 8


def _lines() -> list[OrderLine]:
    return [OrderLine(name="Ramen", quantity=2, price=Decimal("12.50"))]


async def _seed_reward(session, customer_id) -> Reward:
    reward = Reward(
        customer_id=customer_id,
        kind=RewardKindEnum.MILESTONE,
        status=RewardStatusEnum.AVAILABLE,
        title="Milestone Reward - 6 Visits!",
        reward_value=Decimal("10.00"),
        minimum_order_value=Decimal("0"),
        unlocked_at=NOW - timedelta(days=2),
        expiration_date=NOW + timedelta(days=28),
    )
    session.add(reward)
    await session.flush()
    return reward


@pytest.mark.asyncio
async def test_concurrent_visits_are_all_counted(file_session_factory, make_profile) -> None:
    async with file_session_factory() as session:
        customer = await make_profile(session, "busy-night@example.com")
        await session.commit()

    async def _visit(index: int) -> None:
        async with file_session_factory() as session:
            await VisitRecorder(session).record_visit(customer.id, now=NOW + timedelta(seconds=index))
            await session.commit()

    await asyncio.gather(*(_visit(index) for index in range(VISITORS)))

    async with file_session_factory() as session:
        stats = await session.get(CustomerStats, customer.id)
        logged = await session.scalar(select(func.count()).select_from(Visit))
        milestones = (
            await session.execute(select(Reward).where(Reward.kind == RewardKindEnum.MILESTONE))
        ).scalars().all()

    assert stats.total_visits == VISITORS
    assert logged == VISITORS
    assert [reward.milestone_visits for reward in milestones] == [6]
    assert get_loyalty_store().snapshot().visits["total"] == VISITORS


@pytest.mark.asyncio
async def test_first_visit_race_counts_on_top_of_existing_row(
    file_session_factory, make_profile, monkeypatch
) -> None:
    async with file_session_factory() as session:
        customer = await make_profile(session, "twin-tables@example.com")
        await session.commit()

    # Another worker creates the stats row first.
    async with file_session_factory() as other:
        await VisitRecorder(other).record_visit(customer.id, now=NOW)
        await other.commit()

    async with file_session_factory() as session:
        execute = session.execute
        skipped: list[object] = []

        async def _stale_update(statement, *args, **kwargs):
            # The counter update ran before the other worker committed its row.
            if isinstance(statement, Update) and not skipped:
                skipped.append(statement)
                return SimpleNamespace(rowcount=0)
            return await execute(statement, *args, **kwargs)

        monkeypatch.setattr(session, "execute", _stale_update)
        outcome = await VisitRecorder(session).record_visit(customer.id, now=NOW + timedelta(minutes=1))
        await session.commit()

    assert skipped
    assert outcome.total_visits == 2

    async with file_session_factory() as session:
        stats = await session.get(CustomerStats, customer.id)
        logged = await session.scalar(select(func.count()).select_from(Visit))

    assert stats.total_visits == 2
    assert logged == 2


@pytest.mark.asyncio
async def test_two_orders_racing_for_one_reward_apply_it_once(file_session_factory, make_profile) -> None:
    async with file_session_factory() as session:
        customer = await make_profile(session, "shared-code@example.com")
        reward = await _seed_reward(session, customer.id)
        await session.commit()
        reward_id = reward.id

    async def _order(table: str):
        async with file_session_factory() as session:
            placement = await OrderService(session).place_order(
                lines=_lines(), table_number=table, customer_id=customer.id, reward_id=reward_id, now=NOW
            )
            await session.commit()
            return placement

    results = await asyncio.gather(_order("3"), _order("9"), return_exceptions=True)

    winners = [result for result in results if not isinstance(result, Exception) and result.reward_claimed]
    losers = [result for result in results if result not in winners]
    assert len(winners) == 1
    assert len(losers) == 1
    [loser] = losers
    if isinstance(loser, Exception):
        assert isinstance(loser, RewardNotApplicableError)
    else:
        assert loser.order.discount_amount == Decimal("0.00")
        assert loser.order.total_amount == Decimal("25.00")
        assert loser.order.applied_reward_id is None

    async with file_session_factory() as session:
        stored = await session.get(Reward, reward_id)
        discounted = await session.scalar(
            select(func.count()).select_from(Order).where(Order.applied_reward_id == reward_id)
        )

    assert stored.status == RewardStatusEnum.CLAIMED
    assert stored.applied_to_order_id == winners[0].order.id
    assert discounted == 1


@pytest.mark.asyncio
async def test_claim_after_quote_loses_to_committed_order(file_session_factory, make_profile) -> None:
    async with file_session_factory() as session:
        customer = await make_profile(session, "quoted@example.com")
        reward = await _seed_reward(session, customer.id)
        await session.commit()
        reward_id = reward.id

    async with file_session_factory() as slow:
        quote = await RewardApplicationEngine(slow).quote(reward_id, Decimal("25.00"), customer_id=customer.id, now=NOW)
        assert quote.error is None
        assert quote.discount == Decimal("10.00")

        async with file_session_factory() as fast:
            placement = await OrderService(fast).place_order(
                lines=_lines(), table_number="1", customer_id=customer.id, reward_id=reward_id, now=NOW
            )
            await fast.commit()
        assert placement.reward_claimed is True

        won = await RewardService(slow).claim_for_order(reward_id, placement.order.id, now=NOW)
        await slow.commit()

    assert won is False
    claims = get_loyalty_store().snapshot().claims
    assert claims["order:won"] == 1
    assert claims["order:lost"] == 1
