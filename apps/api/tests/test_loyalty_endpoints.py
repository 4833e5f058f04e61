from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from tablerewards_api.core.settings import settings
from tablerewards_api.models.customer_profile import CustomerRoleEnum
from tablerewards_api.models.loyalty import Reward, RewardKindEnum, RewardStatusEnum


def _as(profile) -> dict[str, str]:
    return {"X-Session-User": str(profile.id)}


def _client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def _seed_people(session_factory, make_profile):
    async with session_factory() as session:
        customer = await make_profile(session, "guest@example.com", full_name="Grace Guest")
        other = await make_profile(session, "nosy@example.com")
        staff = await make_profile(session, "staff@example.com", roles=(CustomerRoleEnum.STAFF,))
        admin = await make_profile(session, "admin@example.com", roles=(CustomerRoleEnum.ADMIN,))
        await session.commit()
    return customer, other, staff, admin


@pytest.mark.asyncio
async def test_account_hook_creates_profile_and_resolves_referral(app_with_db, make_profile, monkeypatch) -> None:
    app, session_factory = app_with_db
    async with session_factory() as session:
        referrer = await make_profile(session, "ref@example.com", referral_code="REFER001")
        await session.commit()

    monkeypatch.setattr(settings, "internal_api_key", "hook-secret")
    payload = {"userId": str(uuid4()), "email": "Friend@Example.com", "referredByCode": "refer001"}

    async with _client(app) as client:
        rejected = await client.post("/api/v1/accounts", json=payload)
        assert rejected.status_code == 401

        created = await client.post("/api/v1/accounts", json=payload, headers={"X-API-Key": "hook-secret"})
        assert created.status_code == 201
        body = created.json()
        assert body["email"] == "friend@example.com"
        assert body["roles"] == ["customer"]
        assert body["referredByCode"] == "REFER001"
        assert body["referrerId"] == str(referrer.id)

        duplicate = await client.post("/api/v1/accounts", json=payload, headers={"X-API-Key": "hook-secret"})
        assert duplicate.status_code == 409

        me = await client.get("/api/v1/accounts/me", headers={"X-Session-User": body["id"]})
        assert me.status_code == 200
        assert me.json()["referralCode"] == body["referralCode"]

        rewards = await client.get(f"/api/v1/customers/{referrer.id}/rewards", headers=_as(referrer))
        assert rewards.status_code == 200
        [reward] = rewards.json()
        assert reward["kind"] == "referral"
        assert reward["rewardValue"] == 15.0


@pytest.mark.asyncio
async def test_staff_visit_logging_and_snapshot(app_with_db, make_profile) -> None:
    app, session_factory = app_with_db
    customer, other, staff, _ = await _seed_people(session_factory, make_profile)

    async with _client(app) as client:
        missing = await client.post("/api/v1/visits", json={"customerId": str(customer.id)})
        assert missing.status_code == 401

        forbidden = await client.post("/api/v1/visits", json={"customerId": str(customer.id)}, headers=_as(customer))
        assert forbidden.status_code == 403

        for _ in range(5):
            response = await client.post("/api/v1/visits", json={"customerId": str(customer.id)}, headers=_as(staff))
            assert response.status_code == 201
            assert response.json()["rewardsIssued"] == []

        sixth = await client.post(
            "/api/v1/visits",
            json={"customerId": str(customer.id), "notes": "Birthday dinner"},
            headers=_as(staff),
        )
        assert sixth.status_code == 201
        result = sixth.json()
        assert result["totalVisits"] == 6
        assert result["tier"] == "bronze"
        assert result["tierChanged"] is False
        assert [reward["milestoneVisits"] for reward in result["rewardsIssued"]] == [6]

        unknown = await client.post("/api/v1/visits", json={"customerId": str(uuid4())}, headers=_as(staff))
        assert unknown.status_code == 422

        snapshot = await client.get(f"/api/v1/customers/{customer.id}/loyalty", headers=_as(customer))
        assert snapshot.status_code == 200
        data = snapshot.json()
        assert data["totalVisits"] == 6
        assert data["currentTier"] == "bronze"
        assert data["tierDiscountPercentage"] == 5
        assert data["nextTier"] == "silver"
        assert data["visitsToNextTier"] == 4
        assert data["visitsToNextMilestone"] == 6
        assert data["availableRewards"] == 1

        nosy = await client.get(f"/api/v1/customers/{customer.id}/loyalty", headers=_as(other))
        assert nosy.status_code == 403

        history = await client.get(f"/api/v1/customers/{customer.id}/visits", headers=_as(staff))
        assert history.status_code == 200
        assert len(history.json()) == 6
        assert all(visit["staffId"] == str(staff.id) for visit in history.json())


@pytest.mark.asyncio
async def test_order_with_reward_then_staff_redeem_conflicts(app_with_db, make_profile) -> None:
    app, session_factory = app_with_db
    customer, other, staff, _ = await _seed_people(session_factory, make_profile)
    now = datetime.now(timezone.utc)
    async with session_factory() as session:
        fixed = Reward(
            customer_id=customer.id,
            kind=RewardKindEnum.MILESTONE,
            status=RewardStatusEnum.AVAILABLE,
            title="Milestone Reward - 6 Visits!",
            reward_value=Decimal("10.00"),
            minimum_order_value=Decimal("0"),
            milestone_visits=6,
            unlocked_at=now,
            expiration_date=now + timedelta(days=30),
        )
        percent = Reward(
            customer_id=customer.id,
            kind=RewardKindEnum.TIER_UPGRADE,
            status=RewardStatusEnum.AVAILABLE,
            title="Upgraded to Silver Tier!",
            discount_percentage=15,
            minimum_order_value=Decimal("0"),
            unlocked_at=now,
        )
        session.add_all([fixed, percent])
        await session.commit()

    order_body = {
        "tableNumber": "12",
        "items": [{"name": "Ramen", "quantity": 1, "price": "25.00"}],
        "rewardId": str(fixed.id),
    }

    async with _client(app) as client:
        listing = await client.get(f"/api/v1/customers/{customer.id}/rewards", headers=_as(customer))
        assert [reward["id"] for reward in listing.json()] == [str(fixed.id), str(percent.id)]

        quote = await client.post(
            "/api/v1/rewards/quote",
            json={"rewardId": str(percent.id), "subtotal": "40.00"},
            headers=_as(customer),
        )
        assert quote.status_code == 200
        assert quote.json()["discount"] == 6.0
        assert quote.json()["error"] is None

        foreign_quote = await client.post(
            "/api/v1/rewards/quote",
            json={"rewardId": str(percent.id), "subtotal": "40.00"},
            headers=_as(other),
        )
        assert foreign_quote.json()["error"] == "unavailable"

        not_yours = await client.post(
            "/api/v1/orders", json={**order_body, "customerId": str(customer.id)}, headers=_as(other)
        )
        assert not_yours.status_code == 403

        placed = await client.post("/api/v1/orders", json=order_body, headers=_as(customer))
        assert placed.status_code == 201
        order = placed.json()
        assert order["rewardClaimed"] is True
        assert order["originalAmount"] == 25.0
        assert order["discountAmount"] == 10.0
        assert order["totalAmount"] == 15.0
        assert order["customerId"] == str(customer.id)
        assert order["visit"]["totalVisits"] == 1

        redeem = await client.post(f"/api/v1/rewards/{fixed.id}/redeem", headers=_as(staff))
        assert redeem.status_code == 409

        reuse = await client.post("/api/v1/orders", json=order_body, headers=_as(customer))
        assert reuse.status_code == 422

        counter = await client.post(f"/api/v1/rewards/{percent.id}/redeem", headers=_as(staff))
        assert counter.status_code == 200
        assert counter.json()["status"] == "claimed"

        claimed = await client.get(
            f"/api/v1/customers/{customer.id}/rewards", params={"status": "claimed"}, headers=_as(customer)
        )
        assert {reward["id"] for reward in claimed.json()} == {str(fixed.id), str(percent.id)}

        mine = await client.get(f"/api/v1/orders/{order['id']}", headers=_as(customer))
        assert mine.status_code == 200
        peek = await client.get(f"/api/v1/orders/{order['id']}", headers=_as(other))
        assert peek.status_code == 403

        preparing = await client.patch(
            f"/api/v1/orders/{order['id']}/status", json={"status": "preparing"}, headers=_as(staff)
        )
        assert preparing.status_code == 200
        assert preparing.json()["status"] == "preparing"

        backwards = await client.patch(
            f"/api/v1/orders/{order['id']}/status", json={"status": "pending"}, headers=_as(staff)
        )
        assert backwards.status_code == 409

        kitchen = await client.get("/api/v1/orders", params={"status": "preparing"}, headers=_as(staff))
        assert [row["id"] for row in kitchen.json()] == [order["id"]]
        denied = await client.get("/api/v1/orders", headers=_as(customer))
        assert denied.status_code == 403


@pytest.mark.asyncio
async def test_staff_guest_order_has_no_customer(app_with_db, make_profile) -> None:
    app, session_factory = app_with_db
    _, _, staff, _ = await _seed_people(session_factory, make_profile)

    async with _client(app) as client:
        response = await client.post(
            "/api/v1/orders",
            json={"tableNumber": "B-4", "items": [{"name": "Tea", "quantity": 2, "price": "3.00"}]},
            headers=_as(staff),
        )

    assert response.status_code == 201
    body = response.json()
    assert body["customerId"] is None
    assert body["visit"] is None
    assert body["totalAmount"] == 6.0


@pytest.mark.asyncio
async def test_settings_administration(app_with_db, make_profile) -> None:
    app, session_factory = app_with_db
    customer, _, staff, admin = await _seed_people(session_factory, make_profile)

    async with _client(app) as client:
        assert (await client.get("/api/v1/settings", headers=_as(staff))).status_code == 403

        listing = await client.get("/api/v1/settings", headers=_as(admin))
        assert listing.status_code == 200
        assert {entry["key"] for entry in listing.json()} >= {"milestone_frequency", "tier_thresholds"}

        invalid = await client.put(
            "/api/v1/settings/milestone_frequency", json={"value": "often"}, headers=_as(admin)
        )
        assert invalid.status_code == 422

        unknown = await client.get("/api/v1/settings/free_lunch", headers=_as(admin))
        assert unknown.status_code == 404

        updated = await client.put("/api/v1/settings/milestone_frequency", json={"value": 2}, headers=_as(admin))
        assert updated.status_code == 200
        assert updated.json()["value"] == 2
        assert updated.json()["isDefault"] is False
        assert updated.json()["updatedById"] == str(admin.id)

        await client.post("/api/v1/visits", json={"customerId": str(customer.id)}, headers=_as(staff))
        second = await client.post("/api/v1/visits", json={"customerId": str(customer.id)}, headers=_as(staff))
        assert [reward["kind"] for reward in second.json()["rewardsIssued"]] == ["milestone"]

        reset = await client.delete("/api/v1/settings/milestone_frequency", headers=_as(admin))
        assert reset.status_code == 200
        assert reset.json()["value"] == 6
        assert reset.json()["isDefault"] is True


@pytest.mark.asyncio
async def test_invitation_flow_over_http(app_with_db, make_profile) -> None:
    app, session_factory = app_with_db
    customer, _, staff, admin = await _seed_people(session_factory, make_profile)

    async with _client(app) as client:
        refused = await client.post(
            "/api/v1/roles/invitations", json={"email": customer.email}, headers=_as(staff)
        )
        assert refused.status_code == 403

        issued = await client.post("/api/v1/roles/invitations", json={"email": customer.email}, headers=_as(admin))
        assert issued.status_code == 201
        token = issued.json()["token"]
        assert issued.json()["role"] == "admin"

        redeemed = await client.post(
            "/api/v1/roles/invitations/redeem", json={"token": token}, headers=_as(customer)
        )
        assert redeemed.status_code == 200
        assert "admin" in redeemed.json()["roles"]

        replay = await client.post("/api/v1/roles/invitations/redeem", json={"token": token}, headers=_as(customer))
        assert replay.status_code == 409

        granted = await client.post(
            "/api/v1/roles/grants", json={"email": "nosy@example.com", "role": "staff"}, headers=_as(admin)
        )
        assert granted.status_code == 200
        assert granted.json()["roles"] == ["customer", "staff"]

        revoked = await client.delete(
            "/api/v1/roles/grants/staff", params={"email": "nosy@example.com"}, headers=_as(admin)
        )
        assert revoked.status_code == 200
        assert revoked.json()["roles"] == ["customer"]
        assert revoked.json()["changed"] is True


@pytest.mark.asyncio
async def test_birthday_sweep_endpoint_requires_admin(app_with_db, make_profile) -> None:
    app, session_factory = app_with_db
    _, _, staff, admin = await _seed_people(session_factory, make_profile)

    async with _client(app) as client:
        denied = await client.post("/api/v1/rewards/birthdays/run", json={"day": "2026-04-12"}, headers=_as(staff))
        assert denied.status_code == 403

        ran = await client.post("/api/v1/rewards/birthdays/run", json={"day": "2026-04-12"}, headers=_as(admin))

    assert ran.status_code == 200
    assert ran.json() == {"day": "2026-04-12", "enabled": True, "issued": 0, "skipped": 0}
