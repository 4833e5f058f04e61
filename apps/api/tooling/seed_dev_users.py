"""Seed development profiles (customer, staff, admin) into the API database.

The first admin of a fresh installation has to come from somewhere: role
invitations can only be issued by an existing admin, so this script is the
bootstrap path for local and staging environments.
"""

from __future__ import annotations

import asyncio
import os
from typing import TypedDict
from uuid import NAMESPACE_URL, uuid5

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tablerewards_api.core.settings import settings
from tablerewards_api.models.customer_profile import CustomerProfile, CustomerRole, CustomerRoleEnum
from tablerewards_api.services.loyalty import ReferralCodeGenerator


class SeedProfile(TypedDict):
    email: str
    full_name: str
    roles: list[CustomerRoleEnum]


DEV_PROFILES: list[SeedProfile] = [
    {
        "email": os.getenv("DEV_CUSTOMER_EMAIL", "customer@tablerewards.dev").lower(),
        "full_name": "Customer QA",
        "roles": [CustomerRoleEnum.CUSTOMER],
    },
    {
        "email": os.getenv("DEV_STAFF_EMAIL", "staff@tablerewards.dev").lower(),
        "full_name": "Floor Staff QA",
        "roles": [CustomerRoleEnum.CUSTOMER, CustomerRoleEnum.STAFF],
    },
    {
        "email": os.getenv("DEV_ADMIN_EMAIL", "admin@tablerewards.dev").lower(),
        "full_name": "Admin QA",
        "roles": [CustomerRoleEnum.CUSTOMER, CustomerRoleEnum.ADMIN],
    },
]


async def seed_profiles(session: AsyncSession) -> None:
    codes = ReferralCodeGenerator(session)
    for seed in DEV_PROFILES:
        with session.no_autoflush:
            existing = await session.execute(
                select(CustomerProfile).where(func.lower(CustomerProfile.email) == seed["email"])
            )
        record = existing.scalar_one_or_none()
        if record is None:
            record = CustomerProfile(
                # Stable ids so the X-Session-User header survives reseeding.
                id=uuid5(NAMESPACE_URL, f"tablerewards:{seed['email']}"),
                email=seed["email"],
                full_name=seed["full_name"],
                referral_code=await codes.generate(),
            )
            session.add(record)
        else:
            record.full_name = seed["full_name"]

        held = record.role_names
        for role in seed["roles"]:
            if role not in held:
                record.roles.append(CustomerRole(role=role))
        await session.flush()
        print(f"{seed['email']}: {record.id}")
    await session.commit()


async def main() -> None:
    engine = create_async_engine(settings.database_url, future=True)
    session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        async with session_factory() as session:
            await seed_profiles(session)
        print("Development profiles ready ✅")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
