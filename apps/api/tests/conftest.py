import os
import sys
from datetime import date
from pathlib import Path
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


def _configure_path() -> None:
    src_path = Path(__file__).resolve().parents[1] / "src"
    if src_path.exists():
        sys.path.insert(0, str(src_path))


_configure_path()
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("INTERNAL_API_KEY", "")

from tablerewards_api.app import create_app  # noqa: E402
from tablerewards_api.db.base import Base  # noqa: E402
from tablerewards_api.db.session import get_session  # noqa: E402
from tablerewards_api.models.customer_profile import CustomerProfile, CustomerRole, CustomerRoleEnum  # noqa: E402
from tablerewards_api.observability.loyalty import get_loyalty_store  # noqa: E402


@pytest.fixture(autouse=True)
def reset_loyalty_counters():
    get_loyalty_store().reset()
    yield
    get_loyalty_store().reset()


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """File-backed sqlite so separate sessions get separate connections."""

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'loyalty.db'}", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def app_with_db(session_factory):
    app = create_app()

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    try:
        yield app, session_factory
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_profile():
    """Insert a profile directly, bypassing the signup hook."""

    async def _make(
        session: AsyncSession,
        email: str,
        *,
        roles: tuple[CustomerRoleEnum, ...] = (CustomerRoleEnum.CUSTOMER,),
        full_name: str = "Test Customer",
        date_of_birth: date | None = None,
        referral_code: str | None = None,
    ) -> CustomerProfile:
        profile = CustomerProfile(
            id=uuid4(),
            email=email,
            full_name=full_name,
            date_of_birth=date_of_birth,
            referral_code=referral_code or uuid4().hex[:8].upper(),
        )
        for role in roles:
            profile.roles.append(CustomerRole(role=role))
        session.add(profile)
        await session.flush()
        return profile

    return _make