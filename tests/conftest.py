"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from claim_routing.adapters.persistence.database import Base
from claim_routing.adapters.persistence.models import CraftsmanModel, PartnerModel

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def intake_payload():
    """Customer payload as the intake wizard stores it (postal code nested in the claim)."""
    return {
        "name": "Erika Mustermann",
        "phone": "+49 2161 000000",
        "claim": {"plz": "41061 Mönchengladbach", "description": "Wasserschaden im Keller"},
    }


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """A fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def directory(db_session):
    """Two craftsmen and two partners."""
    db_session.add_all([
        CraftsmanModel(id="C1", name="Anna", role="owner", professions=["trocknung", "maler"], rating=4.0),
        CraftsmanModel(id="C2", name="Ben", role="trainee", professions=["glas"], rating=3.0),
        PartnerModel(id="P1", company_name="Trocken GmbH", professions=["trocknung"],
                     zip_codes=["41", "42"], rating=4.5, is_verified=True),
        PartnerModel(id="P2", company_name="Glas AG", professions=["glas"], zip_codes=None),
    ])
    await db_session.commit()
    return db_session
