"""Pytest configuration and fixtures."""

from datetime import datetime

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app.persistence.database import Base, get_db
from app.persistence.models import *  # noqa: F401, F403
from app.persistence.models.contact import Contact
from app.persistence.models.score import Score


@pytest.fixture
async def db_session():
    """Create a test database session."""
    # Use in-memory SQLite for testing
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def client(db_session):
    """Create a test API client bound to the test session."""
    from app.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def now():
    """Fixed reference time for date-relative rules."""
    return datetime(2025, 6, 15, 12, 0, 0)


@pytest.fixture
def make_contact(db_session):
    """Factory that stores a contact and, optionally, its score."""

    counter = {"n": 0}

    async def _make(segment: str | None = None, score: int = 0, **fields) -> Contact:
        counter["n"] += 1
        fields.setdefault("phone_e164", f"+8529000{counter['n']:04d}")
        fields.setdefault("tags", [])
        contact = Contact(**fields)
        db_session.add(contact)
        await db_session.flush()
        if segment is not None:
            db_session.add(Score(contact_id=contact.id, score=score, segment=segment, reasons=[]))
        await db_session.commit()
        return contact

    return _make
