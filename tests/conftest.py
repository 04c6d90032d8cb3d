"""
Shared fixtures: in-memory database, row factories and a handler context
pinned to a fixed clock.
"""

from datetime import datetime, timezone
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from commission_assistant.context import HandlerContext
from commission_assistant.storage import PV, Base, Commission, Meeting, User, commission_members

# Tuesday, 16:30 UTC
FIXED_NOW = datetime(2026, 3, 10, 16, 30, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session):
    async def factory(name: str, email: Optional[str] = None, tz: Optional[str] = None) -> User:
        user = User(name=name, email=email or f"{name.lower().replace(' ', '.')}@example.com", timezone=tz)
        session.add(user)
        await session.flush()
        return user

    return factory


@pytest.fixture
def make_commission(session):
    async def factory(name: str, *members: User, description: Optional[str] = None) -> Commission:
        commission = Commission(name=name, description=description)
        session.add(commission)
        await session.flush()
        for member in members:
            await session.execute(
                commission_members.insert().values(commission_id=commission.id, user_id=member.id)
            )
        await session.flush()
        return commission

    return factory


@pytest.fixture
def make_meeting(session):
    async def factory(
        commission: Commission,
        title: str,
        date: datetime,
        location: str = "Room 1",
        created_at: Optional[datetime] = None,
    ) -> Meeting:
        meeting = Meeting(title=title, date=date, location=location, commission_id=commission.id)
        if created_at is not None:
            meeting.created_at = created_at
        session.add(meeting)
        await session.flush()
        return meeting

    return factory


@pytest.fixture
def make_pv(session):
    async def factory(meeting: Meeting, content: str = "Minutes", created_at: Optional[datetime] = None) -> PV:
        pv = PV(meeting_id=meeting.id, content=content)
        if created_at is not None:
            pv.created_at = created_at
        session.add(pv)
        await session.flush()
        return pv

    return factory


@pytest_asyncio.fixture
async def alice(make_user):
    return await make_user("Alice Martin", "alice@example.com")


@pytest.fixture
def ctx_for(session):
    """Build a HandlerContext for a user, pinned to FIXED_NOW."""

    def factory(user: User, policy=None) -> HandlerContext:
        ctx = HandlerContext(session=session, user=user, clock=fixed_clock)
        if policy is not None:
            ctx.policy = policy
        return ctx

    return factory
