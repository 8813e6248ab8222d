"""
Pytest configuration and fixtures.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Add project root
sys.path.insert(0, str(Path(__file__).parent.parent))

from tasktime.infra.db import Base
from tasktime.infra.repository import KeyValueRepository
from tasktime.infra.storage import PersistenceFacade
from tasktime.i18n import set_language


class FakeClock:
    """Controllable wall clock; call it to read, advance() to move forward"""

    def __init__(self, start: datetime = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create a file-backed SQLite database for testing"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()

@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

@pytest_asyncio.fixture
async def db_session(session_factory):
    """Create a new session for a test"""
    async with session_factory() as session:
        yield session

@pytest.fixture
def store(db_session):
    """Persistence facade over the test database"""
    return PersistenceFacade(KeyValueRepository(session=db_session))

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture(autouse=True)
def english():
    set_language("en")
    yield
    set_language("en")
