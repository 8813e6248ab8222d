"""
SQLAlchemy database models and configuration.

Architecture Decision: Why SQLAlchemy?
- The engine only needs an async get/set store keyed by string; a single
  key-value table gives exactly that while keeping SQLite's durability
- Supports async operations for non-blocking database access
- A per-key version column lets the persistence layer detect concurrent writers
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional
import os

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import JSON, String, Integer, DateTime


# Base class for all models
class Base(DeclarativeBase):
    pass


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class KeyValueModel(Base):
    """SQLAlchemy model for one stored key (tasks, projects, runningTimers, ...)"""
    __tablename__ = "key_value_entries"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, nullable=False)


class DatabaseEngine:
    """
    Manages database connection and session lifecycle.

    Singleton pattern ensures only one engine exists per application.
    """
    _instance: Optional['DatabaseEngine'] = None

    def __init__(self, db_url: str):
        self.db_url = db_url
        self.engine = create_async_engine(db_url, echo=False)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

    @staticmethod
    def default_url() -> str:
        """SQLite file in the user's data dir (APPDATA on Windows, ~/.local/share elsewhere)"""
        if os.name == 'nt':  # Windows
            data_dir = Path(os.getenv('APPDATA')) / 'TaskTime'
        else:  # Linux/Mac
            data_dir = Path.home() / '.local' / 'share' / 'tasktime'

        data_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite+aiosqlite:///{data_dir / 'tasktime.db'}"

    @classmethod
    def get_instance(cls, db_url: Optional[str] = None) -> 'DatabaseEngine':
        """Get or create the database engine instance"""
        if cls._instance is None:
            cls._instance = cls(db_url or cls.default_url())
        return cls._instance

    @classmethod
    async def reset_instance(cls) -> None:
        """Dispose the shared engine (used on shutdown and between test runs)"""
        if cls._instance is not None:
            await cls._instance.engine.dispose()
            cls._instance = None

    async def create_tables(self):
        """Create all tables in the database"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    def get_session(self) -> AsyncSession:
        """Get a new database session"""
        return self.session_factory()


# Convenience functions
def get_engine(db_url: Optional[str] = None) -> DatabaseEngine:
    """Get the database engine instance"""
    return DatabaseEngine.get_instance(db_url)


async def init_db(db_url: Optional[str] = None) -> DatabaseEngine:
    """Initialize the database (create tables)"""
    engine = get_engine(db_url)
    await engine.create_tables()
    return engine
