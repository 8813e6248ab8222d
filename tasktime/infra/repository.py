"""
Repository Pattern Implementation.

Architecture Decision: Why Repository Pattern?
Separates data access logic from business logic. Makes it easy to:
- Switch database implementations
- Mock data for testing
- Change data sources (local DB to a browser-style key-value store)

The store is a plain versioned key-value table: every write bumps the key's
version, and a writer may state which version it expects to overwrite.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel
from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tasktime.domain.errors import StorageConflictError
from tasktime.infra.db import KeyValueModel, get_engine


class StoredEntry(BaseModel):
    """A stored value together with its version counter"""
    key: str
    value: Any = None
    version: int = 0


class KeyValueRepository:
    """
    Handles all key-value database operations.
    """

    def __init__(self, session: Optional[AsyncSession] = None):
        self.session = session

    async def _get_session(self) -> AsyncSession:
        """Get session - either injected or create new one"""
        if self.session:
            return self.session
        engine = get_engine()
        return engine.get_session()

    async def get_many(self, keys: Iterable[str]) -> Dict[str, StoredEntry]:
        """Get the stored entries for `keys`; missing keys are simply absent"""
        keys = list(keys)
        session = await self._get_session()
        async with session:
            result = await session.execute(
                select(KeyValueModel).where(KeyValueModel.key.in_(keys))
            )
            models = result.scalars().all()
            return {
                m.key: StoredEntry(key=m.key, value=m.value, version=m.version)
                for m in models
            }

    async def put_many(self, entries: Dict[str, Any],
                       expected_versions: Optional[Dict[str, int]] = None) -> Dict[str, int]:
        """
        Write several keys in one transaction.

        The version check is part of each write statement
        (UPDATE ... WHERE version = expected, or an INSERT that must not hit an
        existing key), so a writer that commits in between is always caught.

        Args:
            entries: key -> JSON-serializable value
            expected_versions: key -> version the caller last saw (0 = key must
                not exist yet). Keys not listed are written unconditionally.

        Returns:
            key -> new version

        Raises:
            StorageConflictError: if any stored version differs from the expected one.
                Nothing is written in that case.
        """
        expected_versions = expected_versions or {}
        now = datetime.now(timezone.utc)
        session = await self._get_session()
        async with session:
            versions: Dict[str, int] = {}
            conflicts: List[str] = []
            try:
                for key, value in entries.items():
                    expected = expected_versions.get(key)
                    if expected == 0:
                        await self._insert(session, key, value, now)
                        versions[key] = 1
                    elif expected is not None:
                        if await self._update(session, key, value, now, expected):
                            versions[key] = expected + 1
                        else:
                            conflicts.append(key)
                    else:
                        versions[key] = await self._overwrite(session, key, value, now)
            except IntegrityError:
                # Someone else created a key we expected to be new
                await session.rollback()
                raise StorageConflictError(sorted(conflicts + [key]))

            if conflicts:
                await session.rollback()
                raise StorageConflictError(sorted(conflicts))

            await session.commit()
            return versions

    @staticmethod
    async def _insert(session: AsyncSession, key: str, value: Any, now: datetime) -> None:
        await session.execute(
            insert(KeyValueModel).values(key=key, value=value, version=1, updated_at=now)
        )

    @staticmethod
    async def _update(session: AsyncSession, key: str, value: Any, now: datetime,
                      expected: Optional[int] = None) -> bool:
        """Bump one key's version; with `expected`, only if it still matches"""
        stmt = update(KeyValueModel).where(KeyValueModel.key == key)
        if expected is not None:
            stmt = stmt.where(KeyValueModel.version == expected)
        stmt = stmt.values(value=value, version=KeyValueModel.version + 1, updated_at=now)
        result = await session.execute(stmt, execution_options={"synchronize_session": False})
        return result.rowcount == 1

    async def _overwrite(self, session: AsyncSession, key: str, value: Any, now: datetime) -> int:
        if not await self._update(session, key, value, now):
            await self._insert(session, key, value, now)
            return 1
        # The UPDATE above holds the write lock, so this read is current
        result = await session.execute(
            select(KeyValueModel.version).where(KeyValueModel.key == key)
        )
        return result.scalar_one()

    async def delete_all(self) -> int:
        """Delete all stored keys. Returns count of deleted rows."""
        session = await self._get_session()
        async with session:
            result = await session.execute(delete(KeyValueModel))
            await session.commit()
            return result.rowcount
