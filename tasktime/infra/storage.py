"""
Persistence Facade - load/save by key on top of the key-value repository.

Architecture Decision: Compare-and-swap on every save
A background process and a foreground process may both read-modify-write the
same keys. The facade remembers the version of each key it has read or
written; a save is rejected with StorageConflictError when the stored version
moved on in between, instead of silently dropping the other writer's update.
Keys this facade has never seen are written unconditionally.
"""

import logging
from typing import Any, Dict, Iterable

from sqlalchemy.exc import SQLAlchemyError

from tasktime.domain.errors import StorageError
from tasktime.infra.repository import KeyValueRepository

logger = logging.getLogger(__name__)

TASKS_KEY = "tasks"
PROJECTS_KEY = "projects"
RUNNING_TIMERS_KEY = "runningTimers"
SORT_MODE_KEY = "sortMode"
FILTERS_KEY = "filters"

ALL_KEYS = (TASKS_KEY, PROJECTS_KEY, RUNNING_TIMERS_KEY, SORT_MODE_KEY, FILTERS_KEY)


class PersistenceFacade:
    """
    Async load/save of JSON values by string key.

    Any database failure surfaces as StorageError.
    """

    def __init__(self, repository: KeyValueRepository = None):
        self.repository = repository or KeyValueRepository()
        self._versions: Dict[str, int] = {}

    async def load(self, keys: Iterable[str]) -> Dict[str, Any]:
        """
        Load values for `keys`.

        Returns:
            key -> value for every key that exists in the store
        """
        keys = list(keys)
        try:
            stored = await self.repository.get_many(keys)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load {', '.join(keys)}: {e}") from e

        for key in keys:
            # A key that does not exist yet is "version 0" for the next save
            self._versions[key] = stored[key].version if key in stored else 0
        return {key: entry.value for key, entry in stored.items()}

    async def save(self, entries: Dict[str, Any]) -> None:
        """
        Save several keys at once.

        Raises:
            StorageConflictError: another writer changed one of the keys
            StorageError: the database write failed
        """
        expected = {key: self._versions[key] for key in entries if key in self._versions}
        try:
            versions = await self.repository.put_many(entries, expected)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save {', '.join(entries)}: {e}") from e

        self._versions.update(versions)
        logger.debug(f"Saved {', '.join(f'{k}@v{v}' for k, v in versions.items())}")

    def forget_versions(self) -> None:
        """Drop remembered versions so the next save overwrites unconditionally"""
        self._versions.clear()
