"""Infrastructure layer - Database and persistence"""

from .db import DatabaseEngine, KeyValueModel, get_engine, init_db
from .repository import KeyValueRepository
from .storage import PersistenceFacade

__all__ = ["DatabaseEngine", "get_engine", "init_db", "KeyValueModel", "KeyValueRepository", "PersistenceFacade"]
