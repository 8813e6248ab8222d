"""Domain layer - Pure business entities and logic"""

from .errors import (
    TaskTimeError,
    ValidationError,
    ReferentialIntegrityError,
    InvalidDurationError,
    InvalidBackupError,
    StorageError,
    StorageConflictError,
)
from .models import (
    Task,
    TaskDraft,
    TaskUpdate,
    Project,
    TaskStatus,
    SortMode,
    ImportMode,
    TaskFilters,
    UserPreferences,
    TaskStats,
    TaskView,
)
from .timers import StoppedTimer, RunningTimer, TimerState

__all__ = [
    "TaskTimeError", "ValidationError", "ReferentialIntegrityError", "InvalidDurationError",
    "InvalidBackupError", "StorageError", "StorageConflictError",
    "Task", "TaskDraft", "TaskUpdate", "Project", "TaskStatus", "SortMode", "ImportMode",
    "TaskFilters", "UserPreferences", "TaskStats", "TaskView",
    "StoppedTimer", "RunningTimer", "TimerState",
]
