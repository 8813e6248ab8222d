"""
Domain Models using Pydantic for validation.

Architecture Decision: Why Pydantic?
Pydantic provides runtime data validation, ensuring data integrity when loading
from the key-value store or from backup files. Records use camelCase aliases on
the wire so backups stay compatible with the browser-extension format, and
extra fields are forbidden so unknown keys are rejected instead of silently
merged.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=500)]

_WIRE_CONFIG = ConfigDict(
    from_attributes=True,
    alias_generator=to_camel,
    populate_by_name=True,
    extra="forbid",
)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Naive timestamps are taken as UTC so they compare with aware ones
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TaskStatus(str, Enum):
    """Task lifecycle status. Values are the stored/wire strings."""

    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    ON_HOLD = "On Hold"
    COMPLETED = "Completed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    TaskStatus.NOT_STARTED: 0,
    TaskStatus.IN_PROGRESS: 1,
    TaskStatus.ON_HOLD: 2,
    TaskStatus.COMPLETED: 3,
}


class SortMode(str, Enum):
    CREATED_ASC = "created_asc"
    CREATED_DESC = "created_desc"
    DEADLINE_ASC = "deadline_asc"
    DEADLINE_DESC = "deadline_desc"
    TITLE_ASC = "title_asc"
    TITLE_DESC = "title_desc"
    STATUS = "status"
    PROJECT = "project"

    @classmethod
    def parse(cls, raw) -> "SortMode":
        """Resolve a stored/user value; unset or unknown values fall back to created_desc"""
        if isinstance(raw, cls):
            return raw
        try:
            return cls(raw)
        except ValueError:
            return cls.CREATED_DESC


class ImportMode(str, Enum):
    REPLACE = "replace"
    MERGE = "merge"


class _TaskFields(BaseModel):
    """Shared validators for task-shaped models"""
    model_config = _WIRE_CONFIG

    @field_validator("description", mode="before", check_fields=False)
    @classmethod
    def _none_description(cls, value):
        return "" if value is None else value

    @field_validator("project_id", "deadline", mode="before", check_fields=False)
    @classmethod
    def _blank_to_none(cls, value):
        # Forms submit "" for "no project" / "no deadline"
        if isinstance(value, str) and not value.strip():
            return None
        return value


class Task(_TaskFields):
    """
    A unit of trackable work.

    `actual_hours` mirrors the accumulated timer seconds whenever no timer is
    running for the task; while one runs, the timer is authoritative.
    """

    id: str = Field(..., min_length=1)
    title: NonEmptyStr
    description: str = ""
    project_id: Optional[str] = None
    estimated_hours: float = Field(default=0.0, ge=0)
    actual_hours: float = Field(default=0.0, ge=0)
    hourly_rate: float = Field(default=0.0, ge=0)
    deadline: Optional[date] = None
    status: TaskStatus = TaskStatus.NOT_STARTED
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _aware(cls, value):
        return as_utc(value)


class TaskDraft(_TaskFields):
    """Input for creating a task. Numeric fields default to 0, status to Not Started."""

    title: NonEmptyStr
    description: Optional[str] = ""
    project_id: Optional[str] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    actual_hours: Optional[float] = Field(default=None, ge=0)
    hourly_rate: Optional[float] = Field(default=None, ge=0)
    deadline: Optional[date] = None
    status: Optional[TaskStatus] = None


class TaskUpdate(_TaskFields):
    """
    Partial update for a task; only fields explicitly set are applied.

    Unknown fields are rejected. The merged record is re-validated as a Task,
    so e.g. an explicit `title=None` or `""` fails.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    project_id: Optional[str] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    hourly_rate: Optional[float] = None
    deadline: Optional[date] = None
    status: Optional[TaskStatus] = None


class Project(BaseModel):
    """A named grouping of tasks. Ids carry a `proj_` prefix."""
    model_config = _WIRE_CONFIG

    id: str = Field(..., min_length=1)
    name: NonEmptyStr
    created_at: Optional[datetime] = None

    @field_validator("created_at")
    @classmethod
    def _aware(cls, value):
        return as_utc(value)


class TaskFilters(BaseModel):
    """Last-used list filters"""
    model_config = _WIRE_CONFIG

    status: Optional[TaskStatus] = None
    project_id: Optional[str] = None


class UserPreferences(BaseModel):
    """
    User preferences stored alongside the task data.

    Stored under the `sortMode` and `filters` keys.
    """
    model_config = ConfigDict(from_attributes=True)

    sort_mode: SortMode = SortMode.CREATED_DESC
    filters: TaskFilters = Field(default_factory=TaskFilters)


class TaskStats(BaseModel):
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    overdue: int = 0
    completion_rate: int = 0
    total_estimated: float = 0.0
    total_actual: float = 0.0
    efficiency: int = 0


class TaskView(BaseModel):
    """Read-only row handed to renderers: a task plus its live timer figures"""

    task: Task
    project_name: str = ""
    status_text: str = ""
    seconds: int = 0
    is_running: bool = False
    is_overdue: bool = False
    cost: float = 0.0
