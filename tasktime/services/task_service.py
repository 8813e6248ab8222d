"""
Task Manager - the task/timer state engine.

Architecture Decision: One state-owning service per process
A single TaskManager instance owns the task, project and timer collections and
is handed to whatever drives it (UI callbacks, scripts, tests). Every mutation
follows the same order: validate, mutate in memory, then await persistence.
A failed save is logged and remembered in `last_storage_error` but never rolls
the in-memory change back; `flush()` retries.

Only running timers are persisted. Because a running timer stores an absolute
start instant, elapsed time keeps accruing across a process restart.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Set, Union

from pydantic import ValidationError as PydanticValidationError

from tasktime.domain.errors import ReferentialIntegrityError, StorageError, ValidationError
from tasktime.domain.models import (
    ImportMode,
    Project,
    SortMode,
    Task,
    TaskDraft,
    TaskFilters,
    TaskStats,
    TaskStatus,
    TaskUpdate,
    TaskView,
    UserPreferences,
)
from tasktime.domain.timers import RunningTimer, StoppedTimer, TimerState, restore_running, snapshot_running
from tasktime.i18n import status_text
from tasktime.infra.storage import (
    ALL_KEYS,
    FILTERS_KEY,
    PROJECTS_KEY,
    RUNNING_TIMERS_KEY,
    SORT_MODE_KEY,
    TASKS_KEY,
    PersistenceFacade,
)
from tasktime.services.backup_service import apply_import, build_backup_payload
from tasktime.services.sort_service import filter_tasks, sort_tasks
from tasktime.services.stats_service import compute_stats, is_overdue
from tasktime.utils import Clock, new_id, parse_duration, round_half_away, utc_now

logger = logging.getLogger(__name__)

PROJECT_ID_PREFIX = "proj_"


def _validation_message(error: PydanticValidationError) -> str:
    parts = []
    for err in error.errors():
        location = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{location}: {err.get('msg')}" if location else err.get("msg", ""))
    return "; ".join(parts)


class TaskManager:
    """
    Owns tasks, projects, timers and preferences for one process.

    Build it with `await TaskManager.load(store)` so persisted state (including
    running timers) is restored.
    """

    def __init__(self, store: PersistenceFacade, clock: Optional[Clock] = None):
        self.store = store
        self.clock: Callable = clock or utc_now
        self.tasks: List[Task] = []
        self.projects: List[Project] = []
        self.timers: Dict[str, RunningTimer] = {}
        self.preferences = UserPreferences()
        self.last_storage_error: Optional[StorageError] = None
        # Keys whose latest in-memory value has not reached the store
        self.unsaved_keys: Set[str] = set()

    # ---- loading / persistence ----

    @classmethod
    async def load(cls, store: PersistenceFacade, clock: Optional[Clock] = None) -> "TaskManager":
        """
        Create a manager from persisted state.

        Raises:
            StorageError: the store could not be read
        """
        manager = cls(store, clock)
        data = await store.load(ALL_KEYS)

        manager.tasks = manager._load_records(data.get(TASKS_KEY), Task)
        manager.projects = manager._load_records(data.get(PROJECTS_KEY), Project)

        # Restart recovery: only timers whose task still exists survive
        task_ids = {t.id for t in manager.tasks}
        for task_id, timer in restore_running(data.get(RUNNING_TIMERS_KEY)).items():
            if task_id in task_ids:
                manager.timers[task_id] = timer
            else:
                logger.debug(f"Dropping running timer for missing task {task_id}")

        filters = data.get(FILTERS_KEY)
        try:
            manager.preferences = UserPreferences(
                sort_mode=SortMode.parse(data.get(SORT_MODE_KEY)),
                filters=TaskFilters.model_validate(filters) if filters else TaskFilters(),
            )
        except PydanticValidationError as e:
            logger.warning(f"Ignoring unreadable filter preferences: {e}")
            manager.preferences = UserPreferences(sort_mode=SortMode.parse(data.get(SORT_MODE_KEY)))

        logger.info(
            f"Loaded {len(manager.tasks)} tasks, {len(manager.projects)} projects, "
            f"{len(manager.timers)} running timers"
        )
        return manager

    @staticmethod
    def _load_records(raw: Any, model_cls) -> list:
        records = []
        if not isinstance(raw, list):
            return records
        for data in raw:
            try:
                records.append(model_cls.model_validate(data))
            except PydanticValidationError as e:
                logger.warning(f"Skipping unreadable stored {model_cls.__name__.lower()}: {e}")
        return records

    def _dump_tasks(self) -> list:
        return [t.model_dump(mode="json", by_alias=True) for t in self.tasks]

    def _dump_projects(self) -> list:
        return [p.model_dump(mode="json", by_alias=True) for p in self.projects]

    async def _persist(self, entries: Dict[str, Any]) -> bool:
        """
        Save entries; failures are logged and remembered, never raised.

        `last_storage_error` stays set until every key that failed has been
        saved again.
        """
        try:
            await self.store.save(entries)
        except StorageError as e:
            self.unsaved_keys.update(entries)
            self.last_storage_error = e
            logger.error(f"Saving {', '.join(entries)} failed: {e}")
            return False
        self.unsaved_keys.difference_update(entries)
        if not self.unsaved_keys:
            self.last_storage_error = None
        return True

    async def _save_tasks(self) -> bool:
        return await self._persist({TASKS_KEY: self._dump_tasks()})

    async def _save_projects(self) -> bool:
        return await self._persist({PROJECTS_KEY: self._dump_projects()})

    async def _save_timers(self) -> bool:
        return await self._persist({RUNNING_TIMERS_KEY: snapshot_running(self.timers)})

    async def flush(self, force: bool = False) -> bool:
        """
        Save every collection again, e.g. after a reported StorageError.

        Args:
            force: overwrite even if another writer changed the stored values
        """
        if force:
            self.store.forget_versions()
        return await self._persist({
            TASKS_KEY: self._dump_tasks(),
            PROJECTS_KEY: self._dump_projects(),
            RUNNING_TIMERS_KEY: snapshot_running(self.timers),
            SORT_MODE_KEY: self.preferences.sort_mode.value,
            FILTERS_KEY: self.preferences.filters.model_dump(mode="json", by_alias=True),
        })

    # ---- lookups ----

    def get_task(self, task_id: str) -> Optional[Task]:
        return next((t for t in self.tasks if t.id == task_id), None)

    def get_project(self, project_id: str) -> Optional[Project]:
        return next((p for p in self.projects if p.id == project_id), None)

    def project_name(self, project_id: Optional[str]) -> str:
        project = self.get_project(project_id) if project_id else None
        return project.name if project else ""

    def project_names(self) -> List[str]:
        """Distinct names of projects referenced by at least one task"""
        used = {t.project_id for t in self.tasks if t.project_id}
        names = []
        for project in self.projects:
            if project.id in used and project.name not in names:
                names.append(project.name)
        return names

    def _check_project(self, project_id: Optional[str]) -> None:
        if project_id and self.get_project(project_id) is None:
            raise ValidationError(f"Unknown project: {project_id}")

    # ---- task CRUD ----

    async def create_task(self, data: Union[TaskDraft, Dict[str, Any]]) -> Task:
        """
        Create a task and append it to the collection.

        Raises:
            ValidationError: empty title, negative numbers, unknown fields or
                an unknown project
        """
        try:
            draft = data if isinstance(data, TaskDraft) else TaskDraft.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(_validation_message(e)) from e
        self._check_project(draft.project_id)

        now = self.clock()
        task = Task(
            id=new_id((t.id for t in self.tasks), now),
            title=draft.title,
            description=draft.description or "",
            project_id=draft.project_id,
            estimated_hours=draft.estimated_hours or 0,
            actual_hours=draft.actual_hours or 0,
            hourly_rate=draft.hourly_rate or 0,
            deadline=draft.deadline,
            status=draft.status or TaskStatus.NOT_STARTED,
            created_at=now,
            updated_at=now,
        )
        self.tasks.append(task)
        await self._save_tasks()
        logger.info(f"Created task {task.id}: {task.title}")
        return task

    async def update_task(self, task_id: str,
                          changes: Union[TaskUpdate, Dict[str, Any]]) -> Optional[Task]:
        """
        Shallow-merge `changes` over the task and refresh `updated_at`.

        Unknown ids are ignored (returns None).

        Raises:
            ValidationError: unknown fields or invalid values; the task is unchanged
        """
        index = next((i for i, t in enumerate(self.tasks) if t.id == task_id), None)
        if index is None:
            return None

        try:
            update = changes if isinstance(changes, TaskUpdate) else TaskUpdate.model_validate(changes)
        except PydanticValidationError as e:
            raise ValidationError(_validation_message(e)) from e

        fields = update.model_dump(exclude_unset=True)
        if "project_id" in fields:
            self._check_project(fields["project_id"])

        merged = {**self.tasks[index].model_dump(), **fields, "updated_at": self.clock()}
        try:
            task = Task.model_validate(merged)
        except PydanticValidationError as e:
            raise ValidationError(_validation_message(e)) from e

        self.tasks[index] = task
        await self._save_tasks()
        return task

    async def delete_task(self, task_id: str) -> bool:
        """Remove a task and its timer. Returns False for unknown ids."""
        before = len(self.tasks)
        self.tasks = [t for t in self.tasks if t.id != task_id]
        if len(self.tasks) == before:
            return False

        self.timers.pop(task_id, None)
        await self._persist({
            TASKS_KEY: self._dump_tasks(),
            RUNNING_TIMERS_KEY: snapshot_running(self.timers),
        })
        logger.info(f"Deleted task {task_id}")
        return True

    # ---- projects ----

    async def create_project(self, name: str) -> Project:
        """
        Raises:
            ValidationError: empty name
        """
        now = self.clock()
        try:
            project = Project(
                id=new_id((p.id for p in self.projects), now, prefix=PROJECT_ID_PREFIX),
                name=name,
                created_at=now,
            )
        except PydanticValidationError as e:
            raise ValidationError(_validation_message(e)) from e

        self.projects.append(project)
        await self._save_projects()
        logger.info(f"Created project {project.id}: {project.name}")
        return project

    async def rename_project(self, project_id: str, name: str) -> Optional[Project]:
        """Rename a project; unknown ids are ignored (returns None)"""
        index = next((i for i, p in enumerate(self.projects) if p.id == project_id), None)
        if index is None:
            return None
        try:
            project = Project.model_validate({**self.projects[index].model_dump(), "name": name})
        except PydanticValidationError as e:
            raise ValidationError(_validation_message(e)) from e

        self.projects[index] = project
        await self._save_projects()
        return project

    async def delete_project(self, project_id: str) -> bool:
        """
        Delete an unused project. Returns False for unknown ids.

        Raises:
            ReferentialIntegrityError: a task still references the project
        """
        in_use = [t.id for t in self.tasks if t.project_id == project_id]
        if in_use:
            raise ReferentialIntegrityError(project_id, in_use)

        before = len(self.projects)
        self.projects = [p for p in self.projects if p.id != project_id]
        if len(self.projects) == before:
            return False
        await self._save_projects()
        logger.info(f"Deleted project {project_id}")
        return True

    # ---- timers ----

    def get_timer(self, task_id: str) -> TimerState:
        """Running timer for a task, or a stopped one rebuilt from actual_hours"""
        timer = self.timers.get(task_id)
        if isinstance(timer, RunningTimer):
            return timer
        task = self.get_task(task_id)
        hours = task.actual_hours if task else 0
        return StoppedTimer(elapsed=round_half_away(hours * 3600))

    def is_running(self, task_id: str) -> bool:
        return isinstance(self.timers.get(task_id), RunningTimer)

    def elapsed_seconds(self, task_id: str) -> int:
        """Live elapsed seconds: running baseline + wall clock, or stored actual hours"""
        timer = self.timers.get(task_id)
        if isinstance(timer, RunningTimer):
            return timer.seconds_at(self.clock())
        task = self.get_task(task_id)
        return round_half_away(task.actual_hours * 3600) if task else 0

    def task_cost(self, task_id: str) -> float:
        task = self.get_task(task_id)
        if task is None or task.hourly_rate <= 0:
            return 0.0
        return self.elapsed_seconds(task_id) / 3600 * task.hourly_rate

    async def toggle_timer(self, task_id: str) -> Optional[TimerState]:
        """
        Start a stopped timer or stop a running one.

        Stopping folds the run into `elapsed` and writes it to the task's
        `actual_hours`. Unknown tasks are ignored (returns None).
        """
        if self.get_task(task_id) is None:
            return None

        now = self.clock()
        timer = self.get_timer(task_id)
        if isinstance(timer, RunningTimer):
            stopped = timer.stop(now)
            # Stopped time lives in actual_hours only
            self.timers.pop(task_id, None)
            await self.update_task(task_id, TaskUpdate(actual_hours=stopped.elapsed / 3600))
            await self._save_timers()
            logger.info(f"Stopped timer for task {task_id} at {stopped.elapsed}s")
            return stopped

        running = timer.start(now)
        self.timers[task_id] = running
        await self._save_timers()
        logger.info(f"Started timer for task {task_id} from {running.elapsed}s")
        return running

    async def reset_timer(self, task_id: str) -> bool:
        """Discard the timer and zero `actual_hours`. Unknown tasks are ignored."""
        if self.get_task(task_id) is None:
            return False

        was_running = isinstance(self.timers.pop(task_id, None), RunningTimer)
        await self.update_task(task_id, TaskUpdate(actual_hours=0))
        if was_running:
            await self._save_timers()
        return True

    async def edit_timer(self, task_id: str, text: str) -> Optional[int]:
        """
        Set a task's tracked time from "HH:MM:SS", "HH:MM" or decimal hours.

        A running timer keeps running from the new baseline.

        Returns:
            The new number of seconds, or None for unknown tasks

        Raises:
            InvalidDurationError: the text could not be parsed; nothing changes
        """
        seconds = parse_duration(text)
        if self.get_task(task_id) is None:
            return None

        running = self.is_running(task_id)
        if running:
            self.timers[task_id] = RunningTimer(elapsed=seconds, start_time=self.clock())

        await self.update_task(task_id, TaskUpdate(actual_hours=seconds / 3600))
        if running:
            await self._save_timers()
        return seconds

    # ---- import / export ----

    async def import_backup(self, payload: Any, mode: ImportMode = ImportMode.MERGE):
        """
        Replace or merge local projects and tasks with a backup payload.

        Returns:
            (projects, tasks) after the import

        Raises:
            InvalidBackupError: malformed payload; local state is untouched
        """
        projects, tasks = apply_import(self.projects, self.tasks, payload, mode)

        self.projects = projects
        self.tasks = tasks

        # Stopped timers are rebuilt from actual_hours; running ones survive
        # only while their task does
        task_ids = {t.id for t in tasks}
        self.timers = {
            task_id: timer for task_id, timer in self.timers.items()
            if isinstance(timer, RunningTimer) and task_id in task_ids
        }

        await self._persist({
            PROJECTS_KEY: self._dump_projects(),
            TASKS_KEY: self._dump_tasks(),
            RUNNING_TIMERS_KEY: snapshot_running(self.timers),
        })
        logger.info(
            f"Imported backup ({ImportMode(mode).value}): "
            f"{len(projects)} projects, {len(tasks)} tasks"
        )
        return projects, tasks

    def export_backup(self) -> Dict[str, Any]:
        """Backup document for the current projects and tasks"""
        return build_backup_payload(self.projects, self.tasks, self.clock())

    # ---- preferences ----

    async def set_sort_mode(self, mode) -> SortMode:
        mode = SortMode.parse(mode)
        self.preferences = self.preferences.model_copy(update={"sort_mode": mode})
        await self._persist({SORT_MODE_KEY: mode.value})
        return mode

    async def set_filters(self, filters: Union[TaskFilters, Dict[str, Any]]) -> TaskFilters:
        """
        Raises:
            ValidationError: unknown status or fields
        """
        try:
            filters = filters if isinstance(filters, TaskFilters) else TaskFilters.model_validate(filters)
        except PydanticValidationError as e:
            raise ValidationError(_validation_message(e)) from e
        self.preferences = self.preferences.model_copy(update={"filters": filters})
        await self._persist({FILTERS_KEY: filters.model_dump(mode="json", by_alias=True)})
        return filters

    # ---- derived views ----

    def stats(self) -> TaskStats:
        return compute_stats(self.tasks, self.clock())

    def sorted_tasks(self, mode=None) -> List[Task]:
        """Tasks in `mode` order (defaults to the stored sort preference)"""
        return sort_tasks(self.tasks, mode if mode is not None else self.preferences.sort_mode, self.projects)

    def views(self, mode=None, filters: Optional[TaskFilters] = None) -> List[TaskView]:
        """
        Rows for rendering: filtered, sorted, with live timer figures.

        Sort mode and filters default to the stored preferences.
        """
        now = self.clock()
        filters = filters if filters is not None else self.preferences.filters
        tasks = filter_tasks(self.sorted_tasks(mode), filters)
        return [
            TaskView(
                task=task,
                project_name=self.project_name(task.project_id),
                status_text=status_text(task.status),
                seconds=self.elapsed_seconds(task.id),
                is_running=self.is_running(task.id),
                is_overdue=is_overdue(task, now),
                cost=self.task_cost(task.id),
            )
            for task in tasks
        ]
