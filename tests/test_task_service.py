"""
Tests for the TaskManager: CRUD, projects, timers and restart recovery.
"""

from datetime import date

import pytest

from tasktime.domain.errors import (
    InvalidDurationError,
    ReferentialIntegrityError,
    StorageConflictError,
    StorageError,
    ValidationError,
)
from tasktime.domain.models import SortMode, TaskStatus
from tasktime.domain.timers import RunningTimer, StoppedTimer
from tasktime.infra.repository import KeyValueRepository
from tasktime.infra.storage import PersistenceFacade
from tasktime.services.task_service import TaskManager

from .fakes import MemoryStore


@pytest.fixture
def memory_store():
    return MemoryStore()


class TestTaskCrud:

    @pytest.mark.asyncio
    async def test_create_task_applies_defaults(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)

        task = await manager.create_task({"title": "  Write report  "})

        assert task.title == "Write report"
        assert task.estimated_hours == 0
        assert task.actual_hours == 0
        assert task.hourly_rate == 0
        assert task.status == TaskStatus.NOT_STARTED
        assert task.created_at == clock.now
        assert task.updated_at == clock.now
        assert task.id == str(int(clock.now.timestamp() * 1000))
        assert manager.tasks == [task]
        assert memory_store.data["tasks"][0]["title"] == "Write report"

    @pytest.mark.asyncio
    async def test_ids_are_unique_within_one_millisecond(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)

        first = await manager.create_task({"title": "A"})
        second = await manager.create_task({"title": "B"})

        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_create_task_rejects_empty_title(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)

        with pytest.raises(ValidationError):
            await manager.create_task({"title": "   "})

        assert manager.tasks == []
        assert "tasks" not in memory_store.data

    @pytest.mark.asyncio
    async def test_create_task_rejects_unknown_project(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)

        with pytest.raises(ValidationError):
            await manager.create_task({"title": "A", "projectId": "proj_missing"})

    @pytest.mark.asyncio
    async def test_update_task_is_shallow_merge(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)
        task = await manager.create_task({"title": "A", "description": "keep", "estimatedHours": 2})
        clock.advance(60)

        updated = await manager.update_task(task.id, {"status": "In Progress", "estimatedHours": "3"})

        assert updated.status == TaskStatus.IN_PROGRESS
        assert updated.estimated_hours == 3
        assert updated.description == "keep"
        assert updated.created_at == task.created_at
        assert updated.updated_at == clock.now
        assert manager.get_task(task.id) == updated

    @pytest.mark.asyncio
    async def test_update_unknown_task_is_noop(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)

        assert await manager.update_task("nope", {"title": "B"}) is None
        assert await manager.update_task("nope", {"color": "red"}) is None
        assert memory_store.saves == []

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields_and_keeps_record(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)
        task = await manager.create_task({"title": "A"})

        with pytest.raises(ValidationError):
            await manager.update_task(task.id, {"color": "red"})
        with pytest.raises(ValidationError):
            await manager.update_task(task.id, {"title": ""})
        with pytest.raises(ValidationError):
            await manager.update_task(task.id, {"estimatedHours": -1})

        assert manager.get_task(task.id) == task

    @pytest.mark.asyncio
    async def test_delete_task_removes_timer(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)
        task = await manager.create_task({"title": "A"})
        await manager.toggle_timer(task.id)
        assert task.id in memory_store.data["runningTimers"]

        assert await manager.delete_task(task.id) is True

        assert manager.get_task(task.id) is None
        assert task.id not in manager.timers
        assert memory_store.data["runningTimers"] == {}
        assert memory_store.data["tasks"] == []

        # A later reset on the same id does nothing
        assert await manager.reset_timer(task.id) is False
        assert task.id not in manager.timers
        assert await manager.delete_task(task.id) is False


class TestProjects:

    @pytest.mark.asyncio
    async def test_create_and_rename_project(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)

        project = await manager.create_project("Website")
        assert project.id.startswith("proj_")

        renamed = await manager.rename_project(project.id, "Web site")
        assert renamed.name == "Web site"
        assert memory_store.data["projects"][0]["name"] == "Web site"

        assert await manager.rename_project("proj_missing", "X") is None
        with pytest.raises(ValidationError):
            await manager.rename_project(project.id, "")

    @pytest.mark.asyncio
    async def test_delete_project_in_use_fails(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)
        project = await manager.create_project("Website")
        task = await manager.create_task({"title": "A", "projectId": project.id})

        with pytest.raises(ReferentialIntegrityError) as excinfo:
            await manager.delete_project(project.id)

        assert excinfo.value.task_ids == [task.id]
        assert manager.projects == [project]

        await manager.update_task(task.id, {"projectId": None})
        assert await manager.delete_project(project.id) is True
        assert manager.projects == []

    @pytest.mark.asyncio
    async def test_project_names_lists_used_projects(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)
        used = await manager.create_project("Website")
        await manager.create_project("Unused")
        await manager.create_task({"title": "A", "projectId": used.id})

        assert manager.project_names() == ["Website"]
        assert manager.project_name(used.id) == "Website"
        assert manager.project_name(None) == ""


class TestTimers:

    @pytest.mark.asyncio
    async def test_start_then_stop_records_actual_hours(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)
        task = await manager.create_task({"title": "A"})

        started = await manager.toggle_timer(task.id)
        assert isinstance(started, RunningTimer)
        assert manager.is_running(task.id)

        clock.advance(90.7)
        assert manager.elapsed_seconds(task.id) == 90

        stopped = await manager.toggle_timer(task.id)
        assert stopped == StoppedTimer(elapsed=90)
        assert manager.get_task(task.id).actual_hours == 90 / 3600
        assert not manager.is_running(task.id)
        assert memory_store.data["runningTimers"] == {}

    @pytest.mark.asyncio
    async def test_second_run_continues_from_previous_elapsed(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)
        task = await manager.create_task({"title": "A", "actualHours": 0.5})

        await manager.toggle_timer(task.id)
        clock.advance(600)
        await manager.toggle_timer(task.id)

        assert manager.get_task(task.id).actual_hours == (1800 + 600) / 3600

    @pytest.mark.asyncio
    async def test_manual_hours_after_stop_are_the_next_baseline(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)
        task = await manager.create_task({"title": "A"})
        await manager.toggle_timer(task.id)
        clock.advance(60)
        await manager.toggle_timer(task.id)

        await manager.update_task(task.id, {"actualHours": 2})
        assert manager.get_timer(task.id) == StoppedTimer(elapsed=7200)

        await manager.toggle_timer(task.id)
        clock.advance(10)
        stopped = await manager.toggle_timer(task.id)

        assert stopped == StoppedTimer(elapsed=7210)
        assert manager.get_task(task.id).actual_hours == 7210 / 3600
        assert manager.timers == {}

    @pytest.mark.asyncio
    async def test_toggle_unknown_task_is_noop(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)

        assert await manager.toggle_timer("missing") is None
        assert manager.timers == {}

    @pytest.mark.asyncio
    async def test_reset_timer(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)
        task = await manager.create_task({"title": "A", "actualHours": 2})
        await manager.toggle_timer(task.id)
        clock.advance(30)

        assert await manager.reset_timer(task.id) is True

        assert task.id not in manager.timers
        assert manager.get_task(task.id).actual_hours == 0
        assert manager.elapsed_seconds(task.id) == 0
        assert memory_store.data["runningTimers"] == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text, hours", [
        ("01:30:00", 1.5),
        ("90", 90),
        ("1,5", 1.5),
        ("1.25", 1.25),
        ("2:15", 2.25),
    ])
    async def test_edit_timer_formats(self, memory_store, clock, text, hours):
        manager = await TaskManager.load(memory_store, clock)
        task = await manager.create_task({"title": "A"})

        await manager.edit_timer(task.id, text)

        assert manager.get_task(task.id).actual_hours == hours
        assert manager.get_timer(task.id) == StoppedTimer(elapsed=round(hours * 3600))
        assert task.id not in manager.timers

    @pytest.mark.asyncio
    async def test_edit_timer_rejects_out_of_range_minutes(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)
        task = await manager.create_task({"title": "A", "actualHours": 1})
        saves_before = len(memory_store.saves)

        with pytest.raises(InvalidDurationError):
            await manager.edit_timer(task.id, "12:61")

        assert manager.get_task(task.id).actual_hours == 1
        assert task.id not in manager.timers
        assert len(memory_store.saves) == saves_before

    @pytest.mark.asyncio
    async def test_edit_running_timer_restarts_baseline(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)
        task = await manager.create_task({"title": "A"})
        await manager.toggle_timer(task.id)
        clock.advance(500)

        await manager.edit_timer(task.id, "0:10")

        assert manager.is_running(task.id)
        assert manager.elapsed_seconds(task.id) == 600
        assert manager.get_task(task.id).actual_hours == 600 / 3600

        clock.advance(60)
        assert manager.elapsed_seconds(task.id) == 660
        assert memory_store.data["runningTimers"][task.id]["elapsed"] == 600

    @pytest.mark.asyncio
    async def test_cost_uses_live_elapsed(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)
        task = await manager.create_task({"title": "A", "hourlyRate": 40})
        free = await manager.create_task({"title": "B", "actualHours": 3})

        await manager.toggle_timer(task.id)
        clock.advance(1800)

        assert manager.task_cost(task.id) == 20
        assert manager.task_cost(free.id) == 0


class TestRestartRecovery:

    @pytest.mark.asyncio
    async def test_running_timer_survives_restart(self, db_session, clock):
        store = PersistenceFacade(KeyValueRepository(session=db_session))
        manager = await TaskManager.load(store, clock)
        task = await manager.create_task({"title": "A"})
        await manager.edit_timer(task.id, "0:10")
        await manager.toggle_timer(task.id)
        clock.advance(100)
        before = manager.elapsed_seconds(task.id)

        # Process goes away without stopping the timer; wall clock moves on
        clock.advance(250)
        restarted = await TaskManager.load(PersistenceFacade(KeyValueRepository(session=db_session)), clock)

        assert restarted.is_running(task.id)
        assert restarted.elapsed_seconds(task.id) == before + 250 == 600 + 350

        await restarted.toggle_timer(task.id)
        assert restarted.get_task(task.id).actual_hours == 950 / 3600

    @pytest.mark.asyncio
    async def test_orphaned_timers_are_dropped(self, clock):
        store = MemoryStore({
            "tasks": [{"id": "1", "title": "Kept"}],
            "runningTimers": {
                "1": {"startTime": "2026-03-02T08:00:00Z", "elapsed": 60, "isRunning": True},
                "2": {"startTime": "2026-03-02T08:00:00Z", "elapsed": 60, "isRunning": True},
            },
        })

        manager = await TaskManager.load(store, clock)

        assert set(manager.timers) == {"1"}
        assert manager.elapsed_seconds("1") == 60 + 3600

    @pytest.mark.asyncio
    async def test_epoch_millisecond_start_times_are_accepted(self, clock):
        start_ms = int(clock.now.timestamp() * 1000) - 30_000
        store = MemoryStore({
            "tasks": [{"id": "1", "title": "A"}],
            "runningTimers": {"1": {"startTime": start_ms, "elapsed": 0, "isRunning": True}},
        })

        manager = await TaskManager.load(store, clock)

        assert manager.elapsed_seconds("1") == 30

    @pytest.mark.asyncio
    async def test_load_restores_preferences(self, clock):
        store = MemoryStore({"sortMode": "title_asc", "filters": {"status": "Completed"}})

        manager = await TaskManager.load(store, clock)

        assert manager.preferences.sort_mode == SortMode.TITLE_ASC
        assert manager.preferences.filters.status == TaskStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_unknown_sort_preference_falls_back(self, clock):
        manager = await TaskManager.load(MemoryStore({"sortMode": "shuffle"}), clock)

        assert manager.preferences.sort_mode == SortMode.CREATED_DESC


class TestStorageFailures:

    @pytest.mark.asyncio
    async def test_failed_save_keeps_in_memory_change(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)
        memory_store.fail_saves = True

        task = await manager.create_task({"title": "A"})

        assert manager.tasks == [task]
        assert isinstance(manager.last_storage_error, StorageError)
        assert "tasks" not in memory_store.data

        memory_store.fail_saves = False
        assert await manager.flush() is True
        assert manager.last_storage_error is None
        assert memory_store.data["tasks"][0]["id"] == task.id

    @pytest.mark.asyncio
    async def test_error_stays_reported_until_failed_key_is_saved(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)
        memory_store.fail_keys = {"tasks"}

        await manager.create_task({"title": "A"})
        await manager.set_sort_mode(SortMode.TITLE_ASC)

        assert memory_store.data["sortMode"] == "title_asc"
        assert "tasks" not in memory_store.data
        assert isinstance(manager.last_storage_error, StorageError)
        assert manager.unsaved_keys == {"tasks"}

        memory_store.fail_keys = set()
        await manager.create_task({"title": "B"})

        assert manager.last_storage_error is None
        assert manager.unsaved_keys == set()
        assert [t["title"] for t in memory_store.data["tasks"]] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_concurrent_writer_is_detected(self, db_session, clock):
        foreground = await TaskManager.load(PersistenceFacade(KeyValueRepository(session=db_session)), clock)
        background = await TaskManager.load(PersistenceFacade(KeyValueRepository(session=db_session)), clock)

        await foreground.create_task({"title": "From foreground"})
        await background.create_task({"title": "From background"})

        assert isinstance(background.last_storage_error, StorageConflictError)

        reloaded = await TaskManager.load(PersistenceFacade(KeyValueRepository(session=db_session)), clock)
        assert [t.title for t in reloaded.tasks] == ["From foreground"]

        assert await background.flush(force=True) is True
        reloaded = await TaskManager.load(PersistenceFacade(KeyValueRepository(session=db_session)), clock)
        assert [t.title for t in reloaded.tasks] == ["From background"]


class TestViews:

    @pytest.mark.asyncio
    async def test_views_use_preferences_and_live_figures(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)
        project = await manager.create_project("Website")
        late = await manager.create_task({
            "title": "Late", "projectId": project.id, "deadline": date(2026, 3, 1), "hourlyRate": 60,
        })
        clock.advance(1)
        await manager.create_task({"title": "Done", "status": "Completed"})

        await manager.toggle_timer(late.id)
        clock.advance(120)
        await manager.set_sort_mode("title_asc")
        await manager.set_filters({"status": "Not Started"})

        views = manager.views()

        assert [v.task.title for v in views] == ["Late"]
        view = views[0]
        assert view.project_name == "Website"
        assert view.status_text == "Not Started"
        assert view.seconds == 120
        assert view.is_running
        assert view.is_overdue
        assert view.cost == pytest.approx(2)
        assert memory_store.data["sortMode"] == "title_asc"
        assert memory_store.data["filters"] == {"status": "Not Started", "projectId": None}

    @pytest.mark.asyncio
    async def test_set_filters_rejects_unknown_status(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)

        with pytest.raises(ValidationError):
            await manager.set_filters({"status": "Someday"})

    @pytest.mark.asyncio
    async def test_stats_reflect_tasks(self, memory_store, clock):
        manager = await TaskManager.load(memory_store, clock)
        await manager.create_task({"title": "A", "estimatedHours": 2, "actualHours": 1, "status": "Completed"})
        await manager.create_task({"title": "B", "estimatedHours": 2, "status": "In Progress"})

        stats = manager.stats()

        assert stats.total == 2
        assert stats.completed == 1
        assert stats.in_progress == 1
        assert stats.completion_rate == 50
        assert stats.efficiency == 25
