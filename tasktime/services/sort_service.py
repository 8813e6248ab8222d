"""
Sort and filter helpers for task lists.

All functions are pure: they return new lists and never mutate their input.
Python's sort is stable, so tasks with equal keys keep their relative order.
"""

import locale
import unicodedata
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from tasktime.domain.models import Project, SortMode, Task, TaskFilters, TaskStatus

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)
_UNKNOWN_STATUS_RANK = 99


def _collation_key(text: Optional[str]) -> Tuple[str, str]:
    """
    Case-insensitive collation key under the current LC_COLLATE.

    Accents are compared only to break ties ("eclair" < "éclair" < "zebra"),
    so accented titles sort with their base letter even in the C locale.
    """
    folded = unicodedata.normalize("NFKD", (text or "").casefold())
    base = "".join(ch for ch in folded if not unicodedata.combining(ch))
    return locale.strxfrm(base), locale.strxfrm(folded)


def _status_rank(status) -> int:
    try:
        return TaskStatus(status).rank
    except ValueError:
        return _UNKNOWN_STATUS_RANK


def _project_names(projects: Optional[Iterable[Project]]) -> Dict[str, str]:
    return {p.id: p.name for p in (projects or [])}


def sort_tasks(tasks: Iterable[Task], mode=None,
               projects: Optional[Iterable[Project]] = None) -> List[Task]:
    """
    Return `tasks` ordered by `mode`.

    Args:
        tasks: Tasks to order
        mode: A SortMode or its string value; unset/unknown means created_desc
        projects: Used to resolve project names for SortMode.PROJECT

    Tasks without a deadline always come last for both deadline directions.
    """
    mode = SortMode.parse(mode)
    tasks = list(tasks)

    if mode in (SortMode.CREATED_ASC, SortMode.CREATED_DESC):
        return sorted(
            tasks,
            key=lambda t: t.created_at or _EPOCH,
            reverse=mode == SortMode.CREATED_DESC,
        )

    if mode in (SortMode.DEADLINE_ASC, SortMode.DEADLINE_DESC):
        dated = [t for t in tasks if t.deadline is not None]
        undated = [t for t in tasks if t.deadline is None]
        dated.sort(key=lambda t: t.deadline, reverse=mode == SortMode.DEADLINE_DESC)
        return dated + undated

    if mode in (SortMode.TITLE_ASC, SortMode.TITLE_DESC):
        return sorted(
            tasks,
            key=lambda t: _collation_key(t.title),
            reverse=mode == SortMode.TITLE_DESC,
        )

    if mode == SortMode.STATUS:
        return sorted(tasks, key=lambda t: _status_rank(t.status))

    if mode == SortMode.PROJECT:
        names = _project_names(projects)
        return sorted(tasks, key=lambda t: _collation_key(names.get(t.project_id, "")))

    raise AssertionError(f"Unhandled sort mode: {mode}")


def filter_tasks(tasks: Iterable[Task], filters: Optional[TaskFilters] = None) -> List[Task]:
    """Keep tasks matching the status and/or project filter (unset filters match all)"""
    result = list(tasks)
    if filters is None:
        return result
    if filters.status is not None:
        result = [t for t in result if t.status == filters.status]
    if filters.project_id:
        result = [t for t in result if t.project_id == filters.project_id]
    return result
