"""
Statistics over the task collection.
"""

from datetime import datetime, time, timezone
from typing import Iterable, Optional

from tasktime.domain.models import Task, TaskStats, TaskStatus
from tasktime.utils import round_half_away, utc_now


def is_overdue(task: Task, now: Optional[datetime] = None) -> bool:
    """
    A task is overdue when its deadline lies in the past and it is not completed.

    The deadline instant is the start of the deadline day (UTC), so a task is
    flagged from the deadline day onwards.
    """
    if task.deadline is None or task.status == TaskStatus.COMPLETED:
        return False
    now = now or utc_now()
    deadline_at = datetime.combine(task.deadline, time.min, tzinfo=timezone.utc)
    return deadline_at < now


def compute_stats(tasks: Iterable[Task], now: Optional[datetime] = None) -> TaskStats:
    """
    Aggregate counts, completion rate and efficiency.

    Rates are percentages rounded half away from zero; both are 0 when their
    denominator is 0.
    """
    tasks = list(tasks)
    now = now or utc_now()

    total = len(tasks)
    completed = sum(1 for t in tasks if t.status == TaskStatus.COMPLETED)
    in_progress = sum(1 for t in tasks if t.status == TaskStatus.IN_PROGRESS)
    overdue = sum(1 for t in tasks if is_overdue(t, now))

    total_estimated = sum(t.estimated_hours for t in tasks)
    total_actual = sum(t.actual_hours for t in tasks)

    completion_rate = round_half_away(completed / total * 100) if total > 0 else 0
    efficiency = round_half_away(total_actual / total_estimated * 100) if total_estimated > 0 else 0

    return TaskStats(
        total=total,
        completed=completed,
        in_progress=in_progress,
        overdue=overdue,
        completion_rate=completion_rate,
        total_estimated=total_estimated,
        total_actual=total_actual,
        efficiency=efficiency,
    )
