"""Services layer - Business logic"""

from .task_service import TaskManager
from .backup_service import BackupService
from .summary_service import SummaryService
from .sort_service import sort_tasks, filter_tasks
from .stats_service import compute_stats

__all__ = ["TaskManager", "BackupService", "SummaryService", "sort_tasks", "filter_tasks", "compute_stats"]
