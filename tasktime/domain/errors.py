"""
Error taxonomy for the task/timer engine.

Validation, referential-integrity, duration and backup errors are raised before
any in-memory state is touched. Storage errors are reported after the
in-memory model already changed.
"""


class TaskTimeError(Exception):
    """Base class for all application errors"""


class ValidationError(TaskTimeError):
    """A required field is empty or a value is out of range"""


class ReferentialIntegrityError(TaskTimeError):
    """A project is still referenced by at least one task"""

    def __init__(self, project_id: str, task_ids: list):
        self.project_id = project_id
        self.task_ids = list(task_ids)
        super().__init__(
            f"Project {project_id} is still used by {len(self.task_ids)} task(s)"
        )


class InvalidDurationError(TaskTimeError):
    """A timer edit could not be parsed as a duration"""


class InvalidBackupError(TaskTimeError):
    """An import payload is malformed"""


class StorageError(TaskTimeError):
    """The persistence layer failed to read or write"""


class StorageConflictError(StorageError):
    """A stored key changed since this process last read or wrote it"""

    def __init__(self, keys: list):
        self.keys = list(keys)
        super().__init__(f"Stored values changed concurrently: {', '.join(self.keys)}")
