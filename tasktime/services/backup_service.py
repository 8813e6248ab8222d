"""
Backup Service - Handles export and import of projects and tasks.

Architecture Decision: Why JSON for backups?
- Human-readable format for easy inspection and manual edits
- Cross-platform compatible
- Same shape as the browser-extension export, so old backups import as-is

Backup file format:
    {
      "meta": {"app": "Task Time Manager", "version": 1, "exportedAt": "<ISO-8601>"},
      "projects": [...],
      "tasks": [...]
    }
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from tasktime.domain.errors import InvalidBackupError
from tasktime.domain.models import ImportMode, Project, Task
from tasktime.utils import utc_now

logger = logging.getLogger(__name__)

APP_NAME = "Task Time Manager"
BACKUP_FORMAT_VERSION = 1

RecordT = TypeVar("RecordT", Project, Task)


class BackupMeta(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    app: str = APP_NAME
    version: int = BACKUP_FORMAT_VERSION
    exported_at: datetime


def build_backup_payload(projects: Sequence[Project], tasks: Sequence[Task],
                         now: Optional[datetime] = None) -> Dict[str, Any]:
    """Build the JSON-ready backup document"""
    meta = BackupMeta(exported_at=now or utc_now())
    return {
        "meta": meta.model_dump(mode="json", by_alias=True),
        "projects": [p.model_dump(mode="json", by_alias=True) for p in projects],
        "tasks": [t.model_dump(mode="json", by_alias=True) for t in tasks],
    }


def parse_backup(payload: Any) -> Tuple[List[dict], List[dict]]:
    """
    Decode a backup payload into raw project and task records.

    Args:
        payload: JSON text/bytes or an already decoded mapping

    Raises:
        InvalidBackupError: not parseable, not an object, both collections
            missing, or a collection that is not a list
    """
    if isinstance(payload, (str, bytes, bytearray)):
        try:
            payload = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidBackupError(f"Backup is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise InvalidBackupError("Backup must be a JSON object")

    if "projects" not in payload and "tasks" not in payload:
        raise InvalidBackupError("Backup contains neither projects nor tasks")

    collections = []
    for name in ("projects", "tasks"):
        records = payload.get(name)
        if records is None:
            records = []
        if not isinstance(records, list):
            raise InvalidBackupError(f"'{name}' must be a list")
        for record in records:
            if not isinstance(record, dict):
                raise InvalidBackupError(f"'{name}' entries must be objects")
        collections.append(records)

    meta = payload.get("meta")
    if isinstance(meta, dict) and meta.get("version") not in (None, BACKUP_FORMAT_VERSION):
        logger.warning(f"Importing backup with unknown format version {meta.get('version')}")

    return collections[0], collections[1]


def _wire_keys(record: dict, model_cls: Type[BaseModel]) -> dict:
    """Rename snake_case field names to their camelCase aliases"""
    fields = model_cls.model_fields
    out = {}
    for key, value in record.items():
        field = fields.get(key)
        out[field.alias if field is not None and field.alias else key] = value
    return out


def merge_records(current: Sequence[RecordT], incoming: Sequence[dict],
                  model_cls: Type[RecordT]) -> List[RecordT]:
    """
    Last-writer-wins merge keyed by id, the incoming side always winning.

    Existing ids are updated field-by-field with whatever the incoming record
    carries (shallow merge); new ids are appended in incoming order; records
    without an id are skipped.

    Raises:
        InvalidBackupError: a merged record fails validation (e.g. unknown field)
    """
    merged: Dict[str, dict] = {
        record.id: record.model_dump(mode="json", by_alias=True) for record in current
    }

    skipped = 0
    for raw in incoming:
        record = _wire_keys(raw, model_cls)
        record_id = record.get("id")
        if record_id is None or record_id == "":
            skipped += 1
            continue
        record_id = str(record_id)
        record["id"] = record_id

        if record_id in merged:
            merged[record_id] = {**merged[record_id], **record}
        else:
            merged[record_id] = record

    if skipped:
        logger.warning(f"Skipped {skipped} {model_cls.__name__.lower()} record(s) without id")

    result = []
    for record_id, data in merged.items():
        try:
            result.append(model_cls.model_validate(data))
        except ValidationError as e:
            raise InvalidBackupError(
                f"Invalid {model_cls.__name__.lower()} record {record_id}: {e}"
            ) from e
    return result


def apply_import(projects: Sequence[Project], tasks: Sequence[Task], payload: Any,
                 mode: ImportMode) -> Tuple[List[Project], List[Task]]:
    """
    Compute the collections resulting from importing `payload`.

    Pure: the inputs are never modified, so a failure leaves the caller's state
    untouched.
    """
    incoming_projects, incoming_tasks = parse_backup(payload)
    mode = ImportMode(mode)

    if mode == ImportMode.REPLACE:
        projects, tasks = [], []

    return (
        merge_records(projects, incoming_projects, Project),
        merge_records(tasks, incoming_tasks, Task),
    )


class BackupService:
    """
    Reads and writes backup files.

    Backup naming convention: tasktime_backup_YYYY-MM-DD_HHMMSS.json
    """

    BACKUP_PREFIX = "tasktime_backup_"
    BACKUP_EXTENSION = ".json"

    def __init__(self, backup_dir: Path):
        self.backup_dir = Path(backup_dir)

    def _generate_backup_filename(self, now: Optional[datetime] = None) -> str:
        """Generate a timestamped backup filename"""
        timestamp = (now or datetime.now()).strftime("%Y-%m-%d_%H%M%S")
        return f"{self.BACKUP_PREFIX}{timestamp}{self.BACKUP_EXTENSION}"

    def _parse_backup_date(self, filename: str) -> Optional[datetime]:
        """Extract datetime from backup filename"""
        try:
            date_part = filename.replace(self.BACKUP_PREFIX, "").replace(self.BACKUP_EXTENSION, "")
            return datetime.strptime(date_part, "%Y-%m-%d_%H%M%S")
        except ValueError:
            return None

    def write_backup(self, payload: Dict[str, Any], now: Optional[datetime] = None) -> Path:
        """
        Write a backup document to a new timestamped file.

        Returns:
            Path to the created backup file
        """
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        backup_file = self.backup_dir / self._generate_backup_filename(now)

        with open(backup_file, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)

        logger.info(f"Backup created: {backup_file}")
        return backup_file

    def read_backup(self, backup_file: Path) -> str:
        """Read a backup file's raw text"""
        backup_file = Path(backup_file)
        if not backup_file.exists():
            raise FileNotFoundError(f"Backup file not found: {backup_file}")

        with open(backup_file, 'r', encoding='utf-8') as f:
            return f.read()

    def _dated_files(self) -> List[Tuple[datetime, Path]]:
        """Backup files with a parseable timestamp, newest first"""
        if not self.backup_dir.is_dir():
            return []
        pattern = f"{self.BACKUP_PREFIX}*{self.BACKUP_EXTENSION}"
        dated = [(self._parse_backup_date(p.name), p) for p in self.backup_dir.glob(pattern)]
        return sorted(((d, p) for d, p in dated if d), reverse=True)

    def list_backups(self) -> List[Dict[str, Any]]:
        """Backups in the backup directory, newest first"""
        return [
            {"filename": path.name, "path": path, "date": stamp, "size_bytes": path.stat().st_size}
            for stamp, path in self._dated_files()
        ]

    def cleanup_old_backups(self, keep_count: int = 5) -> int:
        """
        Delete all but the newest `keep_count` backups.

        Returns:
            Number of files removed
        """
        stale = [path for _, path in self._dated_files()[max(keep_count, 0):]]
        for path in stale:
            path.unlink(missing_ok=True)
        if stale:
            logger.info(f"Pruned {len(stale)} old backup(s) from {self.backup_dir}")
        return len(stale)

    def run_auto_backup(self, manager, keep_count: int = 5) -> Path:
        """
        Snapshot a TaskManager's projects and tasks and prune old backups.

        Returns:
            Path to the created backup file
        """
        backup_file = self.write_backup(manager.export_backup())
        self.cleanup_old_backups(keep_count)
        return backup_file
