#!/usr/bin/env python

"""
Task Time Manager - Main Entry Point

Boots the task/timer engine against the local database, prints the current
summary (running timers included) and writes a rotating JSON backup.

Usage:
    python main.py

Requirements:
    - Python 3.10+
    - See pyproject.toml for dependencies
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from tasktime.i18n import init_collation, set_language
from tasktime.infra.config import get_settings
from tasktime.infra.db import DatabaseEngine, init_db
from tasktime.infra.storage import PersistenceFacade
from tasktime.logging_setup import setup_logging
from tasktime.services import BackupService, SummaryService, TaskManager

logger = logging.getLogger("tasktime.main")


async def run() -> int:
    settings = get_settings()
    log_file = setup_logging(log_dir=settings.data_dir / "logs", console_level=settings.log_level)
    logger.debug(f"Logging to {log_file}")
    set_language(settings.language)
    init_collation()

    await init_db(settings.get_db_url())
    try:
        manager = await TaskManager.load(PersistenceFacade())
        print(SummaryService().render(manager))

        backups = BackupService(settings.get_backup_dir())
        backups.run_auto_backup(manager, keep_count=settings.backup_retention_count)
    finally:
        await DatabaseEngine.reset_instance()
    return 0


def main():
    """Main entry point"""
    return asyncio.run(run())


if __name__ == "__main__":
    sys.exit(main())
