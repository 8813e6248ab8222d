"""
Data Seeder for Task Time Manager.
Populates the database with realistic projects and tasks for demo purposes.
"""

import asyncio
import sys
from datetime import date, timedelta
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from tasktime.domain.models import TaskStatus
from tasktime.infra.config import get_settings
from tasktime.infra.db import DatabaseEngine, init_db
from tasktime.infra.repository import KeyValueRepository
from tasktime.infra.storage import PersistenceFacade
from tasktime.services import TaskManager


async def reset_database():
    """Remove all stored keys to ensure a fresh seed"""
    removed = await KeyValueRepository().delete_all()
    print(f"Removed {removed} stored key(s).")


async def seed():
    settings = get_settings()
    await init_db(settings.get_db_url())
    await reset_database()
    print("Starting data seeding...")

    manager = await TaskManager.load(PersistenceFacade())

    website = await manager.create_project("Website")
    admin = await manager.create_project("Admin")

    today = date.today()
    tasks = [
        {"title": "Landing page copy", "projectId": website.id, "estimatedHours": 3,
         "deadline": today + timedelta(days=5), "status": TaskStatus.IN_PROGRESS, "hourlyRate": 45},
        {"title": "Fix contact form", "projectId": website.id, "estimatedHours": 1.5,
         "deadline": today - timedelta(days=2)},
        {"title": "Quarterly taxes", "projectId": admin.id, "estimatedHours": 4,
         "deadline": today + timedelta(days=20), "status": TaskStatus.ON_HOLD},
        {"title": "Inbox zero", "estimatedHours": 0.5, "status": TaskStatus.COMPLETED},
    ]
    for data in tasks:
        task = await manager.create_task(data)
        print(f"Creating task: {task.title}")

    first = manager.tasks[0]
    await manager.edit_timer(first.id, "1:45")
    await manager.edit_timer(manager.tasks[-1].id, "0,5")

    await DatabaseEngine.reset_instance()
    print("Seeding complete.")

if __name__ == "__main__":
    asyncio.run(seed())
