"""
Configuration management using Pydantic Settings.

Sources, lowest to highest priority:
    defaults -> settings.yaml -> .env / TASKTIME_* environment -> keyword arguments

The YAML file is looked up in ./config/ first, then in the user config dir.
"""

import os
from pathlib import Path
from typing import Optional, Set
import yaml

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = 'TASKTIME_'
SETTINGS_FILE = 'settings.yaml'


def _platform_dir(kind: str) -> Path:
    """Per-user base directory: APPDATA on Windows, XDG-style elsewhere"""
    if os.name == 'nt':
        return Path(os.getenv('APPDATA'))
    if kind == 'config':
        return Path.home() / '.config'
    return Path.home() / '.local' / 'share'


class Settings(BaseSettings):
    """Runtime settings for the task engine and its command-line entry points"""
    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        validate_assignment=True
    )

    app_name: str = "TaskTime"
    config_dir: Optional[Path] = None
    data_dir: Optional[Path] = None

    # Empty means a SQLite file inside data_dir
    database_url: Optional[str] = None

    backup_directory: Optional[Path] = None
    backup_retention_count: int = Field(default=5, ge=1, description="Number of backup files to keep")

    language: str = Field(default="auto", description="Display language: 'en', 'pt', or 'auto'")
    log_level: str = Field(default="INFO", description="Console log level")

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        folder = self.app_name.lower()
        if self.config_dir is None:
            self.config_dir = _platform_dir('config') / folder
        if self.data_dir is None:
            self.data_dir = _platform_dir('data') / folder
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self._apply_yaml(skip=set(kwargs))
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _settings_file(self) -> Path:
        workspace_file = Path("config") / SETTINGS_FILE
        if workspace_file.exists():
            return workspace_file
        return self.config_dir / SETTINGS_FILE

    def _apply_yaml(self, skip: Set[str]):
        """Apply YAML values that neither a keyword argument nor the environment set"""
        config_file = self._settings_file()
        if not config_file.exists():
            return

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        for key, value in config_data.items():
            if key in skip or key not in type(self).model_fields:
                continue
            if os.getenv(f"{ENV_PREFIX}{key.upper()}") is not None:
                continue
            setattr(self, key, value)

    def save(self):
        """Write the current settings to the user's settings.yaml"""
        data = self.model_dump(mode="json", exclude={"config_dir"})
        with open(self.config_dir / SETTINGS_FILE, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False)

    def get_db_url(self) -> str:
        """Get database URL, creating default if not set"""
        if self.database_url:
            return self.database_url
        return f"sqlite+aiosqlite:///{self.data_dir / 'tasktime.db'}"

    def get_backup_dir(self) -> Path:
        """Backup directory, defaulting to <data_dir>/backups"""
        backup_dir = Path(self.backup_directory or self.data_dir / 'backups')
        backup_dir.mkdir(parents=True, exist_ok=True)
        return backup_dir


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    global _settings
    _settings = Settings()
    return _settings
