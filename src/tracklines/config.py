"""
Configuration management for tracklines.

Loads a JSON config file when one exists, otherwise builds defaults, and
applies environment overrides on top in both cases.
"""

import json
import logging
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict, Any, Optional, List


@dataclass
class DatabaseConfig:
    """Database configuration."""

    url: str = "sqlite+aiosqlite:///tracklines.db"
    echo: bool = False
    log_queries: bool = False  # Log slow queries to the database component


@dataclass
class ServerConfig:
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False


@dataclass
class AppConfig:
    """Main application configuration."""

    app_name: str = "tracklines"
    version: str = "1.0.0"
    description: str = "Personal time tracker with pausable work sessions"

    data_dir: Optional[str] = None

    # Update propagation
    channel_max_size: int = 0  # 0 means unbounded
    reconcile_interval_seconds: float = 0.25

    # Close every running segment when the process shuts down
    stop_active_on_shutdown: bool = True

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"


@dataclass
class TracklinesConfig:
    """Complete configuration for tracklines."""

    app: AppConfig
    server: ServerConfig
    database: DatabaseConfig

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "app": asdict(self.app),
            "server": asdict(self.server),
            "database": asdict(self.database),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TracklinesConfig":
        """Create from dictionary."""
        return cls(
            app=AppConfig(**data.get("app", {})),
            server=ServerConfig(**data.get("server", {})),
            database=DatabaseConfig(**data.get("database", {})),
        )


class ConfigManager:
    """Manages configuration loading, saving, and environment overrides."""

    def __init__(self):
        self.config_file: Optional[Path] = None
        self.config: Optional[TracklinesConfig] = None

    def get_data_dir(self) -> Path:
        """Directory holding config.json and, by default, the database."""
        data_dir = os.getenv("TRACKLINES_DATA_DIR")
        if data_dir:
            return Path(data_dir)
        return Path.cwd() / "data"

    def get_config_file_path(self) -> Path:
        """Get the path for the config file."""
        return self.get_data_dir() / "config.json"

    def create_default_config(self) -> TracklinesConfig:
        """Create default configuration."""
        data_dir = self.get_data_dir()
        return TracklinesConfig(
            app=AppConfig(data_dir=str(data_dir)),
            server=ServerConfig(),
            database=DatabaseConfig(
                url=f"sqlite+aiosqlite:///{data_dir / 'tracklines.db'}"
            ),
        )

    def apply_environment(self, config: TracklinesConfig) -> TracklinesConfig:
        """Apply TRACKLINES_* environment overrides in place."""
        if os.getenv("TRACKLINES_DATABASE_URL"):
            config.database.url = os.getenv("TRACKLINES_DATABASE_URL")
        if os.getenv("TRACKLINES_LOG_DIR"):
            config.app.log_dir = os.getenv("TRACKLINES_LOG_DIR")
        if os.getenv("TRACKLINES_HOST"):
            config.server.host = os.getenv("TRACKLINES_HOST")
        if os.getenv("TRACKLINES_PORT"):
            config.server.port = int(os.getenv("TRACKLINES_PORT"))

        debug = os.getenv("TRACKLINES_DEBUG", "0") == "1"
        if debug:
            config.server.debug = True
            config.app.log_level = "DEBUG"

        return config

    def load_config(self) -> TracklinesConfig:
        """Load configuration from file or create default."""
        self.config_file = self.get_config_file_path()

        if self.config_file.exists():
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    data = json.load(f)
                config = TracklinesConfig.from_dict(data)
                logging.info(f"Loaded configuration from {self.config_file}")
            except (OSError, ValueError, TypeError) as e:
                logging.warning(f"Failed to load config from {self.config_file}: {e}")
                config = self.create_default_config()
        else:
            config = self.create_default_config()

        self.config = self.apply_environment(config)
        return self.config

    def validate_config(self) -> List[str]:
        """Validate configuration and return list of warnings."""
        if self.config is None:
            self.load_config()

        issues = []

        if self.config.app.channel_max_size < 0:
            issues.append("channel_max_size must be >= 0")
        if self.config.app.reconcile_interval_seconds <= 0:
            issues.append("reconcile_interval_seconds must be > 0")

        db_url = self.config.database.url
        if db_url.startswith("sqlite") and ":///" in db_url:
            db_path = Path(db_url.split(":///", 1)[1])
            db_dir = db_path.parent
            if db_dir.exists() and not os.access(db_dir, os.W_OK):
                issues.append(f"Database directory is not writable: {db_dir}")

        return issues


# Global config manager instance
config_manager = ConfigManager()


def get_config() -> TracklinesConfig:
    """Get the current configuration, loading it on first use."""
    if config_manager.config is None:
        return config_manager.load_config()
    return config_manager.config


def reset_config() -> None:
    """Forget the loaded configuration so the next access reloads it."""
    config_manager.config = None
    config_manager.config_file = None
