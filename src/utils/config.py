"""Configuration management for campuscache."""

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Central configuration for campuscache."""

    # Project paths
    PROJECT_ROOT = Path(__file__).parent.parent.parent
    CACHE_DIR = Path(os.getenv("CAMPUSCACHE_DIR", PROJECT_ROOT / "cache"))
    DB_NAME = os.getenv("CAMPUSCACHE_DB_NAME", "campuscache.db")
    LOG_DIR = Path(os.getenv("CAMPUSCACHE_LOG_DIR", PROJECT_ROOT / "logs"))
    LOG_LEVEL = os.getenv("CAMPUSCACHE_LOG_LEVEL", "INFO")

    # Store backend: "sqlite" (durable) or "memory" (process-local)
    BACKEND = os.getenv("CAMPUSCACHE_BACKEND", "sqlite").lower()

    # Retries when SQLite reports the database as locked
    STORE_RETRIES = int(os.getenv("CAMPUSCACHE_STORE_RETRIES", "3"))

    # Minimum interval between head-of-feed refresh checks
    FEED_CHECK_MINUTES = int(os.getenv("CAMPUSCACHE_FEED_CHECK_MINUTES", "5"))

    # Development settings
    DEBUG = os.getenv("DEBUG", "false").lower() == "true"

    @classmethod
    def db_path(cls) -> Path:
        """Full path of the SQLite database file."""
        return cls.CACHE_DIR / cls.DB_NAME

    @classmethod
    def get_summary(cls) -> dict[str, Any]:
        """Get configuration summary for debugging."""
        return {
            "project_root": str(cls.PROJECT_ROOT),
            "cache_dir": str(cls.CACHE_DIR),
            "db_name": cls.DB_NAME,
            "backend": cls.BACKEND,
            "log_dir": str(cls.LOG_DIR),
            "log_level": cls.LOG_LEVEL,
            "store_retries": cls.STORE_RETRIES,
            "feed_check_minutes": cls.FEED_CHECK_MINUTES,
            "debug": cls.DEBUG,
        }
