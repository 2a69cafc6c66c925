"""Storage root directory manager for mcphub.

This module provides a centralized way to manage the storage root directory
that holds the settings file, the marketplace catalog, the file-backed vector
store and the default SQLite database.
"""

import os
import threading
from pathlib import Path
from typing import Optional

from sqlalchemy.orm import declarative_base

from ... import config


class StorageRootManager:
    """Thread-safe storage root directory manager."""

    def __init__(self, storage_root: str | None = None) -> None:
        """Initialize the storage root manager.

        Args:
            storage_root: Path to the storage root directory. If None, uses
                ``MCPHUB_STORAGE_ROOT`` or ``~/.mcphub``.
        """
        self._lock = threading.RLock()

        if storage_root is not None:
            self._storage_root = Path(storage_root)
        elif config.get_storage_root_override():
            self._storage_root = Path(str(config.get_storage_root_override()))
        else:
            self._storage_root = Path.home() / ".mcphub"

        self._storage_root.mkdir(parents=True, exist_ok=True)

    def get_storage_root(self) -> Path:
        with self._lock:
            return self._storage_root

    def get_settings_path(self) -> Path:
        with self._lock:
            return self._storage_root / config.SETTINGS_FILE_NAME

    def get_market_path(self) -> Path:
        with self._lock:
            return config.get_market_file(self._storage_root)

    def get_vector_path(self) -> Path:
        with self._lock:
            return self._storage_root / config.VECTOR_FILE_NAME


# Global storage root manager instance, initialized by the server or CLI
_storage_manager: Optional[StorageRootManager] = None


def get_storage_manager() -> StorageRootManager:
    """Get the global storage manager, creating it with defaults if needed."""
    global _storage_manager
    if _storage_manager is None:
        _storage_manager = StorageRootManager()
    return _storage_manager


def get_storage_root() -> Path:
    return get_storage_manager().get_storage_root()


def initialize_storage_manager(storage_root: str | None = None) -> StorageRootManager:
    """Initialize the global storage manager.

    Args:
        storage_root: Path to the storage root directory. If None, uses default path.
    """
    global _storage_manager
    _storage_manager = StorageRootManager(storage_root)
    return _storage_manager


def get_default_sqlite_db_path() -> str:
    return os.path.join(get_storage_root(), "mcphub.db")


def get_default_db_url() -> str:
    database_url = config.get_database_url()
    if database_url is not None:
        return database_url

    return f"sqlite:///{get_default_sqlite_db_path()}"


# Base model class shared by every table
Base = declarative_base()
