"""YAML settings file shared by the file-backed repositories.

The file holds four top-level sections::

    users: [{username, password_hash, is_admin}]
    groups: [{id, name, description, servers}]
    mcp_servers: {name: {type, url, command, args, env, enabled, metadata}}
    system_config: {database: {...}}
"""

import copy
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TypeVar

import yaml

from .models import DatabaseConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

SECTIONS: Dict[str, Any] = {
    "users": [],
    "groups": [],
    "mcp_servers": {},
    "system_config": {},
}


class SettingsStore:
    """Thread-safe reader/writer for the YAML settings file."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.RLock()

    def load(self) -> Dict[str, Any]:
        """Load the settings, filling in missing sections.

        Raises:
            ValueError: If the file exists but is not valid YAML mapping data
        """
        with self._lock:
            data: Dict[str, Any] = {}
            if self.path.exists():
                try:
                    with open(self.path, "r", encoding="utf-8") as f:
                        loaded = yaml.safe_load(f) or {}
                except (yaml.YAMLError, IOError) as e:
                    logger.error(f"Failed to load settings from {self.path}: {e}")
                    raise ValueError(f"Failed to load settings: {e}") from e

                if not isinstance(loaded, dict):
                    raise ValueError(
                        f"Invalid settings file: expected mapping, got {type(loaded).__name__}"
                    )
                data = loaded

            for section, default in SECTIONS.items():
                if data.get(section) is None:
                    data[section] = copy.deepcopy(default)
            return data

    def save(self, data: Dict[str, Any]) -> None:
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
                with open(tmp_path, "w", encoding="utf-8") as f:
                    yaml.safe_dump(data, f, default_flow_style=False, sort_keys=True)
                tmp_path.replace(self.path)
            except (yaml.YAMLError, IOError) as e:
                raise ValueError(f"Failed to save settings: {e}") from e

    def update(self, mutate: Callable[[Dict[str, Any]], T]) -> T:
        """Apply ``mutate`` to the loaded settings and save them atomically."""
        with self._lock:
            data = self.load()
            result = mutate(data)
            self.save(data)
            return result

    def get_database_config(self) -> DatabaseConfig:
        raw: Optional[Dict[str, Any]] = self.load()["system_config"].get("database")
        return DatabaseConfig.model_validate(raw or {})

    def update_database_config(self, **changes: Any) -> DatabaseConfig:
        def _mutate(data: Dict[str, Any]) -> DatabaseConfig:
            current = DatabaseConfig.model_validate(
                data["system_config"].get("database") or {}
            )
            updated = DatabaseConfig.model_validate(
                {**current.model_dump(), **changes}
            )
            data["system_config"]["database"] = updated.model_dump(mode="json")
            return updated

        config = self.update(_mutate)
        logger.info(
            f"Database config updated: enabled={config.enabled}, routing={config.routing}, "
            f"migration_completed={config.migration_completed}"
        )
        return config
