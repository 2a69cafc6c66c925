from typing import Any, Dict, List, Optional

from ...exceptions import AlreadyExistsError
from ...settings.store import SettingsStore
from ..types import ServerConfigRecord


class FileServerConfigRepository:
    """Server configs stored in the ``mcp_servers`` mapping of the settings file."""

    def __init__(self, store: SettingsStore):
        self.store = store

    @staticmethod
    def _to_record(name: str, raw: Dict[str, Any]) -> ServerConfigRecord:
        return ServerConfigRecord.model_validate({**(raw or {}), "name": name})

    @staticmethod
    def _to_raw(record: ServerConfigRecord) -> Dict[str, Any]:
        return record.model_dump(exclude={"name"}, exclude_none=True)

    def find_all(self) -> List[ServerConfigRecord]:
        servers = self.store.load()["mcp_servers"]
        return [self._to_record(name, raw) for name, raw in sorted(servers.items())]

    def find_by_key(self, key: str) -> Optional[ServerConfigRecord]:
        raw = self.store.load()["mcp_servers"].get(key)
        return self._to_record(key, raw) if raw is not None else None

    def find_enabled(self) -> List[ServerConfigRecord]:
        return [s for s in self.find_all() if s.enabled]

    def create(self, record: ServerConfigRecord) -> ServerConfigRecord:
        def _mutate(data: Dict[str, Any]) -> ServerConfigRecord:
            if record.name in data["mcp_servers"]:
                raise AlreadyExistsError(f"Server '{record.name}' already exists")
            data["mcp_servers"][record.name] = self._to_raw(record)
            return record

        return self.store.update(_mutate)

    def update(self, key: str, changes: Dict[str, Any]) -> Optional[ServerConfigRecord]:
        def _mutate(data: Dict[str, Any]) -> Optional[ServerConfigRecord]:
            raw = data["mcp_servers"].get(key)
            if raw is None:
                return None
            updated = self._to_record(key, {**raw, **changes})
            data["mcp_servers"][key] = self._to_raw(updated)
            return updated

        return self.store.update(_mutate)

    def delete(self, key: str) -> bool:
        def _mutate(data: Dict[str, Any]) -> bool:
            return data["mcp_servers"].pop(key, None) is not None

        return self.store.update(_mutate)

    def set_enabled(self, name: str, enabled: bool) -> Optional[ServerConfigRecord]:
        return self.update(name, {"enabled": enabled})

    def close(self) -> None:
        pass
