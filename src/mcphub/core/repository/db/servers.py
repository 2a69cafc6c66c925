from typing import Any, Dict, List, Optional

from ...exceptions import AlreadyExistsError
from ..types import ServerConfigRecord
from .base import DatabaseRepository
from .models import ServerConfig


class DatabaseServerConfigRepository(DatabaseRepository):
    def _to_record(self, server: ServerConfig) -> ServerConfigRecord:
        return ServerConfigRecord(
            name=str(server.name),
            type=server.type or "stdio",  # type: ignore[arg-type]
            url=server.url,
            command=server.command,
            args=list(server.args or []),
            env=dict(server.env or {}),
            enabled=True if server.enabled is None else bool(server.enabled),
            metadata=dict(server.meta or {}),
        )

    def _apply(self, server: ServerConfig, record: ServerConfigRecord) -> None:
        server.type = record.type  # type: ignore[assignment]
        server.url = record.url  # type: ignore[assignment]
        server.command = record.command  # type: ignore[assignment]
        server.args = list(record.args)  # type: ignore[assignment]
        server.env = dict(record.env)  # type: ignore[assignment]
        server.enabled = record.enabled  # type: ignore[assignment]
        server.meta = dict(record.metadata)  # type: ignore[assignment]

    def _get(self, name: str) -> Optional[ServerConfig]:
        return self.db.query(ServerConfig).filter(ServerConfig.name == name).first()

    def find_all(self) -> List[ServerConfigRecord]:
        servers = self.db.query(ServerConfig).order_by(ServerConfig.name).all()
        return [self._to_record(s) for s in servers]

    def find_by_key(self, key: str) -> Optional[ServerConfigRecord]:
        server = self._get(key)
        return self._to_record(server) if server else None

    def find_enabled(self) -> List[ServerConfigRecord]:
        servers = (
            self.db.query(ServerConfig)
            .filter(ServerConfig.enabled.is_(True))
            .order_by(ServerConfig.name)
            .all()
        )
        return [self._to_record(s) for s in servers]

    def create(self, record: ServerConfigRecord) -> ServerConfigRecord:
        with self._write(f"create server config '{record.name}'"):
            if self._get(record.name):
                raise AlreadyExistsError(f"Server '{record.name}' already exists")
            server = ServerConfig(name=record.name)
            self._apply(server, record)
            self.db.add(server)
        return record

    def update(self, key: str, changes: Dict[str, Any]) -> Optional[ServerConfigRecord]:
        with self._write(f"update server config '{key}'"):
            server = self._get(key)
            if server is None:
                return None
            merged = self._to_record(server).model_copy(update=changes)
            self._apply(server, ServerConfigRecord.model_validate(merged.model_dump()))
        return self.find_by_key(key)

    def delete(self, key: str) -> bool:
        with self._write(f"delete server config '{key}'"):
            server = self._get(key)
            if server is None:
                return False
            self.db.delete(server)
        return True

    def set_enabled(self, name: str, enabled: bool) -> Optional[ServerConfigRecord]:
        return self.update(name, {"enabled": enabled})
