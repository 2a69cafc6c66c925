from pathlib import Path
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from ..settings.models import EntityKind
from ..settings.store import SettingsStore
from ..storage.database import get_engine, get_session_local
from ..storage.manager import StorageRootManager
from ..vector.schema import SchemaReconciler
from .adapter import DualBackendAdapter, Routing
from .db import (
    DatabaseGroupRepository,
    DatabaseMarketServerRepository,
    DatabaseServerConfigRepository,
    DatabaseUserRepository,
    DatabaseVectorRepository,
)
from .file import (
    FileGroupRepository,
    FileMarketServerRepository,
    FileServerConfigRepository,
    FileUserRepository,
    FileVectorRepository,
)
from .routing import RoutingPolicy
from .types import GroupRecord, MarketServerRecord, ServerConfigRecord, UserRecord


def _default_session() -> Session:
    return get_session_local()()


class RepositoryRegistry:
    """One dual-backend adapter per entity group, sharing a routing policy."""

    def __init__(
        self,
        settings: SettingsStore,
        market_path: Path | str,
        vector_path: Path | str,
        session_factory: Optional[Callable[[], Session]] = None,
        reconciler: Optional[SchemaReconciler] = None,
        routing: Optional[Routing] = None,
    ):
        self.settings = settings
        self.routing = routing or RoutingPolicy(settings)
        self.session_factory = session_factory or _default_session
        self.reconciler = reconciler or SchemaReconciler(get_engine)

        self._file_repositories: Dict[EntityKind, Any] = {
            EntityKind.USERS: FileUserRepository(settings),
            EntityKind.GROUPS: FileGroupRepository(settings),
            EntityKind.SERVER_CONFIGS: FileServerConfigRepository(settings),
            EntityKind.MARKET_SERVERS: FileMarketServerRepository(market_path),
            EntityKind.VECTOR_EMBEDDINGS: FileVectorRepository(vector_path),
        }

        self.users: DualBackendAdapter[UserRecord] = self._build(EntityKind.USERS)
        self.groups: DualBackendAdapter[GroupRecord] = self._build(EntityKind.GROUPS)
        self.server_configs: DualBackendAdapter[ServerConfigRecord] = self._build(
            EntityKind.SERVER_CONFIGS
        )
        self.market_servers: DualBackendAdapter[MarketServerRecord] = self._build(
            EntityKind.MARKET_SERVERS
        )
        self.vectors: DualBackendAdapter[Any] = self._build(EntityKind.VECTOR_EMBEDDINGS)

    @classmethod
    def from_storage(
        cls, storage: StorageRootManager, **kwargs: Any
    ) -> "RepositoryRegistry":
        return cls(
            SettingsStore(storage.get_settings_path()),
            storage.get_market_path(),
            storage.get_vector_path(),
            **kwargs,
        )

    def _build(self, kind: EntityKind) -> DualBackendAdapter[Any]:
        return DualBackendAdapter(
            kind,
            self.routing,
            self._file_repositories[kind],
            lambda: self.database_repository(kind),
        )

    def adapter(self, kind: EntityKind) -> DualBackendAdapter[Any]:
        return {
            EntityKind.USERS: self.users,
            EntityKind.GROUPS: self.groups,
            EntityKind.SERVER_CONFIGS: self.server_configs,
            EntityKind.MARKET_SERVERS: self.market_servers,
            EntityKind.VECTOR_EMBEDDINGS: self.vectors,
        }[kind]

    def file_repository(self, kind: EntityKind) -> Any:
        return self._file_repositories[kind]

    def database_repository(self, kind: EntityKind) -> Any:
        """Build a database repository with a new session; the caller closes it."""
        session = self.session_factory()
        if kind == EntityKind.USERS:
            return DatabaseUserRepository(session)
        if kind == EntityKind.GROUPS:
            return DatabaseGroupRepository(session)
        if kind == EntityKind.SERVER_CONFIGS:
            return DatabaseServerConfigRepository(session)
        if kind == EntityKind.MARKET_SERVERS:
            return DatabaseMarketServerRepository(session)
        return DatabaseVectorRepository(session, self.reconciler)
