from .adapter import DualBackendAdapter
from .migration import FileToDatabaseMigrator, try_migrate
from .registry import RepositoryRegistry
from .routing import RoutingPolicy, StaticRoutingPolicy
from .types import (
    EntityKind,
    GroupRecord,
    MarketServerRecord,
    ServerConfigRecord,
    UserRecord,
    hash_password,
)

__all__ = [
    "DualBackendAdapter",
    "EntityKind",
    "FileToDatabaseMigrator",
    "GroupRecord",
    "MarketServerRecord",
    "RepositoryRegistry",
    "RoutingPolicy",
    "ServerConfigRecord",
    "StaticRoutingPolicy",
    "UserRecord",
    "hash_password",
    "try_migrate",
]
