"""One-time copy of file-backed entities into the database.

This is an explicit bulk operation, separate from per-call fallback. It runs
once when database routing is first enabled and is then gated by the
``migration_completed`` flag. Records are upserted by key, so re-running it
after an operator resets the flag converges instead of duplicating rows.

Embeddings are not copied; they are derived data and are rebuilt from the
connected servers through the rebuild endpoint.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ..settings.models import EntityKind
from ..settings.store import SettingsStore
from .registry import RepositoryRegistry
from .types import GroupRecord

logger = logging.getLogger(__name__)

# Servers go before groups so group membership can be checked against them
MIGRATION_ORDER = (
    EntityKind.USERS,
    EntityKind.SERVER_CONFIGS,
    EntityKind.GROUPS,
    EntityKind.MARKET_SERVERS,
)

_KEY_FIELDS = {
    EntityKind.USERS: "username",
    EntityKind.SERVER_CONFIGS: "name",
    EntityKind.GROUPS: "id",
    EntityKind.MARKET_SERVERS: "name",
}


class FileToDatabaseMigrator:
    """Copies users, server configs, groups and market servers into the database."""

    def __init__(self, settings: SettingsStore, registry: RepositoryRegistry):
        self.settings = settings
        self.registry = registry

    def should_migrate(self) -> bool:
        config = self.settings.get_database_config()
        return config.enabled and not config.migration_completed

    def migrate(self, force: bool = False) -> Dict[str, Any]:
        """Run the migration.

        Args:
            force: Run even if ``migration_completed`` is already set

        Returns:
            Summary with per entity group counts and any per-record errors.
            ``migrated`` is True only when every record was copied.
        """
        result: Dict[str, Any] = {
            "migrated": False,
            "counts": {kind.value: 0 for kind in MIGRATION_ORDER},
            "errors": [],
        }

        if self.settings.get_database_config().migration_completed and not force:
            logger.info("Database migration already completed, skipping")
            result["skipped"] = True
            return result

        logger.info("Migrating file-backed data to the database...")
        known_servers = {
            s.name for s in self.registry.file_repository(EntityKind.SERVER_CONFIGS).find_all()
        }

        for kind in MIGRATION_ORDER:
            file_repository = self.registry.file_repository(kind)
            db_repository = self.registry.database_repository(kind)
            try:
                for record in file_repository.find_all():
                    if kind == EntityKind.GROUPS:
                        record = self._resolve_group_servers(record, known_servers)
                    key = getattr(record, _KEY_FIELDS[kind])
                    try:
                        self._upsert(db_repository, kind, key, record)
                        result["counts"][kind.value] += 1
                    except Exception as e:
                        logger.error(f"Failed to migrate {kind.value} '{key}': {e}")
                        result["errors"].append(f"{kind.value} '{key}': {e}")
            finally:
                db_repository.close()

            logger.info(f"Migrated {result['counts'][kind.value]} {kind.value}")

        if result["errors"]:
            logger.warning(
                f"Database migration finished with {len(result['errors'])} errors; "
                "migration_completed left unset"
            )
            return result

        self.settings.update_database_config(migration_completed=True)
        result["migrated"] = True
        logger.info("Database migration completed successfully")
        return result

    def _upsert(
        self, repository: Any, kind: EntityKind, key: str, record: BaseModel
    ) -> None:
        if repository.find_by_key(key) is None:
            repository.create(record)
        else:
            repository.update(key, record.model_dump(exclude={_KEY_FIELDS[kind]}))

    def _resolve_group_servers(
        self, group: GroupRecord, known_servers: set[str]
    ) -> GroupRecord:
        servers: List[str] = [s for s in group.servers if s in known_servers]
        dropped = set(group.servers) - set(servers)
        if dropped:
            logger.warning(
                f"Group '{group.name}' references unknown servers {sorted(dropped)}, dropping them"
            )
        return group.model_copy(update={"servers": servers})


def try_migrate(
    settings: SettingsStore, registry: RepositoryRegistry
) -> Optional[Dict[str, Any]]:
    """Run the migration if database routing is enabled and it has not run yet."""
    migrator = FileToDatabaseMigrator(settings, registry)
    if not migrator.should_migrate():
        return None
    try:
        return migrator.migrate()
    except Exception as e:
        logger.error(f"Database migration failed: {e}")
        raise
