from ..settings.models import DatabaseConfig, EntityKind
from ..settings.store import SettingsStore


class RoutingPolicy:
    """Decides per call whether an entity group is served by the database.

    The settings file is read on every decision so that toggling
    ``system_config.database`` takes effect without a restart.
    """

    def __init__(self, store: SettingsStore):
        self.store = store

    def config(self) -> DatabaseConfig:
        return self.store.get_database_config()

    def use_database(self, kind: EntityKind) -> bool:
        return self.config().routes_to_database(kind)


class StaticRoutingPolicy:
    """Fixed routing, for embedding the adapter without a settings file."""

    def __init__(self, use_database: bool):
        self._use_database = use_database

    def use_database(self, kind: EntityKind) -> bool:
        return self._use_database
