from .models import DatabaseConfig, EntityKind, RoutingMode
from .store import SettingsStore

__all__ = ["DatabaseConfig", "EntityKind", "RoutingMode", "SettingsStore"]
