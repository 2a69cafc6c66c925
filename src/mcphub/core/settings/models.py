from enum import Enum
from typing import Dict, Literal

from pydantic import BaseModel, Field


class EntityKind(str, Enum):
    """Logical entity groups routed independently by the dual-backend adapter."""

    USERS = "users"
    GROUPS = "groups"
    SERVER_CONFIGS = "server_configs"
    MARKET_SERVERS = "market_servers"
    VECTOR_EMBEDDINGS = "vector_embeddings"


RoutingMode = Literal["global", "per_entity"]


class DatabaseConfig(BaseModel):
    """Database routing state stored under ``system_config.database``."""

    enabled: bool = Field(False, description="Route operations to the database")
    routing: RoutingMode = Field(
        "global",
        description=(
            "'global' routes every entity group by 'enabled' alone; "
            "'per_entity' additionally requires the group's 'use_for' flag"
        ),
    )
    use_for: Dict[EntityKind, bool] = Field(
        default_factory=dict, description="Per entity group database flags"
    )
    migration_completed: bool = Field(
        False, description="Whether file data was copied into the database"
    )

    def routes_to_database(self, kind: EntityKind) -> bool:
        if not self.enabled:
            return False
        if self.routing == "global":
            return True
        return self.use_for.get(kind, False)
