from .migration import (
    get_alembic_revision,
    get_head_revision,
    is_database_empty,
    try_upgrade_db,
)

__all__ = [
    "try_upgrade_db",
    "get_alembic_revision",
    "get_head_revision",
    "is_database_empty",
]
