from .database import (
    dispose_db,
    get_db,
    get_engine,
    get_session_local,
    init_db,
    is_db_initialized,
)
from .manager import (
    Base,
    StorageRootManager,
    get_default_db_url,
    get_default_sqlite_db_path,
    get_storage_manager,
    get_storage_root,
    initialize_storage_manager,
)

__all__ = [
    "Base",
    "StorageRootManager",
    "get_storage_root",
    "get_storage_manager",
    "initialize_storage_manager",
    "get_default_sqlite_db_path",
    "get_default_db_url",
    "init_db",
    "dispose_db",
    "get_db",
    "get_engine",
    "get_session_local",
    "is_db_initialized",
]
