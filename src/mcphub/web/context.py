"""Services shared by the HTTP API and the CLI."""

import logging
from dataclasses import dataclass
from typing import Optional

from ..core.model import EmbeddingModelConfig
from ..core.model.embedding import BaseEmbedding, create_embedding_provider
from ..core.repository import RepositoryRegistry, try_migrate
from ..core.storage import StorageRootManager, init_db, initialize_storage_manager
from ..core.vector.catalog import ConfiguredServerCatalog, ServerStatusRegistry
from ..core.vector.search import ToolSearchService

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    storage: StorageRootManager
    registry: RepositoryRegistry
    status: ServerStatusRegistry
    search_service: ToolSearchService


def build_context(
    storage_root: Optional[str] = None,
    db_url: Optional[str] = None,
    embedding: Optional[BaseEmbedding] = None,
) -> AppContext:
    """Wire storage, repositories and tool search from configuration.

    The database is initialized only when database routing is enabled in
    the settings file. If that fails the hub still starts; every
    database-routed call then falls back to file storage.
    """
    storage = initialize_storage_manager(storage_root)
    registry = RepositoryRegistry.from_storage(storage)

    if registry.settings.get_database_config().enabled:
        try:
            init_db(db_url)
            try_migrate(registry.settings, registry)
        except Exception as e:
            logger.error(f"Database unavailable, serving from file storage: {e}")

    if embedding is None:
        embedding = create_embedding_provider(EmbeddingModelConfig.from_env())

    status = ServerStatusRegistry()
    search_service = ToolSearchService(
        embedding,
        registry.vectors,
        ConfiguredServerCatalog(registry.server_configs, status),
    )
    logger.info(f"Storage root: {storage.get_storage_root()}")
    return AppContext(
        storage=storage,
        registry=registry,
        status=status,
        search_service=search_service,
    )
