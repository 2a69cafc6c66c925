from pathlib import Path
from unittest.mock import patch

import pytest

from mcphub.core.model.embedding import OfflineEmbedding
from mcphub.core.repository import RepositoryRegistry, StaticRoutingPolicy
from mcphub.core.settings import SettingsStore
from mcphub.core.storage import dispose_db, get_session_local, init_db
from mcphub.core.vector.schema import SchemaReconciler

# ==========================================
# ENVIRONMENT
# ==========================================


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep tests away from the real storage root, database and API keys."""
    monkeypatch.setenv("MCPHUB_STORAGE_ROOT", str(tmp_path / "storage"))
    for name in (
        "DATABASE_URL",
        "OPENAI_API_KEY",
        "EMBEDDING_PROVIDER",
        "EMBEDDING_MODEL",
        "EMBEDDING_DIMENSION",
        "MCPHUB_MARKET_FILE",
    ):
        monkeypatch.delenv(name, raising=False)


# ==========================================
# STORAGE
# ==========================================


@pytest.fixture
def settings(tmp_path) -> SettingsStore:
    return SettingsStore(tmp_path / "mcp_settings.yaml")


@pytest.fixture
def db_engine(tmp_path):
    """Fresh SQLite database with every table, without running migrations."""
    with patch("mcphub.db.try_upgrade_db"):
        engine = init_db(db_url=f"sqlite:///{tmp_path / 'test.db'}")
    yield engine
    dispose_db()


@pytest.fixture
def session_factory(db_engine):
    return get_session_local()


@pytest.fixture
def reconciler(db_engine) -> SchemaReconciler:
    return SchemaReconciler(db_engine)


def _registry(
    settings: SettingsStore, tmp_path: Path, use_database: bool, **kwargs
) -> RepositoryRegistry:
    return RepositoryRegistry(
        settings,
        tmp_path / "servers.json",
        tmp_path / "vector_embeddings.json",
        routing=StaticRoutingPolicy(use_database),
        **kwargs,
    )


@pytest.fixture
def file_registry(settings, tmp_path) -> RepositoryRegistry:
    """Registry that serves everything from files."""
    return _registry(
        settings,
        tmp_path,
        False,
        session_factory=lambda: pytest.fail("database must not be used"),
        reconciler=SchemaReconciler(lambda: pytest.fail("database must not be used")),
    )


@pytest.fixture
def db_registry(settings, tmp_path, session_factory, reconciler) -> RepositoryRegistry:
    """Registry that routes everything to the SQLite test database."""
    return _registry(
        settings,
        tmp_path,
        True,
        session_factory=session_factory,
        reconciler=reconciler,
    )


# ==========================================
# EMBEDDING
# ==========================================


@pytest.fixture
def offline_embedding() -> OfflineEmbedding:
    return OfflineEmbedding()
