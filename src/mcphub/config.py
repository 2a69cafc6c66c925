"""Environment-driven configuration for mcphub.

Values are read when accessed so that ``.env`` files loaded by the entry
points (and ``monkeypatch.setenv`` in tests) take effect.
"""

import os
from pathlib import Path
from typing import Optional

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_EMBEDDING_TIMEOUT = 30.0
DEFAULT_EMBEDDING_MAX_RETRIES = 3
DEFAULT_EMBEDDING_MAX_INPUT_CHARS = 8000

SETTINGS_FILE_NAME = "mcp_settings.yaml"
MARKET_FILE_NAME = "servers.json"
VECTOR_FILE_NAME = "vector_embeddings.json"


def _get_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {value!r}")


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number, got {value!r}")


def get_storage_root_override() -> Optional[str]:
    return os.getenv("MCPHUB_STORAGE_ROOT")


def get_database_url() -> Optional[str]:
    return os.getenv("DATABASE_URL")


def get_embedding_provider() -> str:
    return os.getenv("EMBEDDING_PROVIDER", "openai")


def get_embedding_model() -> str:
    return os.getenv("EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL)


def get_openai_api_key() -> Optional[str]:
    return os.getenv("OPENAI_API_KEY") or None


def get_openai_base_url() -> str:
    return os.getenv("OPENAI_API_BASE_URL", DEFAULT_OPENAI_BASE_URL)


def get_embedding_dimension() -> Optional[int]:
    return _get_int("EMBEDDING_DIMENSION", None)


def get_embedding_timeout() -> float:
    return _get_float("EMBEDDING_TIMEOUT", DEFAULT_EMBEDDING_TIMEOUT)


def get_embedding_max_retries() -> int:
    return _get_int("EMBEDDING_MAX_RETRIES", DEFAULT_EMBEDDING_MAX_RETRIES) or 1


def get_embedding_max_input_chars() -> int:
    return (
        _get_int("EMBEDDING_MAX_INPUT_CHARS", DEFAULT_EMBEDDING_MAX_INPUT_CHARS)
        or DEFAULT_EMBEDDING_MAX_INPUT_CHARS
    )


def get_market_file(storage_root: Path) -> Path:
    override = os.getenv("MCPHUB_MARKET_FILE")
    if override:
        return Path(override)
    return storage_root / MARKET_FILE_NAME
