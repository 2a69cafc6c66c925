from importlib import resources
from typing import Any

from alembic.config import Config as AlembicConfig
from sqlalchemy import Engine


def migrations_location() -> str:
    """Directory of the alembic scripts shipped inside the mcphub package."""
    return str(resources.files("mcphub") / "migrations")


def create_alembic_config(engine: Engine) -> Any:
    """Alembic configuration bound to ``engine``, built without an alembic.ini."""
    cfg: Any = AlembicConfig()
    cfg.set_main_option("script_location", migrations_location())
    cfg.set_main_option("version_path_separator", "os")
    # Rendered with the password so env.py can connect when no connection
    # is handed over through cfg.attributes
    cfg.set_main_option(
        "sqlalchemy.url",
        engine.url.render_as_string(hide_password=False).replace("%", "%%"),
    )
    return cfg
