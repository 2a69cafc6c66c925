"""Schema versioning for the hub database.

A fresh database is stamped with the newest revision because
``Base.metadata.create_all`` builds the tables right after. A versioned one
is upgraded in place. Anything else holds tables alembic never tracked, and
the hub refuses to guess which revision they correspond to.
"""

import logging
from typing import Any, cast

from alembic import command
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import Engine, inspect

from .config import create_alembic_config

logger = logging.getLogger(__name__)

VERSION_TABLE = "alembic_version"


def is_database_empty(engine: Engine) -> bool:
    """True when no table other than alembic's bookkeeping table exists."""
    tables = set(inspect(engine).get_table_names()) - {VERSION_TABLE}
    return not tables


def get_alembic_revision(engine: Engine) -> str | None:
    with engine.connect() as conn:
        context: Any = MigrationContext.configure(conn)
        return cast(str | None, context.get_current_revision())


def get_head_revision(engine: Engine) -> str | None:
    """Newest revision shipped in ``mcphub/migrations/versions``."""
    script = ScriptDirectory.from_config(create_alembic_config(engine))
    return cast(str | None, script.get_current_head())


def _run(engine: Engine, action: str) -> None:
    cfg = create_alembic_config(engine)
    with engine.begin() as conn:
        cfg.attributes["connection"] = conn
        getattr(command, action)(cfg, "head")


def try_upgrade_db(engine: Engine) -> str | None:
    """Bring ``engine``'s schema version to head and return the resulting revision.

    Raises:
        RuntimeError: The database has tables but no revision to start from.
    """
    backend = engine.dialect.name
    try:
        current = get_alembic_revision(engine)
        head = get_head_revision(engine)

        if current is None:
            if not is_database_empty(engine):
                raise RuntimeError(
                    f"The {backend} database holds mcphub tables without alembic revision "
                    "information. Stamp the revision matching its schema with "
                    "`alembic stamp <revision>` before starting the hub."
                )
            logger.info(f"New {backend} database, stamping revision {head}")
            _run(engine, "stamp")
        elif current == head:
            logger.debug(f"{backend} schema already at revision {head}")
        else:
            logger.info(f"Upgrading {backend} schema from {current} to {head}")
            _run(engine, "upgrade")
    except Exception as e:
        logger.error(f"Database schema upgrade failed: {e}")
        raise

    return get_alembic_revision(engine)
