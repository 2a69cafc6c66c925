import logging
from typing import Generator

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.orm import Session, sessionmaker

from .manager import Base, get_default_db_url

logger = logging.getLogger(__name__)

_SessionLocal: sessionmaker[Session] | None = None

_engine: Engine | None = None


def get_db() -> Generator[Session, None, None]:
    """Get database session"""
    if _SessionLocal is None:
        raise RuntimeError("Session Local is not initialized. Call init_db() first.")
    db = _SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_local() -> sessionmaker[Session]:
    if _SessionLocal is None:
        raise RuntimeError("Session Local is not initialized. Call init_db() first.")
    return _SessionLocal


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine is not initialized. Call init_db() first.")
    return _engine


def is_db_initialized() -> bool:
    return _engine is not None and _SessionLocal is not None


def create_db_engine(database_url: str) -> Engine:
    # SQLite gets NullPool; server databases get a bounded QueuePool
    if database_url.startswith("sqlite"):
        from sqlalchemy.pool import NullPool

        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=NullPool,
        )

    from sqlalchemy.pool import QueuePool

    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=3600,
        pool_pre_ping=True,
    )


def ensure_vector_extension(engine: Engine) -> bool:
    """Create the pgvector extension on PostgreSQL.

    Returns False (and logs) when the extension cannot be created, e.g. when
    the role lacks privileges. Other dialects need no extension.
    """
    if engine.dialect.name != "postgresql":
        return True
    try:
        with engine.begin() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        return True
    except Exception as e:
        logger.warning(f"Could not create pgvector extension: {e}")
        return False


def init_db(db_url: str | None = None) -> Engine:
    """Initialize the database engine and session factory, then create all tables."""
    from mcphub.db import try_upgrade_db

    # Register every table with Base.metadata
    from ..repository.db import models  # noqa: F401

    global _SessionLocal
    global _engine

    database_url = db_url if db_url is not None else get_default_db_url()

    _engine = create_db_engine(database_url)
    _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)

    ensure_vector_extension(_engine)

    try_upgrade_db(_engine)

    Base.metadata.create_all(bind=_engine)
    logger.info(f"Database initialized ({_engine.dialect.name})")
    return _engine


def dispose_db() -> None:
    """Dispose the engine and forget the session factory."""
    global _SessionLocal
    global _engine

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
