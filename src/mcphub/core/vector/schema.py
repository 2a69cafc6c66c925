"""Runtime reconciliation of the vector column width.

The embedding width is a property of the configured model, so the store
adapts its schema the first time it sees a width it was not built for:

1. drop the similarity index,
2. change the column width,
3. rebuild an index with the first strategy the engine supports.

If the width change fails the index is rebuilt for the unchanged column
before the error is raised.

Migrations are serialized per store name with a process lock, and on
PostgreSQL additionally with an advisory lock so that several hub processes
sharing one database do not rebuild indexes concurrently. Every step runs in
its own transaction.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Protocol, Sequence, Union

from sqlalchemy import Engine, text

from ..exceptions import SchemaReconciliationError

logger = logging.getLogger(__name__)

VECTOR_TABLE = "vector_embeddings"
VECTOR_COLUMN = "embedding"
VECTOR_INDEX = "idx_vector_embeddings_embedding"
SCHEMA_STATE_TABLE = "vector_schema_state"

_locks_guard = threading.Lock()
_store_locks: Dict[str, threading.Lock] = {}


def _get_store_lock(store_name: str) -> threading.Lock:
    with _locks_guard:
        lock = _store_locks.get(store_name)
        if lock is None:
            lock = threading.Lock()
            _store_locks[store_name] = lock
        return lock


@dataclass(frozen=True)
class ReconcileResult:
    migrated: bool
    previous: Optional[int]
    dimensions: int
    index_strategy: Optional[str] = None


class IndexStrategy(Protocol):
    name: str

    def supports(self, dialect: str) -> bool: ...

    def create(self, engine: Engine, table: str, column: str, index: str) -> bool:
        """Create the index, returning False if the engine rejected it."""
        ...


class _SqlIndexStrategy:
    name = "base"
    dialects: Sequence[str] = ()

    def supports(self, dialect: str) -> bool:
        return not self.dialects or dialect in self.dialects

    def statement(self, table: str, column: str, index: str) -> str:
        raise NotImplementedError

    def create(self, engine: Engine, table: str, column: str, index: str) -> bool:
        if not self.supports(engine.dialect.name):
            logger.info(
                f"Index strategy '{self.name}' not supported on {engine.dialect.name}, skipping"
            )
            return False
        try:
            with engine.begin() as conn:
                conn.execute(text(self.statement(table, column, index)))
        except Exception as e:
            logger.warning(f"Index strategy '{self.name}' failed on {table}.{column}: {e}")
            return False
        logger.info(f"Created '{self.name}' index {index} on {table}.{column}")
        return True


class IvfflatIndex(_SqlIndexStrategy):
    name = "ivfflat"
    dialects = ("postgresql",)

    def __init__(self, lists: int = 100) -> None:
        self.lists = lists

    def statement(self, table: str, column: str, index: str) -> str:
        return (
            f"CREATE INDEX IF NOT EXISTS {index} ON {table} "
            f"USING ivfflat ({column} vector_cosine_ops) WITH (lists = {self.lists})"
        )


class HnswIndex(_SqlIndexStrategy):
    name = "hnsw"
    dialects = ("postgresql",)

    def statement(self, table: str, column: str, index: str) -> str:
        return (
            f"CREATE INDEX IF NOT EXISTS {index} ON {table} "
            f"USING hnsw ({column} vector_cosine_ops)"
        )


class CoarseIndex(_SqlIndexStrategy):
    """Plain b-tree over the columns every similarity query filters on."""

    name = "coarse"

    def statement(self, table: str, column: str, index: str) -> str:
        return f"CREATE INDEX IF NOT EXISTS {index} ON {table} (content_type, dimensions)"


def default_index_strategies() -> List[IndexStrategy]:
    return [IvfflatIndex(), HnswIndex(), CoarseIndex()]


class SchemaBackend:
    """Dialect-neutral width bookkeeping in the ``vector_schema_state`` table."""

    def read_dimensions(self, engine: Engine, store_name: str) -> Optional[int]:
        with engine.connect() as conn:
            row = conn.execute(
                text(
                    f"SELECT dimensions FROM {SCHEMA_STATE_TABLE} WHERE store_name = :name"
                ),
                {"name": store_name},
            ).first()
        if row is None or row[0] is None:
            return None
        return int(row[0])

    @contextmanager
    def exclusive(self, engine: Engine, key: str) -> Iterator[None]:
        yield

    def drop_index(self, engine: Engine, index: str) -> None:
        with engine.begin() as conn:
            conn.execute(text(f"DROP INDEX IF EXISTS {index}"))

    def alter_width(self, engine: Engine, store_name: str, width: int) -> None:
        self.write_state(engine, store_name, width, None)

    def write_state(
        self,
        engine: Engine,
        store_name: str,
        width: int,
        index_strategy: Optional[str],
    ) -> None:
        params = {"name": store_name, "dims": width, "strategy": index_strategy}
        with engine.begin() as conn:
            updated = conn.execute(
                text(
                    f"UPDATE {SCHEMA_STATE_TABLE} SET dimensions = :dims, "
                    "index_strategy = :strategy, updated_at = CURRENT_TIMESTAMP "
                    "WHERE store_name = :name"
                ),
                params,
            )
            if updated.rowcount == 0:
                conn.execute(
                    text(
                        f"INSERT INTO {SCHEMA_STATE_TABLE} "
                        "(store_name, dimensions, index_strategy, updated_at) "
                        "VALUES (:name, :dims, :strategy, CURRENT_TIMESTAMP)"
                    ),
                    params,
                )


class PostgresSchemaBackend(SchemaBackend):
    """pgvector column whose width lives in the column type modifier."""

    def read_dimensions(self, engine: Engine, store_name: str) -> Optional[int]:
        with engine.connect() as conn:
            row = conn.execute(
                text(
                    "SELECT a.atttypmod FROM pg_attribute a "
                    "WHERE a.attrelid = to_regclass(:table) "
                    "AND a.attname = :column AND NOT a.attisdropped"
                ),
                {"table": store_name, "column": VECTOR_COLUMN},
            ).first()
        if row is None or row[0] is None or int(row[0]) <= 0:
            return None
        return int(row[0])

    @contextmanager
    def exclusive(self, engine: Engine, key: str) -> Iterator[None]:
        with engine.connect() as conn:
            conn.execute(text("SELECT pg_advisory_lock(hashtext(:key))"), {"key": key})
            conn.commit()
            try:
                yield
            finally:
                conn.execute(
                    text("SELECT pg_advisory_unlock(hashtext(:key))"), {"key": key}
                )
                conn.commit()

    def alter_width(self, engine: Engine, store_name: str, width: int) -> None:
        with engine.begin() as conn:
            conn.execute(
                text(
                    f"ALTER TABLE {store_name} ALTER COLUMN {VECTOR_COLUMN} "
                    f"TYPE vector({int(width)})"
                )
            )


def backend_for(engine: Engine) -> SchemaBackend:
    if engine.dialect.name == "postgresql":
        return PostgresSchemaBackend()
    return SchemaBackend()


EngineSource = Union[Engine, Callable[[], Engine]]


class SchemaReconciler:
    """Keeps one store's vector column width in line with the active model."""

    def __init__(
        self,
        engine: EngineSource,
        store_name: str = VECTOR_TABLE,
        index_name: str = VECTOR_INDEX,
        strategies: Optional[List[IndexStrategy]] = None,
    ) -> None:
        self._engine_source = engine
        self.store_name = store_name
        self.index_name = index_name
        self.strategies = strategies if strategies is not None else default_index_strategies()
        self._known_width: Optional[int] = None

    @property
    def engine(self) -> Engine:
        if isinstance(self._engine_source, Engine):
            return self._engine_source
        return self._engine_source()

    def invalidate(self) -> None:
        """Forget the cached width, e.g. after another writer migrated the store."""
        self._known_width = None

    def current_dimensions(self) -> Optional[int]:
        """Read the configured width from the database.

        Errors reading the schema are backend failures and propagate as-is.
        """
        engine = self.engine
        width = backend_for(engine).read_dimensions(engine, self.store_name)
        self._known_width = width
        return width

    def ensure_dimensions(self, width: int) -> ReconcileResult:
        """Migrate the store to ``width`` unless it is already configured for it.

        Raises:
            ValueError: If width is not positive
            SchemaReconciliationError: If dropping the index or changing the
                column width fails
        """
        if width <= 0:
            raise ValueError(f"Vector width must be positive, got {width}")

        if self._known_width == width:
            return ReconcileResult(False, width, width)

        engine = self.engine
        backend = backend_for(engine)
        current = backend.read_dimensions(engine, self.store_name)
        if current == width:
            self._known_width = width
            return ReconcileResult(False, current, width)

        with _get_store_lock(self.store_name):
            with backend.exclusive(engine, f"mcphub:schema:{self.store_name}"):
                # Another writer may have finished the same migration meanwhile
                current = backend.read_dimensions(engine, self.store_name)
                if current == width:
                    self._known_width = width
                    return ReconcileResult(False, current, width)

                logger.warning(
                    f"Vector width mismatch on {self.store_name}: configured={current}, "
                    f"required={width}. Migrating schema."
                )
                self._run_step("drop_index", backend.drop_index, engine, self.index_name)
                try:
                    self._run_step(
                        "alter_width", backend.alter_width, engine, self.store_name, width
                    )
                except SchemaReconciliationError:
                    # The column kept its old width, so its index is still valid
                    self._create_index(engine)
                    raise
                strategy = self._create_index(engine)
                try:
                    backend.write_state(engine, self.store_name, width, strategy)
                except Exception as e:
                    logger.warning(f"Failed to record schema state for {self.store_name}: {e}")

        self._known_width = width
        logger.info(
            f"Migrated {self.store_name} from width {current} to {width} "
            f"(index: {strategy or 'none'})"
        )
        return ReconcileResult(True, current, width, strategy)

    def _run_step(self, step: str, func: Callable[..., None], *args: object) -> None:
        try:
            func(*args)
        except Exception as e:
            self._known_width = None
            logger.error(f"Schema reconciliation step '{step}' failed on {self.store_name}: {e}")
            raise SchemaReconciliationError(
                f"Failed to {step.replace('_', ' ')} on {self.store_name}: {e}",
                step=step,
                details={"store": self.store_name},
            ) from e

    def _create_index(self, engine: Engine) -> Optional[str]:
        for strategy in self.strategies:
            if strategy.create(engine, self.store_name, VECTOR_COLUMN, self.index_name):
                return strategy.name
        logger.warning(
            f"No index strategy succeeded for {self.store_name}; similarity search will run unindexed"
        )
        return None
