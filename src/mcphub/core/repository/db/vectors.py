import logging
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from sqlalchemy import bindparam, func, text
from sqlalchemy.exc import DataError
from sqlalchemy.orm import Session

from ...exceptions import VectorDimensionChangedError
from ...vector.schema import ReconcileResult, SchemaReconciler
from ...vector.similarity import rank
from ...vector.types import EmbeddingRecord, SimilarityHit
from .base import DatabaseRepository
from .models import VectorEmbedding

logger = logging.getLogger(__name__)


# pgvector rejects a value whose width differs from the column type
_WIDTH_MISMATCH = re.compile(r"expected (\d+) dimensions, not (\d+)")


def _to_pg_vector(vector: Sequence[float]) -> str:
    return "[" + ",".join(repr(float(v)) for v in vector) + "]"


class DatabaseVectorRepository(DatabaseRepository):
    """Embedding records in the ``vector_embeddings`` table.

    On PostgreSQL similarity is computed by pgvector's cosine distance
    operator and served by the ANN index. Other engines store vectors as
    JSON and rank the candidates of matching width in Python.
    """

    def __init__(self, db_session: Session, reconciler: SchemaReconciler):
        super().__init__(db_session)
        self.reconciler = reconciler

    @property
    def dialect(self) -> str:
        return self.db.get_bind().dialect.name

    def _to_record(self, row: VectorEmbedding) -> EmbeddingRecord:
        return EmbeddingRecord(
            content_type=str(row.content_type),
            content_id=str(row.content_id),
            text_content=str(row.text_content),
            embedding=list(row.embedding or []),
            dimensions=int(row.dimensions),
            metadata=dict(row.meta) if row.meta is not None else None,
            model=row.model,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _get(self, content_type: str, content_id: str) -> Optional[VectorEmbedding]:
        return (
            self.db.query(VectorEmbedding)
            .filter(
                VectorEmbedding.content_type == content_type,
                VectorEmbedding.content_id == content_id,
            )
            .first()
        )

    def get_dimensions(self) -> Optional[int]:
        return self.reconciler.current_dimensions()

    def ensure_dimensions(self, width: int) -> ReconcileResult:
        return self.reconciler.ensure_dimensions(width)

    def upsert(self, record: EmbeddingRecord) -> EmbeddingRecord:
        current = self.reconciler.current_dimensions()
        if current != record.dimensions:
            self.reconciler.invalidate()
            raise VectorDimensionChangedError(record.dimensions, current)

        now = datetime.now(timezone.utc)
        try:
            with self._write(f"upsert embedding {record.content_type}:{record.content_id}"):
                row = self._get(record.content_type, record.content_id)
                if row is None:
                    row = VectorEmbedding(
                        content_type=record.content_type,
                        content_id=record.content_id,
                        created_at=now,
                    )
                    self.db.add(row)
                row.text_content = record.text_content  # type: ignore[assignment]
                row.embedding = list(record.embedding)  # type: ignore[assignment]
                row.dimensions = len(record.embedding)  # type: ignore[assignment]
                row.meta = record.metadata  # type: ignore[assignment]
                row.model = record.model  # type: ignore[assignment]
                row.updated_at = now  # type: ignore[assignment]
        except DataError as e:
            # The column was migrated after the width check above
            match = _WIDTH_MISMATCH.search(str(e.orig))
            if match is None:
                raise
            self.reconciler.invalidate()
            raise VectorDimensionChangedError(record.dimensions, int(match.group(1))) from e
        self.db.refresh(row)
        return self._to_record(row)

    def reconcile_and_upsert(self, record: EmbeddingRecord) -> EmbeddingRecord:
        self.ensure_dimensions(record.dimensions)
        return self.upsert(record)

    def similarity_search(
        self,
        vector: Sequence[float],
        limit: int,
        threshold: float,
        content_types: Optional[Sequence[str]] = None,
    ) -> List[SimilarityHit]:
        if limit <= 0 or not vector:
            return []
        if self.dialect == "postgresql":
            return self._pg_similarity_search(vector, limit, threshold, content_types)

        query = self.db.query(VectorEmbedding).filter(
            VectorEmbedding.dimensions == len(vector)
        )
        if content_types:
            query = query.filter(VectorEmbedding.content_type.in_(list(content_types)))
        rows = query.all()

        ranked = rank(vector, ((row, row.embedding or []) for row in rows), limit, threshold)
        return [
            SimilarityHit(record=self._to_record(row), similarity=similarity)
            for row, similarity in ranked
        ]

    def _pg_similarity_search(
        self,
        vector: Sequence[float],
        limit: int,
        threshold: float,
        content_types: Optional[Sequence[str]],
    ) -> List[SimilarityHit]:
        distance = "(embedding <=> CAST(:embedding AS vector))"
        clauses = ["dimensions = :dims"]
        params: Dict[str, object] = {
            "embedding": _to_pg_vector(vector),
            "dims": len(vector),
            "limit": limit,
        }
        if threshold >= 0:
            clauses.append(f"1 - {distance} > :threshold")
            params["threshold"] = threshold
        if content_types:
            clauses.append("content_type IN :content_types")
            params["content_types"] = list(content_types)

        statement = text(
            f"SELECT id, 1 - {distance} AS similarity FROM vector_embeddings "
            f"WHERE {' AND '.join(clauses)} "
            f"ORDER BY {distance} ASC LIMIT :limit"
        )
        if content_types:
            statement = statement.bindparams(bindparam("content_types", expanding=True))

        scored = [(str(r.id), float(r.similarity)) for r in self.db.execute(statement, params)]
        if not scored:
            return []

        rows = (
            self.db.query(VectorEmbedding)
            .filter(VectorEmbedding.id.in_([row_id for row_id, _ in scored]))
            .all()
        )
        by_id = {str(row.id): row for row in rows}
        return [
            SimilarityHit(record=self._to_record(by_id[row_id]), similarity=similarity)
            for row_id, similarity in scored
            if row_id in by_id
        ]

    def find_by_content_identity(
        self, content_type: str, content_id: str
    ) -> Optional[EmbeddingRecord]:
        row = self._get(content_type, content_id)
        return self._to_record(row) if row else None

    def list_records(self, content_type: Optional[str] = None) -> List[EmbeddingRecord]:
        query = self.db.query(VectorEmbedding)
        if content_type:
            query = query.filter(VectorEmbedding.content_type == content_type)
        rows = query.order_by(VectorEmbedding.content_type, VectorEmbedding.content_id).all()
        return [self._to_record(row) for row in rows]

    def delete_by_server(self, server_name: str, content_type: str = "tool") -> int:
        with self._write(f"delete embeddings of server '{server_name}'"):
            deleted = (
                self.db.query(VectorEmbedding)
                .filter(
                    VectorEmbedding.content_type == content_type,
                    VectorEmbedding.content_id.startswith(
                        f"{server_name}:", autoescape=True
                    ),
                )
                .delete(synchronize_session=False)
            )
        logger.info(f"Deleted {deleted} embeddings for server '{server_name}'")
        return int(deleted)

    def delete_by_content_type(self, content_type: str) -> int:
        with self._write(f"delete '{content_type}' embeddings"):
            deleted = (
                self.db.query(VectorEmbedding)
                .filter(VectorEmbedding.content_type == content_type)
                .delete(synchronize_session=False)
            )
        logger.info(f"Deleted {deleted} '{content_type}' embeddings")
        return int(deleted)

    def count(self, content_type: Optional[str] = None) -> int:
        query = self.db.query(func.count(VectorEmbedding.id))
        if content_type:
            query = query.filter(VectorEmbedding.content_type == content_type)
        return int(query.scalar() or 0)
