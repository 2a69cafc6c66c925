import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ...exceptions import VectorDimensionChangedError
from ...vector.schema import ReconcileResult
from ...vector.similarity import rank
from ...vector.types import EmbeddingRecord, SimilarityHit

logger = logging.getLogger(__name__)


class FileVectorRepository:
    """Embedding records kept in a JSON document.

    The document carries the store's configured width next to the records::

        {"dimensions": 100, "records": [{content_type, content_id, ...}]}

    Search is a linear scan, which is adequate for a tool catalog.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._lock = threading.RLock()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"dimensions": None, "records": []}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ValueError(f"Failed to load vector file {self.path}: {e}") from e
        data.setdefault("dimensions", None)
        data.setdefault("records", [])
        return data

    def _save(self, data: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f)
            tmp_path.replace(self.path)
        except IOError as e:
            raise ValueError(f"Failed to save vector file: {e}") from e

    def _records(self) -> List[EmbeddingRecord]:
        return [EmbeddingRecord.model_validate(r) for r in self._load()["records"]]

    def get_dimensions(self) -> Optional[int]:
        return self._load()["dimensions"]

    def ensure_dimensions(self, width: int) -> ReconcileResult:
        if width <= 0:
            raise ValueError(f"Vector width must be positive, got {width}")
        with self._lock:
            data = self._load()
            previous = data["dimensions"]
            if previous == width:
                return ReconcileResult(False, previous, width)
            data["dimensions"] = width
            self._save(data)
        logger.warning(f"Vector file {self.path.name} width changed from {previous} to {width}")
        return ReconcileResult(True, previous, width)

    def upsert(self, record: EmbeddingRecord) -> EmbeddingRecord:
        with self._lock:
            data = self._load()
            if data["dimensions"] != record.dimensions:
                raise VectorDimensionChangedError(record.dimensions, data["dimensions"])

            now = datetime.now(timezone.utc)
            records = data["records"]
            stored = record.model_copy(update={"updated_at": now})
            for i, raw in enumerate(records):
                if (
                    raw.get("content_type") == record.content_type
                    and raw.get("content_id") == record.content_id
                ):
                    created_at = EmbeddingRecord.model_validate(raw).created_at
                    stored = stored.model_copy(update={"created_at": created_at or now})
                    records[i] = stored.model_dump(mode="json")
                    break
            else:
                stored = stored.model_copy(update={"created_at": now})
                records.append(stored.model_dump(mode="json"))
            self._save(data)
        return EmbeddingRecord.model_validate(stored.model_dump(mode="json"))

    def reconcile_and_upsert(self, record: EmbeddingRecord) -> EmbeddingRecord:
        with self._lock:
            self.ensure_dimensions(record.dimensions)
            return self.upsert(record)

    def similarity_search(
        self,
        vector: Sequence[float],
        limit: int,
        threshold: float,
        content_types: Optional[Sequence[str]] = None,
    ) -> List[SimilarityHit]:
        candidates = (
            (record, record.embedding)
            for record in self._records()
            if not content_types or record.content_type in content_types
        )
        return [
            SimilarityHit(record=record, similarity=similarity)
            for record, similarity in rank(vector, candidates, limit, threshold)
        ]

    def find_by_content_identity(
        self, content_type: str, content_id: str
    ) -> Optional[EmbeddingRecord]:
        for record in self._records():
            if record.content_type == content_type and record.content_id == content_id:
                return record
        return None

    def list_records(self, content_type: Optional[str] = None) -> List[EmbeddingRecord]:
        records = [
            r for r in self._records() if not content_type or r.content_type == content_type
        ]
        return sorted(records, key=lambda r: (r.content_type, r.content_id))

    def _delete_where(self, predicate: Any) -> int:
        with self._lock:
            data = self._load()
            kept = [r for r in data["records"] if not predicate(r)]
            deleted = len(data["records"]) - len(kept)
            if deleted:
                data["records"] = kept
                self._save(data)
        return deleted

    def delete_by_server(self, server_name: str, content_type: str = "tool") -> int:
        prefix = f"{server_name}:"
        return self._delete_where(
            lambda r: r.get("content_type") == content_type
            and str(r.get("content_id", "")).startswith(prefix)
        )

    def delete_by_content_type(self, content_type: str) -> int:
        return self._delete_where(lambda r: r.get("content_type") == content_type)

    def count(self, content_type: Optional[str] = None) -> int:
        return len(
            [
                r
                for r in self._load()["records"]
                if not content_type or r.get("content_type") == content_type
            ]
        )

    def close(self) -> None:
        pass
