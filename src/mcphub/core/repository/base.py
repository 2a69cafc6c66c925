"""Repository interfaces implemented by both the file and the database backends.

The dual-backend adapter relies on every backend exposing the same method
names with the same signatures, so that a failed database call can be
re-run verbatim against the file implementation.
"""

from typing import Any, Dict, List, Optional, Protocol, Sequence, TypeVar

from ..vector.schema import ReconcileResult
from ..vector.types import EmbeddingRecord, SimilarityHit
from .types import GroupRecord, MarketServerRecord

R = TypeVar("R")


class EntityRepository(Protocol[R]):
    """Generic CRUD over one entity group, keyed by a string."""

    def find_all(self) -> List[R]: ...

    def find_by_key(self, key: str) -> Optional[R]: ...

    def create(self, record: R) -> R:
        """Persist a new record.

        Raises:
            AlreadyExistsError: If the key is taken
        """
        ...

    def update(self, key: str, changes: Dict[str, Any]) -> Optional[R]:
        """Apply field changes, returning None when the key is unknown."""
        ...

    def delete(self, key: str) -> bool: ...

    def close(self) -> None: ...


class GroupRepository(EntityRepository[GroupRecord], Protocol):
    def find_by_name(self, name: str) -> Optional[GroupRecord]: ...

    def add_server(self, group_id: str, server_name: str) -> Optional[GroupRecord]: ...

    def remove_server(
        self, group_id: str, server_name: str
    ) -> Optional[GroupRecord]: ...


class MarketServerRepository(EntityRepository[MarketServerRecord], Protocol):
    def categories(self) -> List[str]: ...

    def tags(self) -> List[str]: ...

    def search(self, query: str) -> List[MarketServerRecord]: ...

    def filter_by_category(self, category: str) -> List[MarketServerRecord]: ...

    def filter_by_tag(self, tag: str) -> List[MarketServerRecord]: ...


class VectorStore(Protocol):
    """Embedding persistence plus similarity queries."""

    def get_dimensions(self) -> Optional[int]:
        """Width the store is currently configured for, None when unset."""
        ...

    def ensure_dimensions(self, width: int) -> ReconcileResult: ...

    def upsert(self, record: EmbeddingRecord) -> EmbeddingRecord:
        """Insert or replace the record for (content_type, content_id).

        Raises:
            VectorDimensionChangedError: If the record width differs from the
                store's configured width
        """
        ...

    def reconcile_and_upsert(self, record: EmbeddingRecord) -> EmbeddingRecord:
        """Reconcile the store width for the record, then upsert it."""
        ...

    def similarity_search(
        self,
        vector: Sequence[float],
        limit: int,
        threshold: float,
        content_types: Optional[Sequence[str]] = None,
    ) -> List[SimilarityHit]: ...

    def find_by_content_identity(
        self, content_type: str, content_id: str
    ) -> Optional[EmbeddingRecord]: ...

    def list_records(self, content_type: Optional[str] = None) -> List[EmbeddingRecord]: ...

    def delete_by_server(self, server_name: str, content_type: str = "tool") -> int: ...

    def delete_by_content_type(self, content_type: str) -> int: ...

    def count(self, content_type: Optional[str] = None) -> int: ...

    def close(self) -> None: ...
