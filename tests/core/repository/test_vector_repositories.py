from unittest.mock import Mock

import pytest
from sqlalchemy.exc import DataError

from mcphub.core.exceptions import VectorDimensionChangedError
from mcphub.core.repository.db import DatabaseVectorRepository
from mcphub.core.repository.file import FileVectorRepository
from mcphub.core.vector.types import EmbeddingRecord


def _record(content_id: str, embedding, content_type: str = "tool", **kwargs) -> EmbeddingRecord:
    return EmbeddingRecord(
        content_type=content_type,
        content_id=content_id,
        text_content=content_id.replace(":", " "),
        embedding=embedding,
        **kwargs,
    )


@pytest.fixture(params=["file", "database"])
def store(request, tmp_path):
    if request.param == "file":
        yield FileVectorRepository(tmp_path / "vector_embeddings.json")
        return
    session_factory = request.getfixturevalue("session_factory")
    repository = DatabaseVectorRepository(
        session_factory(), request.getfixturevalue("reconciler")
    )
    yield repository
    repository.close()


class TestVectorStore:
    def test_unconfigured_width(self, store):
        assert store.get_dimensions() is None
        assert store.count() == 0

    def test_upsert_requires_configured_width(self, store):
        with pytest.raises(VectorDimensionChangedError) as exc_info:
            store.upsert(_record("a:x", [1.0, 0.0]))
        assert exc_info.value.expected == 2
        assert exc_info.value.actual is None

    def test_reconcile_and_upsert(self, store):
        stored = store.reconcile_and_upsert(
            _record("weather:forecast", [1.0, 0.0, 0.0], metadata={"k": "v"}, model="fallback")
        )

        assert store.get_dimensions() == 3
        assert stored.dimensions == 3
        assert stored.created_at is not None
        found = store.find_by_content_identity("tool", "weather:forecast")
        assert found.metadata == {"k": "v"}
        assert found.model == "fallback"

    def test_upsert_is_keyed_by_content_identity(self, store):
        store.reconcile_and_upsert(_record("a:x", [1.0, 0.0]))
        store.reconcile_and_upsert(_record("a:x", [0.0, 1.0]))

        assert store.count("tool") == 1
        assert store.find_by_content_identity("tool", "a:x").embedding == [0.0, 1.0]

    def test_similarity_search(self, store):
        store.reconcile_and_upsert(_record("a:near", [1.0, 0.1]))
        store.reconcile_and_upsert(_record("a:far", [0.0, 1.0]))
        store.reconcile_and_upsert(_record("a:note", [1.0, 0.0], content_type="note"))

        hits = store.similarity_search([1.0, 0.0], limit=5, threshold=0.5, content_types=["tool"])

        assert [h.record.content_id for h in hits] == ["a:near"]
        assert hits[0].similarity > 0.9

        everything = store.similarity_search([1.0, 0.0], limit=5, threshold=-1)
        assert len(everything) == 3
        assert store.similarity_search([1.0, 0.0], limit=0, threshold=0) == []

    def test_width_change_is_migrated(self, store):
        store.reconcile_and_upsert(_record("a:x", [1.0, 0.0]))

        result = store.ensure_dimensions(3)

        assert result.migrated is True
        assert result.previous == 2
        assert store.get_dimensions() == 3
        with pytest.raises(VectorDimensionChangedError):
            store.upsert(_record("a:y", [1.0, 0.0]))
        # Stale rows never match a query of the new width
        assert store.similarity_search([1.0, 0.0, 0.0], limit=5, threshold=-1) == []

    def test_ensure_dimensions_is_idempotent(self, store):
        assert store.ensure_dimensions(4).migrated is True
        assert store.ensure_dimensions(4).migrated is False

    def test_delete_by_server(self, store):
        store.reconcile_and_upsert(_record("web:fetch", [1.0, 0.0]))
        store.reconcile_and_upsert(_record("web:crawl", [1.0, 0.0]))
        store.reconcile_and_upsert(_record("web_x:fetch", [1.0, 0.0]))
        store.reconcile_and_upsert(_record("web:fetch", [1.0, 0.0], content_type="note"))

        assert store.delete_by_server("web") == 2
        assert [(r.content_type, r.content_id) for r in store.list_records()] == [
            ("note", "web:fetch"),
            ("tool", "web_x:fetch"),
        ]

    def test_delete_by_content_type(self, store):
        store.reconcile_and_upsert(_record("a:x", [1.0, 0.0]))
        store.reconcile_and_upsert(_record("a:x", [1.0, 0.0], content_type="note"))

        assert store.delete_by_content_type("tool") == 1
        assert store.count() == 1


class TestConcurrentWidthChange:
    @pytest.fixture
    def db_store(self, session_factory, reconciler):
        repository = DatabaseVectorRepository(session_factory(), reconciler)
        repository.reconcile_and_upsert(_record("a:x", [1.0, 0.0]))
        yield repository
        repository.close()

    def test_width_rejected_at_write_is_retryable(self, db_store, monkeypatch):
        rejected = DataError(
            "INSERT INTO vector_embeddings",
            {},
            Exception("expected 3 dimensions, not 2"),
        )
        monkeypatch.setattr(db_store.db, "commit", Mock(side_effect=rejected))

        with pytest.raises(VectorDimensionChangedError) as exc_info:
            db_store.upsert(_record("a:y", [0.0, 1.0]))

        assert exc_info.value.expected == 2
        assert exc_info.value.actual == 3
        assert exc_info.value.__cause__ is rejected

    def test_other_data_errors_propagate(self, db_store, monkeypatch):
        rejected = DataError("INSERT", {}, Exception("value too long for type"))
        monkeypatch.setattr(db_store.db, "commit", Mock(side_effect=rejected))

        with pytest.raises(DataError):
            db_store.upsert(_record("a:y", [0.0, 1.0]))


def test_invalid_record_rejected():
    with pytest.raises(ValueError):
        EmbeddingRecord(
            content_type="tool",
            content_id="a:x",
            text_content="x",
            embedding=[1.0, 2.0],
            dimensions=3,
        )


def test_corrupt_vector_file(tmp_path):
    path = tmp_path / "vector_embeddings.json"
    path.write_text("{not json")

    with pytest.raises(ValueError, match="Failed to load vector file"):
        FileVectorRepository(path).get_dimensions()
