from unittest.mock import MagicMock

import pytest

from mcphub.core.exceptions import (
    EmbeddingProviderError,
    InvalidRequestError,
    SchemaReconciliationError,
    ServerNotFoundError,
    ServerNotReadyError,
    VectorDimensionChangedError,
)
from mcphub.core.model.embedding import (
    BaseEmbedding,
    EmbeddingResult,
    FallbackEmbedding,
    OfflineEmbedding,
)
from mcphub.core.repository.file import FileVectorRepository
from mcphub.core.vector.catalog import ServerStatusRegistry, ToolInfo
from mcphub.core.vector.search import (
    ToolSearchService,
    build_searchable_text,
    parse_tool_text,
)
from mcphub.core.vector.types import EmbeddingRecord

FORECAST = ToolInfo(name="getForecast", description="Get weather forecast for a location")


class FlakyEmbedding(BaseEmbedding):
    """Offline vectors, except for texts containing a poison word."""

    def __init__(self, poison: str, dimension: int = 100):
        self.poison = poison
        self.offline = OfflineEmbedding(dimension)

    @property
    def model_name(self) -> str:
        return "flaky"

    def encode(self, text, dimension=None):
        if self.poison in text:
            raise EmbeddingProviderError(f"cannot embed {text!r}")
        return self.offline.encode(text, dimension)

    def get_dimension(self):
        return self.offline.dimension


class StrictWidthStore(FileVectorRepository):
    """Refuses a width change while rows of another width exist, as a pgvector column does."""

    def ensure_dimensions(self, width):
        stale = [r for r in self.list_records() if r.dimensions != width]
        if stale and self.get_dimensions() != width:
            raise SchemaReconciliationError(
                f"Failed to alter width on vectors: {len(stale)} rows of another width",
                step="alter_width",
            )
        return super().ensure_dimensions(width)


@pytest.fixture
def status():
    return ServerStatusRegistry()


@pytest.fixture
def store(tmp_path):
    return FileVectorRepository(tmp_path / "vectors.json")


@pytest.fixture
def service(offline_embedding, store, status):
    return ToolSearchService(offline_embedding, store, status, retry_delay_ms=0)


class TestSearchableText:
    def test_includes_schema_keys_and_properties(self):
        tool = ToolInfo(
            name="search_files",
            description="Find files",
            input_schema={
                "type": "object",
                "required": ["pattern"],
                "properties": {"pattern": {}, "path": {}},
            },
        )
        assert build_searchable_text(tool) == "search_files Find files required pattern path"

    def test_skips_empty_parts(self):
        assert build_searchable_text(ToolInfo(name="ping")) == "ping"


class TestParseToolText:
    def test_underscore_prefix_is_server(self):
        identity = parse_tool_text("github_create_issue Create an issue")

        assert identity.server_name == "github"
        assert identity.tool_name == "github_create_issue"
        assert identity.description == "Create an issue"
        assert identity.source == "parsed"

    def test_no_underscore_is_unknown_server(self):
        identity = parse_tool_text("getForecast Get weather forecast")
        assert identity.server_name == "unknown"
        assert identity.tool_name == "getForecast"

    def test_leading_underscore_is_unknown_server(self):
        assert parse_tool_text("_private thing").server_name == "unknown"


class TestIngest:
    def test_ingest_tool_stores_metadata(self, service, store):
        record = service.ingest_tool("weather", FORECAST)

        assert record.content_id == "weather:getForecast"
        assert record.model == "fallback"
        assert record.dimensions == len(record.embedding) == 100
        assert record.metadata == {
            "serverName": "weather",
            "toolName": "getForecast",
            "description": "Get weather forecast for a location",
            "inputSchema": {},
        }
        assert store.get_dimensions() == 100

    def test_reingest_replaces_record(self, service, store):
        service.ingest_tool("weather", FORECAST)
        service.ingest_tool("weather", FORECAST)
        assert store.count("tool") == 1

    def test_batch_isolation(self, store, status):
        service = ToolSearchService(FlakyEmbedding("poison"), store, status)
        tools = [
            ToolInfo(name="first", description="search files"),
            ToolInfo(name="second", description="poison text"),
            ToolInfo(name="third", description="send email"),
        ]

        report = service.ingest_server_tools("demo", tools)

        assert report.succeeded == 2
        assert report.failed == 1
        assert "demo:second" in report.errors[0]
        assert store.find_by_content_identity("tool", "demo:first") is not None
        assert store.find_by_content_identity("tool", "demo:second") is None
        assert store.find_by_content_identity("tool", "demo:third") is not None

    def test_schema_errors_abort_the_batch(self, offline_embedding, status):
        store = MagicMock()
        store.reconcile_and_upsert.side_effect = SchemaReconciliationError(
            "Failed to alter width", step="alter_width"
        )
        service = ToolSearchService(offline_embedding, store, status)

        with pytest.raises(SchemaReconciliationError):
            service.ingest_server_tools("weather", [FORECAST, FORECAST])
        assert store.reconcile_and_upsert.call_count == 1

    def test_width_race_is_retried(self, offline_embedding, status):
        store = MagicMock()
        stored = MagicMock(spec=EmbeddingRecord)
        store.reconcile_and_upsert.side_effect = [
            VectorDimensionChangedError(100, 50),
            stored,
        ]
        service = ToolSearchService(offline_embedding, store, status, retry_delay_ms=0)

        assert service.ingest_tool("weather", FORECAST) is stored
        assert store.reconcile_and_upsert.call_count == 2

    def test_width_race_gives_up(self, offline_embedding, status):
        store = MagicMock()
        store.reconcile_and_upsert.side_effect = VectorDimensionChangedError(100, 50)
        service = ToolSearchService(
            offline_embedding, store, status, upsert_retries=2, retry_delay_ms=0
        )

        with pytest.raises(VectorDimensionChangedError):
            service.ingest_tool("weather", FORECAST)
        assert store.reconcile_and_upsert.call_count == 2


class TestSearch:
    def test_weather_scenario(self, service):
        service.ingest_tool("weather", FORECAST)

        results = service.search("weather forecast", limit=5, threshold=0.1)

        assert results
        top = results[0]
        assert top.identity.server_name == "weather"
        assert top.identity.tool_name == "getForecast"
        assert top.identity.source == "metadata"
        assert top.similarity > 0.1
        assert top.searchable_text == "getForecast Get weather forecast for a location"

        assert service.search("unrelated quantum physics", limit=5, threshold=0.9) == []

    def test_round_trip_similarity(self, offline_embedding, store):
        vector = offline_embedding.encode("calendar schedule reminder")
        store.reconcile_and_upsert(
            EmbeddingRecord(
                content_type="tool",
                content_id="cal:remind",
                text_content="calendar schedule reminder",
                embedding=vector,
            )
        )

        hits = store.similarity_search(vector, limit=1, threshold=0)

        assert hits[0].record.content_id == "cal:remind"
        assert hits[0].similarity == pytest.approx(1.0)

    def test_threshold_monotonicity(self, service):
        service.ingest_server_tools(
            "demo",
            [
                ToolInfo(name="maps", description="map location search"),
                ToolInfo(name="mail", description="send email message"),
                ToolInfo(name="db", description="database table query"),
            ],
        )

        previous = None
        for threshold in (0.0, 0.2, 0.4, 0.6, 0.8):
            results = service.search("search location query", limit=10, threshold=threshold)
            scores = [r.similarity for r in results]
            assert scores == sorted(scores, reverse=True)
            names = {r.identity.tool_name for r in results}
            if previous is not None:
                assert names <= previous
            previous = names

    def test_server_filter_is_applied_after_ranking(self, service):
        service.ingest_tool("weather", FORECAST)
        service.ingest_tool("backup", ToolInfo(name="forecastBackup", description="weather forecast"))

        results = service.search("weather forecast", limit=5, threshold=0.0, servers=["backup"])

        assert [r.identity.server_name for r in results] == ["backup"]

    def test_missing_metadata_falls_back_to_parsing(self, service, store, offline_embedding):
        text = "github_create_issue Create a github issue"
        store.reconcile_and_upsert(
            EmbeddingRecord(
                content_type="tool",
                content_id="github:create_issue",
                text_content=text,
                embedding=offline_embedding.encode(text),
                metadata={"unexpected": True},
            )
        )

        results = service.search("create github issue", limit=5, threshold=0.0)

        assert results[0].identity.source == "parsed"
        assert results[0].identity.server_name == "github"
        assert results[0].identity.tool_name == "github_create_issue"
        assert results[0].to_api_dict()["source"] == "parsed"

    def test_empty_query_rejected(self, service):
        with pytest.raises(InvalidRequestError):
            service.search("   ")

    def test_provider_outage_over_unmigratable_store_returns_nothing(self, tmp_path, status):
        store = StrictWidthStore(tmp_path / "vectors.json")
        ToolSearchService(OfflineEmbedding(64), store, status).ingest_tool("weather", FORECAST)
        primary = MagicMock(spec=BaseEmbedding)
        primary.model_name = "text-embedding-3-small"
        primary.embed.side_effect = EmbeddingProviderError("service unavailable")
        embedding = FallbackEmbedding(primary, OfflineEmbedding(100))

        results = ToolSearchService(embedding, store, status).search(
            "weather forecast", threshold=0.0
        )

        assert results == []
        assert store.get_dimensions() == 64
        assert store.count("tool") == 1

    def test_dimension_migration_scenario(self, store, status):
        # Store configured for the 100-wide offline vectors
        ToolSearchService(OfflineEmbedding(100), store, status).ingest_tool("weather", FORECAST)
        assert store.get_dimensions() == 100

        service = ToolSearchService(OfflineEmbedding(50), store, status)
        record = service.ingest_tool("weather", FORECAST)

        assert store.get_dimensions() == 50
        assert record.dimensions == 50
        results = service.search("weather forecast", limit=5, threshold=0.1)
        assert results and results[0].identity.tool_name == "getForecast"


class TestRebuild:
    def test_rebuild_all_only_active_servers(self, service, status, store):
        status.report("weather", "connected", [FORECAST])
        status.report("offline", "disconnected", [ToolInfo(name="sleep")])
        status.report("disabled", "connected", [ToolInfo(name="off")], enabled=False)
        status.report("empty", "connected", [])

        report = service.rebuild_all()

        assert report.succeeded == 1
        assert [r.content_id for r in store.list_records("tool")] == ["weather:getForecast"]

    def test_rebuild_for_server_errors(self, service, status):
        status.report("down", "disconnected", [FORECAST])
        status.report("empty", "connected", [])

        with pytest.raises(ServerNotFoundError):
            service.rebuild_for_server("missing")
        with pytest.raises(ServerNotReadyError, match="not active or enabled"):
            service.rebuild_for_server("down")
        with pytest.raises(ServerNotReadyError, match="no tools"):
            service.rebuild_for_server("empty")

    def test_rebuild_for_server(self, service, status):
        status.report("weather", "connected", [FORECAST, ToolInfo(name="getAlerts")])

        report = service.rebuild_for_server("weather")

        assert report.total == 2
        assert report.failed == 0

    def test_reembed_stored_with_new_width(self, store, status):
        ToolSearchService(OfflineEmbedding(100), store, status).ingest_tool("weather", FORECAST)

        service = ToolSearchService(OfflineEmbedding(50), store, status)
        report = service.reembed_stored()

        assert report.succeeded == 1
        records = store.list_records("tool")
        assert [r.dimensions for r in records] == [50]
        assert records[0].metadata["toolName"] == "getForecast"

    def test_reembed_keeps_records_when_width_cannot_change(self, tmp_path, status):
        store = StrictWidthStore(tmp_path / "vectors.json")
        old = ToolSearchService(OfflineEmbedding(100), store, status)
        old.ingest_tool("a", ToolInfo(name="search", description="search the web"))
        old.ingest_tool("b", ToolInfo(name="send", description="send an email"))

        service = ToolSearchService(OfflineEmbedding(50), store, status, retry_delay_ms=0)
        with pytest.raises(SchemaReconciliationError):
            service.reembed_stored("a")

        records = store.list_records("tool")
        assert [r.content_id for r in records] == ["a:search", "b:send"]
        assert [r.dimensions for r in records] == [100, 100]
        assert records[0].metadata["toolName"] == "search"
        assert records[0].text_content == "search search the web"

    def test_reembed_failures_keep_old_records(self, store, status):
        old = ToolSearchService(OfflineEmbedding(100), store, status)
        old.ingest_tool("weather", FORECAST)
        old.ingest_tool("weather", ToolInfo(name="getAlerts", description="weather alerts"))

        report = ToolSearchService(
            FlakyEmbedding("alerts"), store, status, retry_delay_ms=0
        ).reembed_stored("weather")

        assert (report.succeeded, report.failed) == (1, 1)
        assert "weather:getAlerts" in report.errors[0]
        records = {r.content_id: r for r in store.list_records("tool")}
        assert set(records) == {"weather:getForecast", "weather:getAlerts"}
        assert records["weather:getForecast"].model == "flaky"
        assert records["weather:getAlerts"].model == "fallback"

    def test_reembed_nothing_when_every_record_fails(self, store, status):
        ToolSearchService(OfflineEmbedding(100), store, status).ingest_tool("weather", FORECAST)
        before = store.list_records("tool")

        report = ToolSearchService(FlakyEmbedding("weather"), store, status).reembed_stored()

        assert report.failed == 1
        assert store.list_records("tool") == before

    def test_remove_server_embeddings(self, service, store):
        service.ingest_tool("weather", FORECAST)
        service.ingest_tool("weather_extra", ToolInfo(name="other"))

        assert service.remove_server_embeddings("weather") == 1
        assert [r.content_id for r in store.list_records()] == ["weather_extra:other"]


class TestListingAndStats:
    def test_list_all_vectorized(self, service):
        service.ingest_tool("weather", FORECAST)
        service.ingest_tool("mail", ToolInfo(name="send", description="send email"))

        assert {t.server_name for t in service.list_all_vectorized()} == {"weather", "mail"}
        assert [t.tool_name for t in service.list_all_vectorized(["mail"])] == ["send"]

    def test_stats(self, service, status):
        status.report("weather", "connected", [FORECAST])
        status.report("mail", "disconnected", [])
        service.ingest_tool("weather", FORECAST)
        service.ingest_tool("weather", ToolInfo(name="getAlerts"))
        service.ingest_tool("mail", ToolInfo(name="send"))

        stats = service.stats()

        assert stats["totalVectorizedTools"] == 3
        assert stats["totalActiveServers"] == 1
        assert stats["totalServersWithTools"] == 2
        by_server = {s["serverName"]: s for s in stats["serverStats"]}
        assert by_server["weather"] == {"serverName": "weather", "toolsCount": 2, "isActive": True}
        assert by_server["mail"]["isActive"] is False
        assert stats["lastUpdated"]


def test_embedding_is_injected(store, status):
    embedding = MagicMock(spec=BaseEmbedding)
    embedding.embed.return_value = EmbeddingResult([1.0, 0.0, 0.0], "stub")

    record = ToolSearchService(embedding, store, status).ingest("tool", "x:y", "text")

    embedding.embed.assert_called_once_with("text")
    assert record.model == "stub"
