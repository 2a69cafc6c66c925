"""Test vector search API endpoints"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from mcphub.core.exceptions import SchemaReconciliationError
from mcphub.core.model.embedding import OfflineEmbedding
from mcphub.core.repository import ServerConfigRecord
from mcphub.core.vector.catalog import ToolInfo
from mcphub.web import build_context, create_app

FORECAST = ToolInfo(
    name="getForecast",
    description="Get weather forecast for a location",
    input_schema={"type": "object", "properties": {"location": {"type": "string"}}},
)


@pytest.fixture
def context(tmp_path):
    context = build_context(str(tmp_path / "storage"), embedding=OfflineEmbedding())
    context.registry.server_configs.create(ServerConfigRecord(name="weather"))
    context.registry.server_configs.create(ServerConfigRecord(name="mail"))
    return context


@pytest.fixture
def client(context):
    return TestClient(create_app(context))


@pytest.fixture
def indexed(context):
    context.status.report("weather", "connected", [FORECAST])
    context.search_service.rebuild_all()
    return context


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


class TestSearch:
    def test_search(self, client, indexed):
        response = client.get(
            "/api/vector-search/search",
            params={"query": "weather forecast", "limit": "5", "threshold": "0.1"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["query"] == "weather forecast"
        assert data["limit"] == 5
        assert data["threshold"] == 0.1
        assert data["servers"] is None
        assert data["total"] == len(data["results"]) == 1
        result = data["results"][0]
        assert result["serverName"] == "weather"
        assert result["toolName"] == "getForecast"
        assert result["inputSchema"]["properties"] == {"location": {"type": "string"}}
        assert result["source"] == "metadata"
        assert result["similarity"] > 0.1

    def test_defaults(self, client):
        data = client.get("/api/vector-search/search", params={"query": "x"}).json()["data"]

        assert data["limit"] == 10
        assert data["threshold"] == 0.7
        assert data["results"] == []

    @pytest.mark.parametrize("params", [{}, {"query": ""}, {"query": "   "}])
    def test_missing_query(self, client, params):
        response = client.get("/api/vector-search/search", params=params)

        assert response.status_code == 400
        assert response.json()["detail"] == "Query parameter is required and must be a string"

    def test_non_numeric_limit(self, client):
        response = client.get(
            "/api/vector-search/search", params={"query": "x", "limit": "many"}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Limit parameter must be a number"

    @pytest.mark.parametrize("threshold", ["high", "nan"])
    def test_non_numeric_threshold(self, client, threshold):
        response = client.get(
            "/api/vector-search/search", params={"query": "x", "threshold": threshold}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Threshold parameter must be a number"

    @pytest.mark.parametrize(
        "limit,threshold,expected_limit,expected_threshold",
        [
            ("500", "2", 100, 1.0),
            ("0", "-1", 1, 0.0),
            ("7.9", "0.25", 7, 0.25),
        ],
    )
    def test_clamping(self, client, limit, threshold, expected_limit, expected_threshold):
        data = client.get(
            "/api/vector-search/search",
            params={"query": "x", "limit": limit, "threshold": threshold},
        ).json()["data"]

        assert data["limit"] == expected_limit
        assert data["threshold"] == expected_threshold

    def test_server_filter(self, client, indexed):
        indexed.status.report(
            "mail", "connected", [ToolInfo(name="forecastMail", description="weather forecast email")]
        )
        indexed.search_service.rebuild_all()

        data = client.get(
            "/api/vector-search/search",
            params={"query": "weather forecast", "threshold": "0", "servers": "mail, ,"},
        ).json()["data"]

        assert data["servers"] == ["mail"]
        assert {r["serverName"] for r in data["results"]} == {"mail"}

    def test_unmigratable_query_width_returns_no_results(self, client, context):
        context.search_service.store = MagicMock()
        context.search_service.store.get_dimensions.return_value = 1536
        context.search_service.store.ensure_dimensions.side_effect = SchemaReconciliationError(
            "Failed to alter width on vector_embeddings", step="alter_width"
        )

        response = client.get("/api/vector-search/search", params={"query": "weather"})

        assert response.status_code == 200
        assert response.json()["data"]["results"] == []
        context.search_service.store.similarity_search.assert_not_called()

    def test_unexpected_error(self, client, context):
        context.search_service.embedding = MagicMock()
        context.search_service.embedding.embed.side_effect = RuntimeError("boom")

        response = client.get("/api/vector-search/search", params={"query": "weather"})

        assert response.status_code == 500
        assert response.json()["detail"] == "Internal server error"


class TestTools:
    def test_list_tools(self, client, indexed):
        data = client.get("/api/vector-search/tools").json()["data"]

        assert data["total"] == 1
        assert data["tools"][0]["toolName"] == "getForecast"
        assert data["servers"] is None

    def test_list_tools_filtered(self, client, indexed):
        data = client.get("/api/vector-search/tools", params={"servers": "mail"}).json()["data"]

        assert data == {"tools": [], "total": 0, "servers": ["mail"]}


class TestRebuild:
    def test_rebuild_all(self, client, context):
        context.status.report("weather", "connected", [FORECAST])
        context.status.report("mail", "disconnected", [ToolInfo(name="send")])

        body = client.post("/api/vector-search/rebuild").json()

        assert body["success"] is True
        assert body["data"] == {"succeeded": 1, "failed": 0}

    def test_rebuild_server(self, client, context):
        context.status.report("weather", "connected", [FORECAST, ToolInfo(name="getAlerts")])

        body = client.post("/api/vector-search/rebuild/weather").json()

        assert body["data"] == {"serverName": "weather", "toolsCount": 2, "failed": 0}

    def test_rebuild_unknown_server(self, client):
        response = client.post("/api/vector-search/rebuild/nope")

        assert response.status_code == 404
        assert response.json()["detail"] == "Server 'nope' not found"

    def test_rebuild_unconfigured_but_reported_server(self, client, context):
        context.status.report("rogue", "connected", [FORECAST])

        assert client.post("/api/vector-search/rebuild/rogue").status_code == 404

    def test_rebuild_disconnected_server(self, client, context):
        context.status.report("mail", "disconnected", [ToolInfo(name="send")])

        response = client.post("/api/vector-search/rebuild/mail")

        assert response.status_code == 400
        assert "not active or enabled" in response.json()["detail"]

    def test_rebuild_disabled_server(self, client, context):
        context.registry.server_configs.set_enabled("mail", False)
        context.status.report("mail", "connected", [ToolInfo(name="send")])

        assert client.post("/api/vector-search/rebuild/mail").status_code == 400

    def test_rebuild_server_without_tools(self, client, context):
        context.status.report("mail", "connected", [])

        response = client.post("/api/vector-search/rebuild/mail")

        assert response.status_code == 400
        assert "no tools" in response.json()["detail"]

    def test_rebuild_schema_error_is_internal_error(self, client, context):
        context.status.report("weather", "connected", [FORECAST])
        context.search_service.store = MagicMock()
        context.search_service.store.reconcile_and_upsert.side_effect = (
            SchemaReconciliationError(
                "Failed to alter width on vector_embeddings", step="alter_width"
            )
        )

        response = client.post("/api/vector-search/rebuild/weather")

        assert response.status_code == 500
        assert "alter width" in response.json()["detail"]


def test_stats(client, indexed):
    data = client.get("/api/vector-search/stats").json()["data"]

    assert data["totalVectorizedTools"] == 1
    assert data["totalActiveServers"] == 1
    assert data["totalServersWithTools"] == 1
    assert data["serverStats"] == [
        {"serverName": "weather", "toolsCount": 1, "isActive": True}
    ]
    assert "lastUpdated" in data
