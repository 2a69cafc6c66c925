"""Semantic tool search.

:class:`ToolSearchService` embeds tool descriptors reported by the connected
MCP servers, keeps them in a vector store and answers free-text queries with
ranked tools. The embedding provider, the store and the server catalog are
all passed in, so each can be replaced in tests.

Ingestion is strictly sequential (embed, reconcile the store width, upsert)
and a failing tool never aborts the batch it belongs to.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from ..exceptions import (
    InvalidRequestError,
    SchemaError,
    ServerNotFoundError,
    ServerNotReadyError,
    VectorDimensionChangedError,
)
from ..model.embedding import BaseEmbedding
from ..repository.base import VectorStore
from ..retry import FixedDelay, retry_call
from .catalog import ServerCatalog, ToolInfo
from .types import (
    TOOL_CONTENT_TYPE,
    EmbeddingRecord,
    ToolIdentity,
    ToolMatch,
    ToolMetadata,
    parse_metadata,
)

logger = logging.getLogger(__name__)

UNKNOWN_SERVER = "unknown"

# Candidates fetched per requested result when post-filtering by server
SERVER_FILTER_OVERFETCH = 10


@dataclass
class IngestReport:
    succeeded: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.succeeded + self.failed

    def merge(self, other: "IngestReport") -> None:
        self.succeeded += other.succeeded
        self.failed += other.failed
        self.errors.extend(other.errors)


def build_searchable_text(tool: ToolInfo) -> str:
    """Text embedded for a tool.

    Tool name, description, the top-level input schema keys other than
    ``type`` and ``properties``, then the schema's property names, joined by
    single spaces with empty parts left out.
    """
    parts: List[str] = [tool.name, tool.description]
    schema = tool.input_schema or {}
    parts.extend(key for key in schema if key not in ("type", "properties"))
    properties = schema.get("properties")
    if isinstance(properties, dict):
        parts.extend(properties)
    return " ".join(str(part) for part in parts if part)


def tool_content_id(server_name: str, tool_name: str) -> str:
    return f"{server_name}:{tool_name}"


def parse_tool_text(text: str) -> ToolIdentity:
    """Best-effort tool identity from a record's embedded text.

    The first token is taken as the tool name and the rest as the
    description. The server name is the part of the tool name before its
    first underscore, which is only right for tools that follow the
    ``server_tool`` naming convention; anything else is attributed to
    ``"unknown"``.
    """
    tokens = text.strip().split(None, 1)
    tool_name = tokens[0] if tokens else ""
    description = tokens[1] if len(tokens) > 1 else ""
    prefix, sep, _ = tool_name.partition("_")
    server_name = prefix if sep and prefix else UNKNOWN_SERVER
    return ToolIdentity(
        server_name=server_name,
        tool_name=tool_name,
        description=description,
        source="parsed",
    )


def identify(record: EmbeddingRecord) -> ToolIdentity:
    metadata = parse_metadata(record.content_type, record.metadata)
    if metadata is None:
        logger.debug(
            f"Record {record.content_type}:{record.content_id} has no usable metadata, parsing its text"
        )
        return parse_tool_text(record.text_content)
    return ToolIdentity(
        server_name=metadata.server_name,
        tool_name=metadata.tool_name,
        description=metadata.description,
        input_schema=metadata.input_schema,
        source="metadata",
    )


class ToolSearchService:
    def __init__(
        self,
        embedding: BaseEmbedding,
        store: VectorStore,
        catalog: ServerCatalog,
        upsert_retries: int = 3,
        retry_delay_ms: int = 100,
    ):
        self.embedding = embedding
        self.store = store
        self.catalog = catalog
        self.upsert_retries = upsert_retries
        self.retry_delay_ms = retry_delay_ms

    def ingest(
        self,
        content_type: str,
        content_id: str,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> EmbeddingRecord:
        """Embed ``text`` and store it under (content_type, content_id).

        The store width is reconciled to the embedding width before the
        write. If another writer changes the width in between, the
        reconcile-and-write pair is retried.

        Raises:
            EmbeddingProviderError: If no embedding strategy produced a vector
            SchemaReconciliationError: If the store width could not be migrated
        """
        result = self.embedding.embed(text)
        record = EmbeddingRecord(
            content_type=content_type,
            content_id=content_id,
            text_content=text,
            embedding=result.vector,
            metadata=metadata,
            model=result.model,
        )
        return self._write(record)

    def ingest_tool(self, server_name: str, tool: ToolInfo) -> EmbeddingRecord:
        metadata = ToolMetadata(
            server_name=server_name,
            tool_name=tool.name,
            description=tool.description,
            input_schema=tool.input_schema,
        )
        return self.ingest(
            TOOL_CONTENT_TYPE,
            tool_content_id(server_name, tool.name),
            build_searchable_text(tool),
            metadata.to_document(),
        )

    def ingest_server_tools(
        self, server_name: str, tools: Sequence[ToolInfo]
    ) -> IngestReport:
        """Ingest tools one by one; a failing tool is logged and skipped.

        Schema errors are not skipped: every later tool would hit the same
        error, so they abort the batch and reach the caller.
        """
        report = IngestReport()
        for tool in tools:
            try:
                self.ingest_tool(server_name, tool)
                report.succeeded += 1
            except SchemaError:
                raise
            except Exception as e:
                report.failed += 1
                report.errors.append(f"{tool_content_id(server_name, tool.name)}: {e}")
                logger.error(f"Failed to vectorize tool '{tool.name}' of server '{server_name}': {e}")

        logger.info(
            f"Saved {report.succeeded}/{report.total} tool embeddings for server: {server_name}"
        )
        return report

    def rebuild_all(self) -> IngestReport:
        """Re-embed the tools of every active server."""
        active = [s for s in self.catalog.list_servers() if s.is_active and s.tools]
        logger.info(f"Found {len(active)} active servers with tools")

        report = IngestReport()
        for server in active:
            report.merge(self.ingest_server_tools(server.name, server.tools))
        logger.info(
            f"Completed vectorization of all server tools: {report.succeeded} saved, {report.failed} failed"
        )
        return report

    def rebuild_for_server(self, server_name: str) -> IngestReport:
        server = self.catalog.get_server(server_name)
        if server is None:
            raise ServerNotFoundError(f"Server '{server_name}' not found")
        if not server.is_active:
            raise ServerNotReadyError(f"Server '{server_name}' is not active or enabled")
        if not server.tools:
            raise ServerNotReadyError(f"Server '{server_name}' has no tools to vectorize")
        return self.ingest_server_tools(server_name, server.tools)

    def _write(self, record: EmbeddingRecord) -> EmbeddingRecord:
        return retry_call(
            self.store.reconcile_and_upsert,
            record,
            strategy=FixedDelay(self.retry_delay_ms),
            max_retries=self.upsert_retries,
            retry_on=lambda e: isinstance(e, VectorDimensionChangedError),
        )

    def _restore(self, records: Sequence[EmbeddingRecord]) -> int:
        """Write ``records`` back unchanged; returns how many could be."""
        width = self.store.get_dimensions()
        restored = 0
        for record in records:
            if record.dimensions != width:
                logger.error(
                    f"Cannot restore {record.content_id}: width {record.dimensions}, store has {width}"
                )
                continue
            try:
                self.store.upsert(record)
                restored += 1
            except Exception as e:
                logger.error(f"Failed to restore {record.content_id}: {e}")
        return restored

    def reembed_stored(self, server_name: Optional[str] = None) -> IngestReport:
        """Re-embed stored tool records with the current embedding model.

        Used after the embedding model changed, when no server connections
        are available to report their tools again. Every record is embedded
        before anything is deleted. The old rows are then removed so the
        store width can be migrated, and the new vectors written.

        Records that could not be re-embedded are written back unchanged when
        the store width still fits them. If the store width cannot be
        migrated, every record not yet rewritten is put back at its old
        width and the schema error is raised.
        """
        records = self.store.list_records(TOOL_CONTENT_TYPE)
        if server_name:
            prefix = tool_content_id(server_name, "")
            records = [r for r in records if r.content_id.startswith(prefix)]
        logger.info(f"Re-embedding {len(records)} stored tool records")

        report = IngestReport()
        fresh: List[EmbeddingRecord] = []
        kept: List[EmbeddingRecord] = []
        for record in records:
            try:
                result = self.embedding.embed(record.text_content)
            except Exception as e:
                report.failed += 1
                report.errors.append(f"{record.content_id}: {e}")
                logger.error(f"Failed to re-embed {record.content_id}: {e}")
                kept.append(record)
                continue
            fresh.append(
                record.model_copy(
                    update={
                        "embedding": result.vector,
                        "dimensions": len(result.vector),
                        "model": result.model,
                    }
                )
            )

        if not fresh:
            return report

        if server_name:
            self.store.delete_by_server(server_name, TOOL_CONTENT_TYPE)
        else:
            self.store.delete_by_content_type(TOOL_CONTENT_TYPE)

        originals = {(r.content_type, r.content_id): r for r in records}
        for i, record in enumerate(fresh):
            try:
                self._write(record)
            except SchemaError:
                pending = [originals[(r.content_type, r.content_id)] for r in fresh[i:]]
                restored = self._restore(pending + kept)
                logger.error(
                    f"Re-embedding aborted, restored {restored}/{len(pending) + len(kept)} records"
                )
                raise
            except Exception as e:
                report.failed += 1
                report.errors.append(f"{record.content_id}: {e}")
                logger.error(f"Failed to store re-embedded {record.content_id}: {e}")
                kept.append(originals[(record.content_type, record.content_id)])
                continue
            report.succeeded += 1

        if kept:
            self._restore(kept)
        return report

    def _guard_width(self, width: int) -> None:
        current = self.store.get_dimensions()
        if current != width:
            logger.warning(f"Query width {width} differs from store width {current}")
            self.store.ensure_dimensions(width)

    def search(
        self,
        query: str,
        limit: int = 10,
        threshold: float = 0.7,
        servers: Optional[Sequence[str]] = None,
        content_types: Optional[Sequence[str]] = None,
    ) -> List[ToolMatch]:
        """Tools ranked by similarity to ``query``, best first.

        ``servers`` restricts the results to the named servers after
        ranking. Results whose identity had to be parsed from text are
        marked with ``source="parsed"``.

        A query whose width the store cannot be migrated to, typically a
        fallback vector over a store built by the primary model, yields no
        results instead of an error.
        """
        if not query or not query.strip():
            raise InvalidRequestError("Query parameter is required")
        if limit <= 0:
            return []

        vector = self.embedding.embed(query).vector
        try:
            self._guard_width(len(vector))
        except SchemaError as e:
            logger.error(f"Search skipped, store cannot serve {len(vector)}-wide queries: {e}")
            return []

        fetch_limit = limit * SERVER_FILTER_OVERFETCH if servers else limit
        hits = self.store.similarity_search(
            vector, fetch_limit, threshold, list(content_types or [TOOL_CONTENT_TYPE])
        )

        matches: List[ToolMatch] = []
        for hit in hits:
            identity = identify(hit.record)
            if servers and identity.server_name not in servers:
                continue
            matches.append(
                ToolMatch(
                    identity=identity,
                    similarity=hit.similarity,
                    searchable_text=hit.record.text_content,
                )
            )
            if len(matches) >= limit:
                break
        return matches

    def list_all_vectorized(
        self, servers: Optional[Sequence[str]] = None
    ) -> List[ToolIdentity]:
        identities = [identify(r) for r in self.store.list_records(TOOL_CONTENT_TYPE)]
        if servers:
            identities = [i for i in identities if i.server_name in servers]
        return identities

    def stats(self) -> Dict[str, Any]:
        tools = self.list_all_vectorized()
        servers = {s.name: s for s in self.catalog.list_servers()}

        counts: Dict[str, int] = {}
        for tool in tools:
            counts[tool.server_name] = counts.get(tool.server_name, 0) + 1

        return {
            "totalVectorizedTools": len(tools),
            "totalActiveServers": len([s for s in servers.values() if s.is_active]),
            "totalServersWithTools": len(counts),
            "serverStats": [
                {
                    "serverName": name,
                    "toolsCount": count,
                    "isActive": name in servers and servers[name].status == "connected",
                }
                for name, count in counts.items()
            ],
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
        }

    def remove_server_embeddings(self, server_name: str) -> int:
        removed = self.store.delete_by_server(server_name, TOOL_CONTENT_TYPE)
        logger.info(f"Removed {removed} tool embeddings for server: {server_name}")
        return removed
