"""
Vector Search API Endpoints

Semantic search over the tools of the connected MCP servers, plus the
operations that (re)build and inspect the tool embeddings.
"""

import logging
import math
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request, status

from ...core.exceptions import (
    InvalidRequestError,
    SchemaError,
    ServerNotFoundError,
    ServerNotReadyError,
)
from ...core.vector.search import ToolSearchService

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
MAX_LIMIT = 100
DEFAULT_THRESHOLD = 0.7

router = APIRouter(prefix="/api/vector-search", tags=["Vector Search"])


def _service(request: Request) -> ToolSearchService:
    return request.app.state.search_service


def parse_limit(raw: Optional[str]) -> int:
    """Parse ``limit``, clamped to [1, MAX_LIMIT]; fractions are truncated."""
    if raw is None or not raw.strip():
        return DEFAULT_LIMIT
    try:
        value = int(float(raw))
    except (ValueError, OverflowError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Limit parameter must be a number",
        )
    return min(max(value, 1), MAX_LIMIT)


def parse_threshold(raw: Optional[str]) -> float:
    """Parse ``threshold``, clamped to [0, 1]."""
    if raw is None or not raw.strip():
        return DEFAULT_THRESHOLD
    try:
        value = float(raw)
    except ValueError:
        value = math.nan
    if math.isnan(value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Threshold parameter must be a number",
        )
    return min(max(value, 0.0), 1.0)


def parse_servers(raw: Optional[str]) -> Optional[List[str]]:
    if not raw:
        return None
    names = [name.strip() for name in raw.split(",") if name.strip()]
    return names or None


def _schema_failure(e: SchemaError) -> HTTPException:
    logger.error(f"Vector schema error: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message
    )


@router.get("/search")
def search_tools(
    request: Request,
    query: Optional[str] = None,
    limit: Optional[str] = None,
    threshold: Optional[str] = None,
    servers: Optional[str] = None,
) -> Dict[str, Any]:
    """Search tools by semantic similarity to ``query``."""
    if not query or not query.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Query parameter is required and must be a string",
        )
    limit_value = parse_limit(limit)
    threshold_value = parse_threshold(threshold)
    server_names = parse_servers(servers)

    try:
        matches = _service(request).search(
            query, limit_value, threshold_value, server_names
        )
    except InvalidRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except SchemaError as e:
        raise _schema_failure(e)
    except Exception as e:
        logger.error(f"Failed to search tools: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )

    results = [match.to_api_dict() for match in matches]
    return {
        "success": True,
        "data": {
            "query": query,
            "results": results,
            "total": len(results),
            "limit": limit_value,
            "threshold": threshold_value,
            "servers": server_names,
        },
    }


@router.get("/tools")
def list_vectorized_tools(
    request: Request, servers: Optional[str] = None
) -> Dict[str, Any]:
    """List every tool that has an embedding."""
    server_names = parse_servers(servers)
    try:
        tools = _service(request).list_all_vectorized(server_names)
    except Exception as e:
        logger.error(f"Failed to list vectorized tools: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get vectorized tools",
        )

    return {
        "success": True,
        "data": {
            "tools": [tool.to_api_dict() for tool in tools],
            "total": len(tools),
            "servers": server_names,
        },
    }


@router.post("/rebuild")
def rebuild_all_embeddings(request: Request) -> Dict[str, Any]:
    """Re-embed the tools of every connected and enabled server."""
    try:
        report = _service(request).rebuild_all()
    except SchemaError as e:
        raise _schema_failure(e)
    except Exception as e:
        logger.error(f"Failed to rebuild vector embeddings: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to rebuild vector embeddings",
        )

    return {
        "success": True,
        "message": "Vector embeddings rebuilt for all connected servers",
        "data": {"succeeded": report.succeeded, "failed": report.failed},
    }


@router.post("/rebuild/{server_name}")
def rebuild_server_embeddings(server_name: str, request: Request) -> Dict[str, Any]:
    """Re-embed the tools of one server."""
    try:
        report = _service(request).rebuild_for_server(server_name)
    except ServerNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except ServerNotReadyError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except SchemaError as e:
        raise _schema_failure(e)
    except Exception as e:
        logger.error(f"Failed to rebuild embeddings for server '{server_name}': {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to rebuild server vector embeddings",
        )

    return {
        "success": True,
        "message": f"Vector embeddings rebuilt for server '{server_name}'",
        "data": {
            "serverName": server_name,
            "toolsCount": report.total,
            "failed": report.failed,
        },
    }


@router.get("/stats")
def get_vector_stats(request: Request) -> Dict[str, Any]:
    try:
        stats = _service(request).stats()
    except Exception as e:
        logger.error(f"Failed to get vector search statistics: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get vector search statistics",
        )
    return {"success": True, "data": stats}
