"""
Marketplace API Endpoints

Read-only access to the catalog of installable MCP servers.
"""

import logging
from typing import Any, Callable, Dict, List, TypeVar

from fastapi import APIRouter, HTTPException, Request, status

from ...core.repository import RepositoryRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

router = APIRouter(prefix="/api/market", tags=["Market"])


def _registry(request: Request) -> RepositoryRegistry:
    return request.app.state.registry


def _load(action: str, fetch: Callable[[], T]) -> T:
    try:
        return fetch()
    except Exception as e:
        logger.error(f"Failed to {action}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to {action}",
        )


def _servers_response(servers: List[Any]) -> Dict[str, Any]:
    return {"success": True, "data": [server.model_dump() for server in servers]}


@router.get("/servers")
def list_market_servers(request: Request) -> Dict[str, Any]:
    market = _registry(request).market_servers
    return _servers_response(_load("get market servers information", market.find_all))


# Declared before /servers/{name} so that "search" is not taken as a name
@router.get("/servers/search")
def search_market_servers(request: Request, query: str = "") -> Dict[str, Any]:
    market = _registry(request).market_servers
    return _servers_response(
        _load("search market servers", lambda: market.search(query))
    )


@router.get("/servers/{name}")
def get_market_server(name: str, request: Request) -> Dict[str, Any]:
    market = _registry(request).market_servers
    server = _load("get market server information", lambda: market.find_by_key(name))
    if server is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Market server not found"
        )
    return {"success": True, "data": server.model_dump()}


@router.get("/categories")
def list_market_categories(request: Request) -> Dict[str, Any]:
    market = _registry(request).market_servers
    return {"success": True, "data": _load("get market categories", market.categories)}


@router.get("/tags")
def list_market_tags(request: Request) -> Dict[str, Any]:
    market = _registry(request).market_servers
    return {"success": True, "data": _load("get market tags", market.tags)}


@router.get("/categories/{category}")
def list_market_servers_by_category(category: str, request: Request) -> Dict[str, Any]:
    market = _registry(request).market_servers
    return _servers_response(
        _load(
            "filter market servers by category",
            lambda: market.filter_by_category(category),
        )
    )


@router.get("/tags/{tag}")
def list_market_servers_by_tag(tag: str, request: Request) -> Dict[str, Any]:
    market = _registry(request).market_servers
    return _servers_response(
        _load("filter market servers by tag", lambda: market.filter_by_tag(tag))
    )
