"""Servers and tools known to the hub, as consumed by tool search.

Connection handling lives outside this package; whatever maintains the MCP
connections reports each server's status and tool list to the
:class:`ServerStatusRegistry`. :class:`ConfiguredServerCatalog` merges that
runtime view with the configured servers.
"""

import logging
import threading
from typing import Any, Dict, List, Literal, Optional, Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ServerStatus = Literal["connected", "connecting", "disconnected"]


class ToolInfo(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=dict)


class ServerInfo(BaseModel):
    name: str
    status: ServerStatus = "disconnected"
    enabled: bool = True
    tools: List[ToolInfo] = Field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status == "connected" and self.enabled


class ServerCatalog(Protocol):
    def list_servers(self) -> List[ServerInfo]: ...

    def get_server(self, name: str) -> Optional[ServerInfo]: ...


class ServerStatusRegistry:
    """Thread-safe runtime status and tool lists reported by server connections."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._servers: Dict[str, ServerInfo] = {}

    def report(
        self,
        name: str,
        status: ServerStatus,
        tools: Optional[List[ToolInfo]] = None,
        enabled: bool = True,
    ) -> ServerInfo:
        with self._lock:
            previous = self._servers.get(name)
            info = ServerInfo(
                name=name,
                status=status,
                enabled=enabled,
                tools=tools if tools is not None else (previous.tools if previous else []),
            )
            self._servers[name] = info
        logger.debug(f"Server '{name}' reported {status} with {len(info.tools)} tools")
        return info

    def forget(self, name: str) -> None:
        with self._lock:
            self._servers.pop(name, None)

    def list_servers(self) -> List[ServerInfo]:
        with self._lock:
            return [self._servers[name] for name in sorted(self._servers)]

    def get_server(self, name: str) -> Optional[ServerInfo]:
        with self._lock:
            return self._servers.get(name)


class ConfiguredServerCatalog:
    """Configured servers overlaid with their runtime status.

    A configured server that never reported is listed as disconnected with
    no tools. The configured ``enabled`` flag wins over the reported one.
    """

    def __init__(self, server_configs: Any, status: ServerStatusRegistry):
        self.server_configs = server_configs
        self.status = status

    def _merge(self, name: str, enabled: bool) -> ServerInfo:
        runtime = self.status.get_server(name)
        if runtime is None:
            return ServerInfo(name=name, enabled=enabled)
        return runtime.model_copy(update={"enabled": enabled and runtime.enabled})

    def list_servers(self) -> List[ServerInfo]:
        return [self._merge(c.name, c.enabled) for c in self.server_configs.find_all()]

    def get_server(self, name: str) -> Optional[ServerInfo]:
        configured = self.server_configs.find_by_key(name)
        if configured is None:
            return None
        return self._merge(name, configured.enabled)
