"""Dual-backend routing with transparent fallback to file storage.

Every operation on a wrapped repository is routed to the database when the
routing policy says so. If the database repository cannot be built or the
operation raises, the error is logged and the identical operation is re-run
against the file-backed repository, whose result is returned instead.

Fallback is per call and silent, so consistency between the two backends is
weak: a write that lands in the database is invisible to a later read that
happens to fall back to the file. Errors deliberately raised by the hub
(``McpHubError`` subclasses such as duplicate keys or schema reconciliation
failures) describe the request rather than the backend and are propagated
without fallback. Errors raised by the file backend always propagate.
"""

import functools
import logging
from typing import Any, Callable, Dict, Generic, List, Optional, Protocol, TypeVar

from ..exceptions import McpHubError
from ..settings.models import EntityKind

logger = logging.getLogger(__name__)

R = TypeVar("R")


class Routing(Protocol):
    def use_database(self, kind: EntityKind) -> bool: ...


class DualBackendAdapter(Generic[R]):
    def __init__(
        self,
        kind: EntityKind,
        routing: Routing,
        file_repository: Any,
        db_repository_factory: Callable[[], Any],
    ):
        """
        Args:
            kind: Entity group this adapter serves
            routing: Policy consulted at the start of every call
            file_repository: File-backed implementation, used directly when
                file-routed and as the fallback when database-routed
            db_repository_factory: Builds a database repository holding a
                fresh session; called once per database-routed operation
        """
        self.kind = kind
        self.routing = routing
        self.file_repository = file_repository
        self.db_repository_factory = db_repository_factory

    def call(self, operation: str, *args: Any, **kwargs: Any) -> Any:
        if not self.routing.use_database(self.kind):
            return getattr(self.file_repository, operation)(*args, **kwargs)

        repository = None
        try:
            repository = self.db_repository_factory()
            return getattr(repository, operation)(*args, **kwargs)
        except McpHubError:
            raise
        except Exception as e:
            logger.error(
                f"Database {self.kind.value}.{operation} failed, falling back to file storage: {e}"
            )
        finally:
            if repository is not None:
                try:
                    repository.close()
                except Exception as e:
                    logger.warning(f"Failed to close {self.kind.value} repository: {e}")

        return getattr(self.file_repository, operation)(*args, **kwargs)

    def __getattr__(self, name: str) -> Callable[..., Any]:
        # Only reached for operations without an explicit method below
        if name.startswith("_") or not callable(
            getattr(self.file_repository, name, None)
        ):
            raise AttributeError(
                f"{type(self).__name__} for {self.kind.value} has no operation '{name}'"
            )
        return functools.partial(self.call, name)

    def find_all(self) -> List[R]:
        return self.call("find_all")

    def find_by_key(self, key: str) -> Optional[R]:
        return self.call("find_by_key", key)

    def create(self, record: R) -> R:
        return self.call("create", record)

    def update(self, key: str, changes: Dict[str, Any]) -> Optional[R]:
        return self.call("update", key, changes)

    def delete(self, key: str) -> bool:
        return self.call("delete", key)
