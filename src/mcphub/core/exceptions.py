"""Core exceptions for mcphub.

All errors raised deliberately by the hub derive from :class:`McpHubError`,
so callers (the web layer, the CLI) can map them to responses in one place.
Backend failures raised by SQLAlchemy or the filesystem are not wrapped here;
the dual-backend adapter handles those by falling back to file storage, and
lets these domain errors through unchanged.
"""

from typing import Optional


class McpHubError(Exception):
    """Base exception for all mcphub operations.

    Attributes:
        message: Human-readable error message
        details: Optional additional context or metadata
    """

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(McpHubError):
    """Raised when required configuration is invalid or missing."""

    pass


class EmbeddingProviderError(McpHubError):
    """Raised when no embedding strategy could produce a vector for a text."""

    pass


class RepositoryError(McpHubError):
    """Raised when a repository operation fails on every available backend."""

    pass


class NotFoundError(McpHubError):
    """Raised when a requested entity does not exist."""

    pass


class ServerNotFoundError(NotFoundError):
    """Raised when an MCP server name is not known to the catalog."""

    pass


class AlreadyExistsError(McpHubError):
    """Raised when creating an entity whose key is already taken."""

    pass


class InvalidRequestError(McpHubError):
    """Raised when a request cannot be served in the current state."""

    pass


class ServerNotReadyError(InvalidRequestError):
    """Raised when a server is disconnected, disabled or exposes no tools."""

    pass


class SchemaError(McpHubError):
    """Base class for vector schema errors.

    Schema errors are explicit results for the operation that triggered
    them. The dual-backend adapter never hides them behind a file fallback.
    """

    pass


class SchemaReconciliationError(SchemaError):
    """Raised when migrating the vector column to a new width fails.

    Attributes:
        step: Migration step that failed (``drop_index`` or ``alter_width``)
    """

    def __init__(
        self, message: str, step: str, details: Optional[dict] = None
    ) -> None:
        super().__init__(message, details)
        self.step = step


class VectorDimensionChangedError(SchemaError):
    """Raised when the store width changed between reconciliation and write.

    Another writer migrated the column concurrently. The operation is safe to
    retry after reconciling again.
    """

    def __init__(self, expected: int, actual: Optional[int]) -> None:
        super().__init__(
            f"Vector width changed during operation: expected {expected}, store has {actual}",
            {"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual
