from .schema import ReconcileResult, SchemaReconciler, default_index_strategies
from .similarity import cosine_similarity, rank
from .types import (
    TOOL_CONTENT_TYPE,
    EmbeddingRecord,
    SimilarityHit,
    ToolIdentity,
    ToolMatch,
    ToolMetadata,
)

__all__ = [
    "EmbeddingRecord",
    "ReconcileResult",
    "SchemaReconciler",
    "SimilarityHit",
    "TOOL_CONTENT_TYPE",
    "ToolIdentity",
    "ToolMatch",
    "ToolMetadata",
    "cosine_similarity",
    "default_index_strategies",
    "rank",
]
