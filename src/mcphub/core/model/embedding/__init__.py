from .adapter import (
    FallbackEmbedding,
    create_embedding_adapter,
    create_embedding_provider,
)
from .base import BaseEmbedding, EmbeddingResult
from .offline import OfflineEmbedding
from .openai import OpenAIEmbedding

__all__ = [
    "BaseEmbedding",
    "EmbeddingResult",
    "FallbackEmbedding",
    "OfflineEmbedding",
    "OpenAIEmbedding",
    "create_embedding_adapter",
    "create_embedding_provider",
]
