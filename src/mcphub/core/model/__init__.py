from .model import EmbeddingModelConfig, ModelConfig

__all__ = ["ModelConfig", "EmbeddingModelConfig"]
