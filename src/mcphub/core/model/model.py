from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ... import config


class ModelConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_name: str
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    timeout: float = 30.0
    max_retries: int = 3


class EmbeddingModelConfig(ModelConfig):
    model_provider: str = "openai"  # openai, offline
    model_name: str = config.DEFAULT_EMBEDDING_MODEL
    dimension: Optional[int] = Field(None, gt=0)
    max_input_chars: int = Field(config.DEFAULT_EMBEDDING_MAX_INPUT_CHARS, gt=0)
    fallback_dimension: int = Field(100, gt=0)

    @classmethod
    def from_env(cls) -> "EmbeddingModelConfig":
        return cls(
            model_provider=config.get_embedding_provider(),
            model_name=config.get_embedding_model(),
            api_key=config.get_openai_api_key(),
            base_url=config.get_openai_base_url(),
            dimension=config.get_embedding_dimension(),
            timeout=config.get_embedding_timeout(),
            max_retries=config.get_embedding_max_retries(),
            max_input_chars=config.get_embedding_max_input_chars(),
        )
