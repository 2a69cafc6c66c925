import logging
from typing import List, Optional, Union

import requests

from ...exceptions import ConfigurationError, EmbeddingProviderError
from ...retry import create_retry_wrapper
from ..model import EmbeddingModelConfig
from .base import BaseEmbedding, EmbeddingResult
from .offline import OfflineEmbedding
from .openai import OpenAIEmbedding

logger = logging.getLogger(__name__)


def retry_on(e: Exception) -> bool:
    """Retry timeouts, rate limits and server errors; nothing else."""
    # Providers wrap transport errors in RuntimeError with the original as cause
    cause = e.__cause__ if isinstance(e.__cause__, Exception) else e

    if isinstance(cause, requests.exceptions.HTTPError):
        if cause.response is None:
            return False
        status_code = cause.response.status_code
        return status_code == 429 or 500 <= status_code < 600
    return isinstance(cause, requests.exceptions.Timeout)


def create_embedding_adapter(model_config: EmbeddingModelConfig) -> BaseEmbedding:
    """
    Creates the network-backed BaseEmbedding for a config, wrapped with retries.
    """
    provider = model_config.model_provider.lower().strip()
    embedding: BaseEmbedding
    if provider == "openai":
        embedding = OpenAIEmbedding(
            model=model_config.model_name,
            api_key=model_config.api_key,
            base_url=model_config.base_url,
            dimension=model_config.dimension,
            timeout=model_config.timeout,
            max_input_chars=model_config.max_input_chars,
        )
    else:
        raise ConfigurationError(
            f"Unsupported embedding provider: {model_config.model_provider}"
        )

    return create_retry_wrapper(
        embedding,
        BaseEmbedding,  # type: ignore[type-abstract]
        retry_methods={"encode", "embed"},
        max_retries=model_config.max_retries,
        retry_on=retry_on,
    )


class FallbackEmbedding(BaseEmbedding):
    """Primary embedding model with an offline vectorizer behind it.

    Any primary failure (missing credentials, network or service error after
    retries) is logged and answered by the fallback instead. The model name
    in each result says which of the two produced the vector, and the two
    generally differ in width.
    """

    def __init__(self, primary: BaseEmbedding, fallback: BaseEmbedding):
        self.primary = primary
        self.fallback = fallback

    @property
    def model_name(self) -> str:
        return self.primary.model_name

    def embed(self, text: str) -> EmbeddingResult:
        try:
            return self.primary.embed(text)
        except Exception as e:
            logger.warning(
                f"Embedding model '{self.primary.model_name}' failed, using '{self.fallback.model_name}': {e}"
            )
        try:
            return self.fallback.embed(text)
        except Exception as e:
            raise EmbeddingProviderError(
                f"All embedding strategies failed: {e}",
                {"primary": self.primary.model_name, "fallback": self.fallback.model_name},
            ) from e

    def encode(
        self,
        text: Union[str, List[str]],
        dimension: Optional[int] = None,
    ) -> Union[List[float], List[List[float]]]:
        try:
            return self.primary.encode(text, dimension)
        except Exception as e:
            logger.warning(
                f"Embedding model '{self.primary.model_name}' failed, using '{self.fallback.model_name}': {e}"
            )
        return self.fallback.encode(text, dimension)

    def get_dimension(self) -> Optional[int]:
        return self.primary.get_dimension()


def create_embedding_provider(model_config: EmbeddingModelConfig) -> BaseEmbedding:
    """Build the embedding provider used for tool search.

    ``offline`` (or ``fallback``) selects the offline vectorizer alone;
    any other provider is used as primary with the offline vectorizer
    behind it.
    """
    offline = OfflineEmbedding(dimension=model_config.fallback_dimension)
    provider = model_config.model_provider.lower().strip()
    if provider in ("offline", "fallback"):
        logger.info("Using offline embedding vectorizer")
        return offline

    primary = create_embedding_adapter(model_config)
    logger.info(
        f"Using embedding model '{model_config.model_name}' ({provider}) with offline fallback"
    )
    return FallbackEmbedding(primary, offline)
