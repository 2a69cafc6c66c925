from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

import requests

from .... import config
from .base import BaseEmbedding

logger = logging.getLogger(__name__)

KNOWN_DIMENSIONS: Dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbedding(BaseEmbedding):
    """
    Client for OpenAI-compatible ``/embeddings`` endpoints.

    Inputs longer than ``max_input_chars`` are truncated before sending
    rather than rejected.
    """

    def __init__(
        self,
        model: str = config.DEFAULT_EMBEDDING_MODEL,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        dimension: Optional[int] = None,
        timeout: float = config.DEFAULT_EMBEDDING_TIMEOUT,
        max_input_chars: int = config.DEFAULT_EMBEDDING_MAX_INPUT_CHARS,
    ):
        """
        Args:
            model: Model name (default: text-embedding-3-small)
            api_key: API key (or set OPENAI_API_KEY env var)
            base_url: API base URL, without the ``/embeddings`` suffix
            dimension: Requested embedding dimension (default: model native)
            timeout: Per-request timeout in seconds
            max_input_chars: Inputs are cut to this many characters
        """
        self.model = model
        self.api_key = api_key
        self.base_url = (base_url or config.DEFAULT_OPENAI_BASE_URL).rstrip("/")
        self.dimension = dimension
        self.timeout = timeout
        self.max_input_chars = max_input_chars
        self._session: Optional[requests.Session] = None

    @property
    def model_name(self) -> str:
        return self.model

    def _get_session(self) -> requests.Session:
        """Get or create HTTP session."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update(
                {
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                }
            )
        return self._session

    def _truncate(self, text: str) -> str:
        if len(text) <= self.max_input_chars:
            return text
        logger.debug(
            f"Truncating embedding input from {len(text)} to {self.max_input_chars} characters"
        )
        return text[: self.max_input_chars]

    def encode(
        self,
        text: Union[str, List[str]],
        dimension: Optional[int] = None,
    ) -> Union[List[float], List[List[float]]]:
        """
        Raises:
            RuntimeError: If the API key is missing or the request fails;
                request failures are chained as ``__cause__``
        """
        if not self.api_key:
            raise RuntimeError("OPENAI_API_KEY is required")

        single_input = isinstance(text, str)
        texts = [text] if isinstance(text, str) else list(text)
        if not texts:
            return []

        payload: Dict[str, Any] = {
            "model": self.model,
            "input": [self._truncate(t) for t in texts],
        }
        final_dimension = dimension or self.dimension
        if final_dimension:
            payload["dimensions"] = final_dimension

        try:
            response = self._get_session().post(
                f"{self.base_url}/embeddings", json=payload, timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()

            if "data" not in data:
                raise ValueError(f"Unexpected response format: {data}")

            items = sorted(data["data"], key=lambda item: item.get("index", 0))
            embeddings: List[List[float]] = [item["embedding"] for item in items]
        except Exception as e:
            raise RuntimeError(f"OpenAI embedding failed: {str(e)}") from e

        if len(embeddings) != len(texts):
            raise RuntimeError(
                f"OpenAI embedding failed: expected {len(texts)} embeddings, got {len(embeddings)}"
            )

        return embeddings[0] if single_input else embeddings

    def get_dimension(self) -> Optional[int]:
        return self.dimension or KNOWN_DIMENSIONS.get(self.model)
