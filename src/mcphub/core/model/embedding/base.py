from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Union


@dataclass(frozen=True)
class EmbeddingResult:
    vector: List[float]
    model: str

    @property
    def dimensions(self) -> int:
        return len(self.vector)


class BaseEmbedding(ABC):
    """Abstract base class for embedding models."""

    @abstractmethod
    def encode(
        self,
        text: Union[str, List[str]],
        dimension: Optional[int] = None,
    ) -> Union[List[float], List[List[float]]]:
        """
        Encode text into embedding vector(s).

        Args:
            text: Single text string or list of text strings
            dimension: Override default embedding dimension

        Returns:
            Single embedding vector (list of floats) for single text,
            or list of embedding vectors for list of texts
        """
        pass

    @abstractmethod
    def get_dimension(self) -> Optional[int]:
        """Get the embedding dimension, None if the model decides."""
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Name recorded with every vector this model produces."""
        pass

    def embed(self, text: str) -> EmbeddingResult:
        """Encode one text and report which model produced the vector."""
        vector = self.encode(text)
        return EmbeddingResult(vector=[float(v) for v in vector], model=self.model_name)  # type: ignore[union-attr]
