import math
from typing import List, Optional, Union

from .base import BaseEmbedding

# Bag-of-words vocabulary; a token's position is its vector slot
VOCABULARY = (
    "search find get fetch retrieve query "
    "map location weather "
    "file directory "
    "email message send "
    "create update delete "
    "browser web page click navigate screenshot automation "
    "database table record insert select schema data "
    "image photo video media upload download convert "
    "text document pdf excel word format parse "
    "api rest http request response json xml "
    "time date calendar schedule reminder clock "
    "math calculate number sum average statistics "
    "user account login auth permission role"
).split()

_VOCABULARY_INDEX = {word: i for i, word in enumerate(VOCABULARY)}

HASH_WEIGHT = 0.1


class OfflineEmbedding(BaseEmbedding):
    """Deterministic vectorizer that needs no network and never fails.

    Each lowercase whitespace token adds 1.0 at its vocabulary slot (when
    the slot fits the width) plus a small weight at a slot derived from its
    characters, so out-of-vocabulary words still separate texts. The vector
    is L2-normalized; texts with no tokens map to the zero vector.
    """

    MODEL_NAME = "fallback"

    def __init__(self, dimension: int = 100):
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        self.dimension = dimension

    @property
    def model_name(self) -> str:
        return self.MODEL_NAME

    def _vectorize(self, text: str, width: int) -> List[float]:
        vector = [0.0] * width
        for token in text.lower().split():
            index = _VOCABULARY_INDEX.get(token)
            if index is not None and index < width:
                vector[index] += 1.0
            vector[sum(ord(c) for c in token) % width] += HASH_WEIGHT

        magnitude = math.sqrt(sum(v * v for v in vector))
        if magnitude == 0.0:
            return vector
        return [v / magnitude for v in vector]

    def encode(
        self,
        text: Union[str, List[str]],
        dimension: Optional[int] = None,
    ) -> Union[List[float], List[List[float]]]:
        width = dimension or self.dimension
        if isinstance(text, str):
            return self._vectorize(text, width)
        return [self._vectorize(t, width) for t in text]

    def get_dimension(self) -> Optional[int]:
        return self.dimension
