from typing import Iterable, List, Sequence, Tuple, TypeVar

import numpy as np

T = TypeVar("T")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        ValueError: If the vectors have different lengths
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Vector length mismatch: {va.shape[0]} != {vb.shape[0]}")

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def passes_threshold(similarity: float, threshold: float) -> bool:
    # A negative threshold disables filtering
    return threshold < 0 or similarity > threshold


def rank(
    query: Sequence[float],
    candidates: Iterable[Tuple[T, Sequence[float]]],
    limit: int,
    threshold: float,
) -> List[Tuple[T, float]]:
    """Score candidates against ``query`` and keep the best ``limit``.

    Candidates whose vector width differs from the query are skipped since
    they cannot be compared.
    """
    if limit <= 0:
        return []

    width = len(query)
    scored: List[Tuple[T, float]] = []
    for item, vector in candidates:
        if len(vector) != width:
            continue
        similarity = cosine_similarity(query, vector)
        if passes_threshold(similarity, threshold):
            scored.append((item, similarity))

    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored[:limit]
