"""
Vector similarity helpers for in-memory retrieval.

Training data volumes are small (tens to low thousands of rows), so
retrieval is a full scan with cosine similarity computed by numpy.
"""
from typing import Iterable, List, Optional, Sequence, Tuple, TypeVar

import numpy as np

T = TypeVar("T")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity between two vectors, in [-1, 1].

    Returns 0.0 instead of failing when either vector is empty, when the
    lengths differ, or when either vector has zero magnitude.
    """
    if len(a) == 0 or len(b) == 0 or len(a) != len(b):
        return 0.0

    vec_a = np.asarray(a, dtype=float)
    vec_b = np.asarray(b, dtype=float)

    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    score = float(np.dot(vec_a, vec_b) / (norm_a * norm_b))
    return max(-1.0, min(1.0, score))


def rank_by_similarity(
    query_vector: Sequence[float],
    candidates: Iterable[Tuple[T, Sequence[float]]],
    threshold: float,
    limit: Optional[int] = None,
) -> List[Tuple[T, float]]:
    """
    Score candidates against a query vector.

    Args:
        query_vector: Embedding of the query
        candidates: (item, vector) pairs in storage order
        threshold: Minimum similarity to keep
        limit: Maximum number of results (None for all)

    Returns:
        (item, similarity) pairs sorted by similarity descending; ties keep
        storage order.
    """
    scored = []
    for item, vector in candidates:
        score = cosine_similarity(query_vector, vector)
        if score >= threshold:
            scored.append((item, score))

    scored.sort(key=lambda pair: pair[1], reverse=True)

    if limit is not None:
        scored = scored[:max(0, limit)]
    return scored
