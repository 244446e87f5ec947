"""
Vector math over plain float lists.

The corpus is small enough that a linear scan is the whole search index,
so these stay dependency-free.
"""

import math
from typing import Sequence

# Returned by cosine_similarity when the vectors have different lengths.
# Not a valid ranking value: callers treat it as "do not trust this score".
DIMENSION_MISMATCH = -1.0


def norm(vector: Sequence[float]) -> float:
    """Euclidean (L2) norm."""
    return math.sqrt(sum(x * x for x in vector))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity between two vectors.

    Returns:
        Similarity in -1..1. 0.0 if either vector has zero norm.
        DIMENSION_MISMATCH if the lengths differ (never raises).
    """
    if len(a) != len(b):
        return DIMENSION_MISMATCH
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = norm(a)
    norm_b = norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def embedding_stats(vector: Sequence[float]) -> dict:
    """Summary statistics for debug logging of a freshly computed embedding."""
    if not vector:
        return {"dimension": 0}
    return {
        "dimension": len(vector),
        "min": min(vector),
        "max": max(vector),
        "mean": sum(vector) / len(vector),
        "head": list(vector[:5]),
    }
