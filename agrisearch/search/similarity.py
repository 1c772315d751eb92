"""Vector similarity."""

import math
from collections.abc import Sequence

from agrisearch.exceptions import DimensionMismatchError


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors.

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        DimensionMismatchError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(
            f"Cannot compare a {len(a)}-dimensional vector with a "
            f"{len(b)}-dimensional one",
            details={"left": len(a), "right": len(b)},
        )

    dot = math.fsum(x * y for x, y in zip(a, b, strict=True))
    norm_a = math.sqrt(math.fsum(x * x for x in a))
    norm_b = math.sqrt(math.fsum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def similarity_score(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity clamped to [0, 1]."""
    return min(max(cosine_similarity(a, b), 0.0), 1.0)
