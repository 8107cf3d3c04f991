"""
Cosine similarity, the only similarity metric used by the store.
"""

from typing import Sequence, Union

import numpy as np

from ..core.errors import DimensionMismatchError

Vector = Union[Sequence[float], np.ndarray]


def as_vector(values: Vector) -> np.ndarray:
    """Convert a float sequence to a 1-D float64 array."""
    return np.asarray(values, dtype=np.float64).reshape(-1)


def check_dimension(expected: int, vector: Vector) -> None:
    """Raise DimensionMismatchError unless the vector has the expected length."""
    if len(vector) != expected:
        raise DimensionMismatchError(expected, len(vector))


def cosine_similarity(a: Vector, b: Vector) -> float:
    """
    Cosine of the angle between two vectors.

    Returns exactly 0.0 when either vector has zero magnitude.
    Vectors of different lengths raise DimensionMismatchError.
    """
    va = as_vector(a)
    vb = as_vector(b)
    check_dimension(len(va), vb)

    magnitude = np.linalg.norm(va) * np.linalg.norm(vb)
    if magnitude == 0:
        return 0.0

    score = float(np.dot(va, vb) / magnitude)
    # Rounding can push |score| slightly past 1
    return max(-1.0, min(1.0, score))
