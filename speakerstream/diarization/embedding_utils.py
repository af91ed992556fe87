"""
Vector helpers for speaker embeddings.

Everything is computed in float64 so repeated runs over the same inputs give the
same similarities, and therefore the same clustering decisions.
"""
from __future__ import annotations

from typing import Sequence

import numpy as np

# Below this norm a vector is treated as zero (no direction to normalise)
_NORM_EPSILON = 1e-10


def as_vector(values: Sequence[float] | np.ndarray) -> np.ndarray:
    """Copy any numeric sequence into a 1-D float64 array."""
    vec = np.array(values, dtype=np.float64).reshape(-1)
    return vec


def l2_normalize(embedding: Sequence[float] | np.ndarray) -> np.ndarray | None:
    """Return a unit-length float64 copy, or None for empty, non-finite or zero-norm input."""
    vec = as_vector(embedding)
    if vec.size == 0 or not np.all(np.isfinite(vec)):
        return None
    norm = float(np.sqrt(np.dot(vec, vec)))
    if norm <= _NORM_EPSILON:
        return None
    return vec / norm


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Cosine similarity in [-1, 1]; 0.0 for mismatched lengths or zero vectors."""
    va = as_vector(a)
    vb = as_vector(b)
    if va.size == 0 or va.shape != vb.shape:
        return 0.0
    norm_a = float(np.sqrt(np.dot(va, va)))
    norm_b = float(np.sqrt(np.dot(vb, vb)))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(va, vb)) / (norm_a * norm_b)


def is_valid_vector(values: object) -> bool:
    """True when values is a non-empty, finite, 1-D numeric sequence."""
    if values is None:
        return False
    try:
        vec = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError):
        return False
    return vec.ndim == 1 and vec.size > 0 and bool(np.all(np.isfinite(vec)))
