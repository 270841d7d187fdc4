"""
Euclidean distance between face descriptors.

Descriptors are compared in the raw embedding space produced by the
extractor.  Both helpers validate their input and raise
:class:`~facegroup.errors.DimensionMismatch` or
:class:`~facegroup.errors.InvalidInput` instead of coercing bad values.
"""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np

from .errors import DimensionMismatch, InvalidInput

ArrayLike = Union[np.ndarray, Sequence[float]]


def as_embedding(values: ArrayLike) -> np.ndarray:
    """Convert ``values`` to a finite 1-D float64 array.

    Raises
    ------
    InvalidInput
        If the input is not one-dimensional, is empty or contains NaN or
        infinite values.
    """
    try:
        vec = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"embedding is not numeric: {exc}") from exc
    if vec.ndim != 1:
        raise InvalidInput(f"embedding must be 1-D, got shape {vec.shape}")
    if vec.size == 0:
        raise InvalidInput("embedding is empty")
    if not np.all(np.isfinite(vec)):
        raise InvalidInput("embedding contains NaN or infinite values")
    return vec


def euclidean_distance(a: ArrayLike, b: ArrayLike) -> float:
    """Return the L2 norm of ``a - b``.

    The result is symmetric and zero for identical inputs.
    """
    va = as_embedding(a)
    vb = as_embedding(b)
    if va.shape[0] != vb.shape[0]:
        raise DimensionMismatch(va.shape[0], vb.shape[0])
    return float(np.linalg.norm(va - vb))


def distances_to(vector: ArrayLike, matrix: np.ndarray) -> np.ndarray:
    """Distances from ``vector`` to each row of ``matrix``.

    ``matrix`` has shape ``(n_rows, dim)``; an empty matrix yields an empty
    result.  Rows are assumed to be validated already (the grouping engine
    only stores embeddings that went through :func:`as_embedding`).
    """
    vec = as_embedding(vector)
    if matrix.shape[0] == 0:
        return np.empty(0, dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[1] != vec.shape[0]:
        raise DimensionMismatch(matrix.shape[-1], vec.shape[0])
    return np.linalg.norm(matrix - vec, axis=1)
