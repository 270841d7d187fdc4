"""Exceptions raised by the grouping core.

Both concrete errors are fatal to a run: they indicate a model or input
inconsistency rather than a per-image problem, so the pipeline never
retries or skips past them.
"""

from __future__ import annotations


class FaceGroupError(Exception):
    """Base class for errors raised by :mod:`facegroup`."""


class DimensionMismatch(FaceGroupError, ValueError):
    """Two embeddings of different lengths were compared."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"embedding length mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class InvalidInput(FaceGroupError, ValueError):
    """An embedding is malformed or contains NaN/Infinity."""
