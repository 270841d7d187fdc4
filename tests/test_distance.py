import math

import numpy as np
import pytest

from facegroup.distance import distances_to, euclidean_distance
from facegroup.errors import DimensionMismatch, InvalidInput


def test_distance_matches_l2_norm():
    assert euclidean_distance([0.0, 0.0], [3.0, 4.0]) == pytest.approx(5.0)


def test_distance_is_symmetric_and_zero_on_identity():
    rng = np.random.default_rng(0)
    a = rng.normal(size=128)
    b = rng.normal(size=128)
    assert euclidean_distance(a, b) == euclidean_distance(b, a)
    assert euclidean_distance(a, a) == 0.0


def test_distance_rejects_length_mismatch():
    with pytest.raises(DimensionMismatch) as info:
        euclidean_distance(np.zeros(128), np.zeros(512))
    assert info.value.expected == 128
    assert info.value.actual == 512


@pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf])
def test_distance_rejects_non_finite(bad):
    with pytest.raises(InvalidInput):
        euclidean_distance([0.0, bad], [0.0, 0.0])


def test_distance_rejects_empty_and_matrix_input():
    with pytest.raises(InvalidInput):
        euclidean_distance([], [])
    with pytest.raises(InvalidInput):
        euclidean_distance(np.zeros((2, 2)), np.zeros((2, 2)))


def test_distances_to_many():
    reps = np.array([[0.0, 0.0], [3.0, 4.0]])
    np.testing.assert_allclose(distances_to([0.0, 0.0], reps), [0.0, 5.0])
    assert distances_to([1.0, 1.0], np.empty((0, 2))).shape == (0,)
    with pytest.raises(DimensionMismatch):
        distances_to([1.0, 1.0, 1.0], reps)
