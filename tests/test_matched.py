from __future__ import annotations

import numpy as np
import pytest

from simple_surf import FeaturePoint, FeaturePointsCollection, MatchedPointsCollection


def _collection(n, sign=1):
    points = FeaturePointsCollection()
    for i in range(n):
        p = FeaturePoint(i, 2 * i, 2, 20, sign)
        p[0] = float(i)
        points.append(p)
    return points


def test_size_tracks_adds_and_clears(rng):
    first, second = _collection(5), _collection(7)
    matched = MatchedPointsCollection(first, second)
    added = 0
    for step in range(200):
        if rng.random() < 0.1:
            matched.clear()
            added = 0
        else:
            matched.add_points(int(rng.integers(5)), int(rng.integers(7)))
            added += 1
        assert matched.get_size() == added
        assert len(matched.first_indices) == len(matched.second_indices) == added


def test_points_are_referenced_not_copied():
    first, second = _collection(3), _collection(3)
    matched = MatchedPointsCollection(first, second)
    matched.add_points(0, 2)
    matched.add_points(1, 1)
    pairs = list(matched.pairs())
    assert pairs[0][0] is first[0]
    assert pairs[0][1] is second[2]
    assert matched.index_pairs().tolist() == [[0, 2], [1, 1]]


def test_get_points_copies_into_outputs():
    first, second = _collection(3), _collection(3, sign=-1)
    matched = MatchedPointsCollection(first, second)
    matched.add_points(2, 1)
    out_a, out_b = FeaturePoint(), FeaturePoint()
    assert matched.get_points(0, out_a, out_b)
    assert out_a == first[2]
    assert out_b == second[1]
    out_a[0] = 100.0
    assert first[2][0] == 2.0


def test_get_points_ignores_bad_requests():
    first, second = _collection(3), _collection(3)
    matched = MatchedPointsCollection(first, second)
    matched.add_points(0, 1)
    before = matched.index_pairs().copy()

    out_a, out_b = FeaturePoint(), FeaturePoint()
    for index in (-1, 1, 50):
        assert not matched.get_points(index, out_a, out_b)
    assert not matched.get_points(0, None, out_b)
    assert not matched.get_points(0, out_a, None)

    assert out_a == FeaturePoint()
    assert out_b == FeaturePoint()
    assert matched.get_size() == 1
    assert np.array_equal(matched.index_pairs(), before)


def test_stale_handles_after_source_clear():
    first, second = _collection(3), _collection(3)
    matched = MatchedPointsCollection(first, second)
    matched.add_points(1, 1)
    second.clear()
    second.extend(_collection(3))

    out_a, out_b = FeaturePoint(), FeaturePoint()
    assert not matched.get_points(0, out_a, out_b)
    assert out_a == FeaturePoint()
    assert list(matched.pairs()) == []
    assert matched.get_size() == 1


def test_add_points_rejects_invalid_handles():
    first, second = _collection(2), _collection(2)
    matched = MatchedPointsCollection(first, second)
    with pytest.raises(IndexError):
        matched.add_points(2, 0)
    with pytest.raises(IndexError):
        matched.add_points(0, -1)
    assert matched.get_size() == 0
    assert len(matched.first_indices) == len(matched.second_indices) == 0


def test_clear_keeps_source_points():
    first, second = _collection(2), _collection(2)
    matched = MatchedPointsCollection(first, second)
    matched.add_points(0, 0)
    matched.clear()
    assert len(matched) == 0
    assert len(first) == 2 and len(second) == 2
    assert matched.index_pairs().shape == (0, 2)
