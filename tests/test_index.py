import math

import numpy as np
import pytest

from radar_cluster.detect.index import SpatialIndex
from radar_cluster.errors import ContractViolation


def test_query_excludes_self_and_includes_boundary() -> None:
    positions = np.array([[0.0, 0.0, 0.0], [0.0, 0.0, 1.0], [0.0, 0.0, 2.5]])
    index = SpatialIndex(positions)
    # Distance exactly equal to the radius is inside
    assert index.query(0, 1.0).tolist() == [1]
    assert index.query(1, 1.0).tolist() == [0]
    assert index.query(2, 1.0).tolist() == []


def test_duplicate_positions_are_distinct_neighbours() -> None:
    positions = np.array([[1.0, 2.0, 3.0], [1.0, 2.0, 3.0], [1.0, 2.0, 3.0]])
    index = SpatialIndex(positions)
    assert index.query(0, 0.1).tolist() == [1, 2]
    assert index.query(2, 0.1).tolist() == [0, 1]


def test_query_matches_brute_force() -> None:
    rng = np.random.default_rng(3)
    positions = rng.uniform(-5.0, 5.0, size=(200, 3))
    index = SpatialIndex(positions)
    radius = 1.5
    for i in range(0, 200, 17):
        dist = np.linalg.norm(positions - positions[i], axis=1)
        expected = [j for j in np.flatnonzero(dist <= radius) if j != i]
        assert index.query(i, radius).tolist() == expected


def test_infinite_radius_returns_everything_else() -> None:
    positions = np.array([[0.0, 0.0, 0.0], [1e6, 0.0, 0.0], [0.0, -1e6, 3.0]])
    index = SpatialIndex(positions)
    assert index.query(1, math.inf).tolist() == [0, 2]


def test_query_point_does_not_exclude() -> None:
    positions = np.array([[0.0, 0.0, 0.0], [0.0, 3.0, 0.0]])
    index = SpatialIndex(positions)
    assert index.query_point((0.0, 0.0, 0.0), 0.5).tolist() == [0]


def test_empty_index() -> None:
    index = SpatialIndex(np.zeros((0, 3)))
    assert len(index) == 0
    assert index.query_point((0.0, 0.0, 0.0), 10.0).size == 0


def test_closed_index_refuses_queries() -> None:
    with SpatialIndex(np.zeros((2, 3))) as index:
        assert index.query(0, 1.0).tolist() == [1]
    assert index.closed
    with pytest.raises(ContractViolation):
        index.query(0, 1.0)


def test_bad_shape_and_index() -> None:
    with pytest.raises(ContractViolation):
        SpatialIndex(np.zeros((4, 2)))
    index = SpatialIndex(np.zeros((2, 3)))
    with pytest.raises(ContractViolation):
        index.query(2, 1.0)


def test_index_does_not_alias_input() -> None:
    positions = np.zeros((3, 3))
    SpatialIndex(positions)
    # The caller's array stays writable
    positions[0, 0] = 1.0
    assert positions[0, 0] == 1.0
