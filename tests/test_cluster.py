import math

import numpy as np
import pytest
from sklearn.cluster import DBSCAN

from radar_cluster.detect.cluster import DensityClusterer, cluster_positions
from radar_cluster.detect.index import SpatialIndex
from radar_cluster.errors import ConfigurationError, InvalidParameter


class CountingIndex(SpatialIndex):
    """Spatial index that records every queried candidate."""

    def __init__(self, positions: np.ndarray) -> None:
        super().__init__(positions)
        self.queried = []

    def query(self, idx: int, radius: float) -> np.ndarray:
        self.queried.append(idx)
        return super().query(idx, radius)


def _as_sets(clusters):
    return {frozenset(c) for c in clusters}


def _blobs(seed: int = 0):
    rng = np.random.default_rng(seed)
    centres = np.array([[0.0, 0.0, 0.0], [20.0, 0.0, 0.0], [0.0, 20.0, 5.0]])
    blobs = [c + rng.normal(scale=0.3, size=(40, 3)) for c in centres]
    noise = np.array([[100.0, 0.0, 0.0], [0.0, 100.0, 0.0], [-100.0, -100.0, 0.0]])
    return np.vstack(blobs + [noise])


def test_two_close_points_and_one_far() -> None:
    positions = np.array([[0.0, 0.0, 0.0], [0.0, 0.0, 0.5], [0.0, 0.0, 5.0]])
    partition = cluster_positions(positions, epsilon=1.0, min_pts=2)
    assert partition.clusters == [[0, 1]]
    assert partition.noise().tolist() == [2]
    assert partition.labels().tolist() == [0, 0, -1]


def test_distant_points_are_all_noise() -> None:
    positions = np.array([[0.0, 0.0, 0.0], [10.0, 0.0, 0.0], [0.0, 10.0, 0.0]])
    partition = cluster_positions(positions, epsilon=0.5, min_pts=2)
    assert len(partition) == 0
    assert partition.noise().tolist() == [0, 1, 2]


def test_min_pts_one_infinite_epsilon_single_cluster() -> None:
    rng = np.random.default_rng(1)
    positions = rng.uniform(-50.0, 50.0, size=(25, 3))
    partition = cluster_positions(positions, epsilon=math.inf, min_pts=1)
    assert len(partition) == 1
    assert sorted(partition.clusters[0]) == list(range(25))
    # A lone candidate is a cluster of its own with min_pts=1
    lone = cluster_positions(np.zeros((1, 3)), epsilon=math.inf, min_pts=1)
    assert lone.clusters == [[0]]


def test_boundary_distance_joins_cluster() -> None:
    positions = np.array([[0.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
    assert cluster_positions(positions, epsilon=1.0, min_pts=2).clusters == [[0, 1]]
    assert len(cluster_positions(positions, epsilon=0.999, min_pts=2)) == 0


def test_visited_noise_is_absorbed_as_border_point() -> None:
    # Two leaves first: each has a single neighbour and fails as a seed.
    # The centre is core and must absorb both without re-querying them.
    positions = np.array([[1.0, 0.0, 0.0], [-1.0, 0.0, 0.0], [0.0, 0.0, 0.0]])
    index = CountingIndex(positions)
    partition = DensityClusterer(epsilon=1.0, min_pts=3).run(index)
    assert partition.clusters == [[2, 0, 1]]
    assert sorted(index.queried) == [0, 1, 2]
    assert partition.queries == 3


def test_border_point_does_not_expand() -> None:
    # Only 1 is core.  3 is within reach of the border point 2 only.
    positions = np.array(
        [[-1.0, 0.0, 0.0], [0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0], [0.0, 1.0, 0.0]]
    )
    partition = cluster_positions(positions, epsilon=1.0, min_pts=4)
    assert _as_sets(partition.clusters) == {frozenset({0, 1, 2, 4})}
    assert partition.noise().tolist() == [3]


def test_each_candidate_queried_once() -> None:
    positions = _blobs()
    index = CountingIndex(positions)
    partition = DensityClusterer(epsilon=1.0, min_pts=4).run(index)
    assert sorted(index.queried) == list(range(len(positions)))
    assert partition.queries == len(positions)


def test_partition_matches_sklearn() -> None:
    positions = _blobs(seed=7)
    partition = cluster_positions(positions, epsilon=1.0, min_pts=4)
    labels = DBSCAN(eps=1.0, min_samples=4).fit_predict(positions)
    expected = {frozenset(np.flatnonzero(labels == k).tolist()) for k in set(labels) if k != -1}
    assert _as_sets(partition.clusters) == expected
    assert set(partition.noise().tolist()) == set(np.flatnonzero(labels == -1).tolist())


def test_partition_independent_of_input_order() -> None:
    positions = _blobs(seed=11)
    base = cluster_positions(positions, epsilon=1.0, min_pts=4)
    perm = np.random.default_rng(5).permutation(len(positions))
    shuffled = cluster_positions(positions[perm], epsilon=1.0, min_pts=4)
    remapped = {frozenset(int(perm[i]) for i in c) for c in shuffled.clusters}
    assert remapped == _as_sets(base.clusters)


def test_empty_candidates() -> None:
    partition = cluster_positions(np.zeros((0, 3)), epsilon=1.0, min_pts=2)
    assert len(partition) == 0
    assert partition.noise().size == 0


@pytest.mark.parametrize(
    "epsilon, min_pts",
    [(0.0, 2), (-1.0, 2), (float("nan"), 2), (1.0, 0), (1.0, -3), (1.0, 2.5), ("wide", 2)],
)
def test_invalid_parameters(epsilon, min_pts) -> None:
    with pytest.raises(InvalidParameter):
        DensityClusterer(epsilon, min_pts)


def test_invalid_parameter_is_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        cluster_positions(np.zeros((3, 3)), epsilon=1.0, min_pts=0)


def _cluster_of(partition, idx: int) -> frozenset:
    return next(frozenset(c) for c in partition.clusters if idx in c)


def _shared_border_sets(left, right, shared):
    """Cluster `left + right + shared` in both orders, as sets of coordinates."""
    results = []
    for first, second in ((left, right), (right, left)):
        positions = np.array(first + second + [shared])
        partition = cluster_positions(positions, epsilon=1.0, min_pts=4)
        results.append(
            {frozenset(tuple(positions[i]) for i in c) for c in partition.clusters}
        )
    return results


def test_shared_border_tie_goes_to_lower_core() -> None:
    # The shared point sits at distance 1 from both cores and is core itself in neither
    left = [(-1.0, 0.0, 0.0), (-1.5, 0.0, 0.0), (-1.0, 0.5, 0.0)]
    right = [(1.0, 0.0, 0.0), (1.5, 0.0, 0.0), (1.0, 0.5, 0.0)]
    shared = (0.0, 0.0, 0.0)
    first, second = _shared_border_sets(left, right, shared)
    assert first == second
    assert frozenset(left + [shared]) in first
    assert frozenset(right) in first


def test_shared_border_goes_to_nearest_core() -> None:
    left = [(-1.0, 0.0, 0.0), (-1.5, 0.0, 0.0), (-1.0, 0.5, 0.0)]
    right = [(0.9, 0.0, 0.0), (1.4, 0.0, 0.0), (0.9, 0.5, 0.0)]
    shared = (0.0, 0.0, 0.0)
    first, second = _shared_border_sets(left, right, shared)
    assert first == second
    assert frozenset(right + [shared]) in first
    assert frozenset(left) in first


def test_shared_border_queried_once() -> None:
    positions = np.array(
        [(-1.0, 0.0, 0.0), (-1.5, 0.0, 0.0), (-1.0, 0.5, 0.0),
         (0.9, 0.0, 0.0), (1.4, 0.0, 0.0), (0.9, 0.5, 0.0), (0.0, 0.0, 0.0)]
    )
    index = CountingIndex(positions)
    partition = DensityClusterer(epsilon=1.0, min_pts=4).run(index)
    assert sorted(index.queried) == list(range(7))
    assert _cluster_of(partition, 6) == frozenset({3, 4, 5, 6})


def test_partition_independent_of_order_with_touching_clusters() -> None:
    rng = np.random.default_rng(21)
    # Two blobs whose fringes overlap, so some border points are contested
    positions = np.vstack(
        [rng.normal(scale=0.6, size=(40, 3)), rng.normal(scale=0.6, size=(40, 3)) + [2.6, 0.0, 0.0]]
    )
    base = cluster_positions(positions, epsilon=0.7, min_pts=6)
    for seed in range(3):
        perm = np.random.default_rng(seed).permutation(len(positions))
        shuffled = cluster_positions(positions[perm], epsilon=0.7, min_pts=6)
        remapped = {frozenset(int(perm[i]) for i in c) for c in shuffled.clusters}
        assert remapped == _as_sets(base.clusters)
