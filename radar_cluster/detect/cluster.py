"""Density based clustering of radar candidates.

This module groups the valid returns of a frame into objects using
DBSCAN.  Neighbourhoods are answered by a `SpatialIndex` built over the
candidate positions.  A candidate is a core point when its
epsilon-neighbourhood, counting the candidate itself, holds at least
`min_pts` members; this matches the `min_samples` convention of
scikit-learn.

The labeling state is two boolean arrays owned by one `run` call:

* `visited` gates querying.  A candidate's neighbourhood is fetched
  exactly once, on its unvisited -> visited transition.
* `assigned` gates membership.  A candidate visited earlier as a failed
  seed is still absorbed as a border point when another cluster's
  expansion reaches it, without being queried again.

A border point within reach of several clusters is given to the cluster
of its nearest core neighbour once the sweep is done, so the resulting
partition does not depend on the order of the candidates.
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from numbers import Integral
from typing import Dict, List

import numpy as np

from ..errors import InvalidParameter
from .index import SpatialIndex


@dataclass
class ClusterPartition:
    """Result of one clustering pass.

    Attributes
    ----------
    clusters : list of list of int
        Candidate indices per cluster, in discovery order.
    n_candidates : int
        Number of candidates that were clustered.
    queries : int
        Number of neighbourhood queries issued against the index.
    """

    clusters: List[List[int]] = field(default_factory=list)
    n_candidates: int = 0
    queries: int = 0

    def __len__(self) -> int:
        return len(self.clusters)

    @property
    def n_assigned(self) -> int:
        return sum(len(c) for c in self.clusters)

    def labels(self) -> np.ndarray:
        """Per-candidate cluster index, `-1` for noise."""
        labels = np.full(self.n_candidates, -1, dtype=np.int64)
        for cid, members in enumerate(self.clusters):
            labels[members] = cid
        return labels

    def noise(self) -> np.ndarray:
        """Indices of candidates that belong to no cluster."""
        return np.flatnonzero(self.labels() == -1)


class DensityClusterer:
    """DBSCAN over a frame's candidate positions.

    Parameters
    ----------
    epsilon : float
        Neighbourhood radius.  Must be positive; `inf` puts every
        candidate in every neighbourhood.
    min_pts : int
        Minimum neighbourhood size, the candidate included, for a core
        point.  Must be at least one.
    """

    def __init__(self, epsilon: float, min_pts: int) -> None:
        if isinstance(min_pts, bool) or not isinstance(min_pts, Integral) or min_pts < 1:
            raise InvalidParameter(f"min_pts must be an integer >= 1, got {min_pts!r}")
        try:
            epsilon = float(epsilon)
        except (TypeError, ValueError) as exc:
            raise InvalidParameter(f"epsilon must be a number, got {epsilon!r}") from exc
        if math.isnan(epsilon) or epsilon <= 0:
            raise InvalidParameter(f"epsilon must be > 0, got {epsilon!r}")
        self.epsilon = epsilon
        self.min_pts = int(min_pts)

    def _is_core(self, neighbours: np.ndarray) -> bool:
        return len(neighbours) + 1 >= self.min_pts

    def run(self, index: SpatialIndex) -> ClusterPartition:
        """Cluster every candidate held by `index`."""
        n = len(index)
        partition = ClusterPartition(n_candidates=n)
        visited = np.zeros(n, dtype=bool)
        assigned = np.zeros(n, dtype=bool)
        core = np.zeros(n, dtype=bool)
        label = np.full(n, -1, dtype=np.int64)
        # neighbourhoods of non-core candidates, kept for border resolution
        border_neighbours: Dict[int, np.ndarray] = {}

        def visit(i: int) -> np.ndarray:
            visited[i] = True
            found = index.query(i, self.epsilon)
            partition.queries += 1
            if self._is_core(found):
                core[i] = True
            else:
                border_neighbours[i] = found
            return found

        for seed in range(n):
            if visited[seed]:
                continue
            neighbours = visit(seed)
            if not core[seed]:
                # tentative noise, may become a border point later
                continue

            cid = len(partition.clusters)
            members = [seed]
            assigned[seed] = True
            label[seed] = cid
            enqueued = {seed}
            enqueued.update(neighbours.tolist())
            worklist = deque(neighbours.tolist())
            while worklist:
                q = worklist.popleft()
                if not visited[q]:
                    q_neighbours = visit(q)
                    if core[q]:
                        for r in q_neighbours.tolist():
                            if r not in enqueued:
                                enqueued.add(r)
                                worklist.append(r)
                if not assigned[q]:
                    assigned[q] = True
                    label[q] = cid
                    members.append(q)
            partition.clusters.append(members)

        self._settle_borders(index.positions, partition, core, label, border_neighbours)
        return partition

    @staticmethod
    def _settle_borders(
        positions: np.ndarray,
        partition: ClusterPartition,
        core: np.ndarray,
        label: np.ndarray,
        border_neighbours: Dict[int, np.ndarray],
    ) -> None:
        """Move border points reachable from several clusters to their nearest core.

        Expansion order decides which cluster grabs a border point first.
        Here a border point next to core points of more than one cluster
        goes to the cluster of its nearest core neighbour, ties broken by
        the core's coordinates, so the partition does not depend on the
        candidate order.  Core points with equal coordinates are always in
        the same cluster, so the choice is unique.
        """
        for i, neighbours in border_neighbours.items():
            if label[i] < 0:
                continue
            cores = neighbours[core[neighbours]]
            if len(set(label[cores].tolist())) < 2:
                continue
            dist = np.linalg.norm(positions[cores] - positions[i], axis=1)
            best = min(
                range(len(cores)),
                key=lambda k: (dist[k], tuple(positions[cores[k]].tolist())),
            )
            target = int(label[cores[best]])
            if target != label[i]:
                partition.clusters[label[i]].remove(i)
                partition.clusters[target].append(i)
                label[i] = target


def cluster_positions(positions: np.ndarray, epsilon: float, min_pts: int) -> ClusterPartition:
    """Build a throwaway index over `positions` and cluster them.

    Parameters are validated before the index is built.
    """
    clusterer = DensityClusterer(epsilon, min_pts)
    with SpatialIndex(positions) as index:
        return clusterer.run(index)
