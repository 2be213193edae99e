"""Spatial index for radius queries over a frame's candidates.

The index wraps a `scipy.spatial.cKDTree` built once per frame.  Query
results are integer positions into the candidate array, so callers map
neighbours back to their records without any pointer arithmetic.  The
tree is read only after construction and released with `close()` at
the end of the frame.
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np
from scipy.spatial import cKDTree

from ..errors import ContractViolation

# Relative slack on the tree radius; the exact test is redone afterwards.
_RADIUS_SLACK = 1e-6


class SpatialIndex:
    """Immutable k-d tree over `(n, 3)` candidate positions."""

    def __init__(self, positions: np.ndarray) -> None:
        positions = np.array(positions, dtype=np.float64)
        if positions.ndim != 2 or positions.shape[1] != 3:
            raise ContractViolation(
                f"positions must have shape (n, 3), got {positions.shape}"
            )
        self._positions = positions
        self._positions.setflags(write=False)
        self._tree: Optional[cKDTree] = cKDTree(positions) if len(positions) else None
        self._closed = False

    def __len__(self) -> int:
        return int(self._positions.shape[0])

    def __enter__(self) -> "SpatialIndex":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def positions(self) -> np.ndarray:
        """Read-only `(n, 3)` array of the indexed positions."""
        return self._positions

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the tree.  Any later query is a contract violation."""
        self._tree = None
        self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise ContractViolation("spatial index queried after close()")

    def query(self, idx: int, radius: float) -> np.ndarray:
        """Return indices of all candidates within `radius` of candidate `idx`.

        The boundary is inclusive.  The queried candidate itself is
        excluded by index; other candidates at the same coordinates are
        kept.

        Parameters
        ----------
        idx : int
            Candidate index to query around.
        radius : float
            Search radius in the sensor frame units.  May be `inf`.

        Returns
        -------
        np.ndarray
            Sorted int64 array of neighbour indices.
        """
        self._check_open()
        n = len(self)
        if not 0 <= idx < n:
            raise ContractViolation(f"candidate index {idx} out of range for {n} points")
        found = self._ball(self._positions[idx], radius)
        return found[found != idx]

    def query_point(self, xyz, radius: float) -> np.ndarray:
        """Return indices of all candidates within `radius` of an arbitrary point."""
        self._check_open()
        return self._ball(np.asarray(xyz, dtype=np.float64).reshape(3), radius)

    def _ball(self, centre: np.ndarray, radius: float) -> np.ndarray:
        if self._tree is None:
            return np.empty(0, dtype=np.int64)
        if math.isinf(radius):
            return np.arange(len(self), dtype=np.int64)
        # Tree lookup with a little slack, then the exact inclusive test.
        found = self._tree.query_ball_point(centre, radius * (1.0 + _RADIUS_SLACK) + 1e-12)
        found = np.asarray(sorted(found), dtype=np.int64)
        if found.size == 0:
            return found
        diff = self._positions[found] - centre
        dist = np.sqrt(np.einsum("ij,ij->i", diff, diff))
        return found[dist <= radius]
