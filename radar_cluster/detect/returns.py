"""Radar return records and per-frame candidate sets.

A frame arrives as a flat numpy structured array with one record per
beam of the `width x height` grid.  Each record carries the Cartesian
position and velocity computed upstream, the return intensity and an
object id slot that only the clustering core writes.  Beams without a
return have zero intensity.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np


RADAR_RETURN_DTYPE = np.dtype(
    [
        ("xyz", np.float32, (3,)),
        ("vel", np.float32, (3,)),
        ("intensity", np.float32),
        ("object_id", np.int32),
    ]
)


def make_returns(
    xyz: Sequence[Sequence[float]],
    vel: Optional[Sequence[Sequence[float]]] = None,
    intensity: Optional[Sequence[float]] = None,
) -> np.ndarray:
    """Build a record array from plain sequences.

    Parameters
    ----------
    xyz : sequence of 3-sequences
        Positions of the returns (metres).
    vel : sequence of 3-sequences, optional
        Velocities (m/s).  Defaults to zeros.
    intensity : sequence of float, optional
        Return intensities.  Defaults to ones, i.e. every return valid.

    Returns
    -------
    np.ndarray
        Array with dtype `RADAR_RETURN_DTYPE` and `object_id` zeroed.
    """
    xyz_arr = np.asarray(xyz, dtype=np.float32).reshape(-1, 3)
    n = xyz_arr.shape[0]
    records = np.zeros(n, dtype=RADAR_RETURN_DTYPE)
    records["xyz"] = xyz_arr
    if vel is not None:
        records["vel"] = np.asarray(vel, dtype=np.float32).reshape(-1, 3)
    if intensity is None:
        records["intensity"] = 1.0
    else:
        records["intensity"] = np.asarray(intensity, dtype=np.float32)
    return records


@dataclass
class CandidateSet:
    """Valid returns of a single frame.

    Attributes
    ----------
    records : np.ndarray
        Copies of the records with `intensity > 0`, in beam order.
    source_index : np.ndarray
        For each candidate, the position of its record in the full host
        array of the frame.
    """

    records: np.ndarray
    source_index: np.ndarray

    def __len__(self) -> int:
        return int(self.records.shape[0])

    @property
    def positions(self) -> np.ndarray:
        """Candidate positions as a `(n, 3)` float64 array."""
        return self.records["xyz"].astype(np.float64)

    @property
    def velocities(self) -> np.ndarray:
        return self.records["vel"].astype(np.float64)

    @classmethod
    def from_returns(cls, returns: np.ndarray) -> "CandidateSet":
        """Select the returns with positive intensity."""
        source_index = np.flatnonzero(returns["intensity"] > 0)
        return cls(returns[source_index].copy(), source_index)
