"""Per-object aggregation and the compacted output buffer.

After clustering, every member record is stamped with its object id
(cluster index plus one), noise records are dropped and the surviving
records are packed cluster by cluster into a new array.  Each object
also gets a centroid and an average velocity, stored in arrays indexed
by `object_id - 1`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from ..errors import ContractViolation
from .cluster import ClusterPartition
from .returns import RADAR_RETURN_DTYPE, CandidateSet


@dataclass(frozen=True)
class FrameMetadata:
    """Scalar description of one processed frame."""

    width: int
    height: int
    timestamp: float
    launch_count: int
    valid_returns: int = 0
    invalid_returns: int = 0
    num_clusters: int = 0

    @property
    def candidate_count(self) -> int:
        """Number of returns with positive intensity before clustering."""
        return self.valid_returns + self.invalid_returns


@dataclass
class ClusterAggregate:
    """Summary of a single clustered object.

    Attributes
    ----------
    object_id : int
        One based object id written into the member records.
    centroid : np.ndarray
        Mean member position, shape `(3,)`.
    avg_velocity : np.ndarray
        Mean member velocity, shape `(3,)`.
    count : int
        Number of member returns.
    """

    object_id: int
    centroid: np.ndarray
    avg_velocity: np.ndarray
    count: int


@dataclass
class OutputBuffer:
    """Host side result of a frame, handed to the next pipeline stage.

    `returns` holds only clustered records.  `centroids` and
    `avg_velocity` have one row per object, row `k` describing object
    id `k + 1`.  `beams`, when present, is the full `width * height`
    host copy of the frame with every record's object id filled in
    (0 for beams without a clustered return).
    """

    returns: np.ndarray
    centroids: np.ndarray
    avg_velocity: np.ndarray
    metadata: FrameMetadata
    counts: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    beams: Optional[np.ndarray] = None

    @property
    def valid_returns(self) -> int:
        return self.metadata.valid_returns

    @property
    def invalid_returns(self) -> int:
        return self.metadata.invalid_returns

    @property
    def num_clusters(self) -> int:
        return self.metadata.num_clusters

    @property
    def timestamp(self) -> float:
        return self.metadata.timestamp

    @property
    def launch_count(self) -> int:
        return self.metadata.launch_count

    def objects(self) -> List[ClusterAggregate]:
        """Return one `ClusterAggregate` per object, ordered by object id."""
        return [
            ClusterAggregate(k + 1, self.centroids[k], self.avg_velocity[k], int(self.counts[k]))
            for k in range(self.num_clusters)
        ]

    def members(self, object_id: int) -> np.ndarray:
        """Records belonging to `object_id`."""
        return self.returns[self.returns["object_id"] == object_id]

    def object_map(self) -> np.ndarray:
        """Object id of every beam laid out on the `(height, width)` grid."""
        if self.beams is None:
            raise ContractViolation("output buffer was built without the beam array")
        return self.beams["object_id"].reshape(self.metadata.height, self.metadata.width)


class AggregateBuilder:
    """Turn a cluster partition into an `OutputBuffer`."""

    def build(
        self,
        candidates: CandidateSet,
        partition: ClusterPartition,
        width: int,
        height: int,
        timestamp: float,
        launch_count: int,
        host_returns: Optional[np.ndarray] = None,
    ) -> OutputBuffer:
        """Stamp object ids, compute per-object means and compact the records.

        Parameters
        ----------
        candidates : CandidateSet
            The frame's valid returns.  Member records are copied, the
            candidate set itself is not modified.
        partition : ClusterPartition
            Clusters of candidate indices.
        width, height : int
            Beam grid dimensions, copied into the metadata.
        timestamp : float
            Frame timestamp, passed through.
        launch_count : int
            Frame counter, passed through.
        host_returns : np.ndarray, optional
            Full host array of the frame.  When given, its `object_id`
            field is rewritten too (members get their object id, every
            other record 0) and the array is published as
            `OutputBuffer.beams`.

        Returns
        -------
        OutputBuffer
            Newly allocated output owned by the caller.
        """
        k = len(partition)
        centroids = np.zeros((k, 3), dtype=np.float64)
        avg_velocity = np.zeros((k, 3), dtype=np.float64)
        counts = np.zeros(k, dtype=np.int64)
        # cluster-then-discovery order; fancy indexing copies
        order = [idx for members in partition.clusters for idx in members]
        if order:
            returns = candidates.records[np.asarray(order, dtype=np.int64)]
        else:
            returns = np.zeros(0, dtype=RADAR_RETURN_DTYPE)

        start = 0
        for cid, members in enumerate(partition.clusters):
            stop = start + len(members)
            block = returns[start:stop]
            block["object_id"] = cid + 1
            centroids[cid] = block["xyz"].astype(np.float64).mean(axis=0)
            avg_velocity[cid] = block["vel"].astype(np.float64).mean(axis=0)
            counts[cid] = len(members)
            start = stop

        if host_returns is not None:
            host_returns["object_id"] = 0
            if order:
                host_returns["object_id"][candidates.source_index[order]] = returns["object_id"]

        kept = int(returns.shape[0])
        metadata = FrameMetadata(
            width=int(width),
            height=int(height),
            timestamp=timestamp,
            launch_count=int(launch_count),
            valid_returns=kept,
            invalid_returns=len(candidates) - kept,
            num_clusters=k,
        )
        return OutputBuffer(returns, centroids, avg_velocity, metadata, counts, beams=host_returns)

