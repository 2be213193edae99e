"""Per-frame clustering pipeline.

`RadarClusterPipeline` chains the stages of the core for one frame:

1. Stage the frame to host memory and keep returns with positive
   intensity (`FrameStager`).
2. Build a k-d tree over the candidate positions (`SpatialIndex`).
3. Group candidates with DBSCAN (`DensityClusterer`).
4. Stamp object ids, compute per-object means and compact the records
   (`AggregateBuilder`).

Every stage is rebuilt per frame; the pipeline itself only keeps the
configuration and the last launch counter it saw.  The returned
`OutputBuffer` is a fresh allocation owned by the caller.
"""

from __future__ import annotations

import logging
import time
from typing import Iterable, Iterator, Optional

from .config import ClusterConfig
from .detect.aggregate import AggregateBuilder, OutputBuffer
from .detect.cluster import ClusterPartition, DensityClusterer
from .detect.index import SpatialIndex
from .errors import ContractViolation
from .io.staging import FrameStager, RawFrame
from .metrics.frame_report import log_frame_report

logger = logging.getLogger(__name__)


class RadarClusterPipeline:
    """Cluster radar frames into objects.

    Parameters
    ----------
    config : ClusterConfig, optional
        DBSCAN parameters.  Validated on construction, before any frame
        is processed.
    log_clusters : bool, optional
        Also log one line per object at DEBUG level.
    """

    def __init__(self, config: Optional[ClusterConfig] = None, log_clusters: bool = False) -> None:
        self.config = (config or ClusterConfig()).validate()
        self.clusterer = DensityClusterer(self.config.epsilon, self.config.min_pts)
        self.stager = FrameStager()
        self.builder = AggregateBuilder()
        self.log_clusters = log_clusters
        self._last_launch: Optional[int] = None

    def _check_order(self, frame: RawFrame) -> None:
        if self._last_launch is not None and frame.launch_count <= self._last_launch:
            raise ContractViolation(
                f"launch counter went from {self._last_launch} to {frame.launch_count}"
            )

    def process(self, frame: RawFrame) -> OutputBuffer:
        """Run all stages on `frame` and return its output buffer.

        Raises
        ------
        UpstreamTransferError
            The device to host copy failed.  Nothing is published.
        ContractViolation
            The frame does not match its metadata or its launch counter
            did not increase.
        """
        self._check_order(frame)
        candidates, host = self.stager.stage(frame)

        start = time.perf_counter()
        if len(candidates):
            with SpatialIndex(candidates.positions) as index:
                partition = self.clusterer.run(index)
        else:
            partition = ClusterPartition()
        elapsed_ms = (time.perf_counter() - start) * 1e3

        output = self.builder.build(
            candidates,
            partition,
            frame.width,
            frame.height,
            frame.timestamp,
            frame.launch_count,
            host_returns=host,
        )
        self._last_launch = frame.launch_count
        log_frame_report(logger, output, n_beams=frame.n_beams, elapsed_ms=elapsed_ms,
                         per_cluster=self.log_clusters)
        return output

    def process_many(self, frames: Iterable[RawFrame]) -> Iterator[OutputBuffer]:
        """Process frames in order, yielding one output buffer per frame."""
        for frame in frames:
            yield self.process(frame)
