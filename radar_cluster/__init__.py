"""Top level package for per-frame radar point-cloud clustering.

The package filters the raw per-beam returns of a radar frame, groups
nearby valid returns into objects with DBSCAN over a k-d tree and
publishes a compacted record set with per-object centroids and average
velocities.  Most users only need the pipeline:

```python
from radar_cluster import RadarClusterPipeline, ClusterConfig, RawFrame

pipeline = RadarClusterPipeline(ClusterConfig(epsilon=1.0, min_pts=5))
output = pipeline.process(RawFrame(records, width, height, timestamp, launch_count))
```
"""

from .config import ClusterConfig
from .detect.aggregate import ClusterAggregate, FrameMetadata, OutputBuffer
from .detect.returns import RADAR_RETURN_DTYPE, make_returns
from .errors import (
    ConfigurationError,
    ContractViolation,
    InvalidParameter,
    RadarClusterError,
    UpstreamTransferError,
)
from .io.staging import RawFrame
from .pipeline import RadarClusterPipeline

__all__ = [
    "io",
    "detect",
    "metrics",
    "exp",
    "ClusterConfig",
    "ClusterAggregate",
    "FrameMetadata",
    "OutputBuffer",
    "RADAR_RETURN_DTYPE",
    "make_returns",
    "ConfigurationError",
    "ContractViolation",
    "InvalidParameter",
    "RadarClusterError",
    "UpstreamTransferError",
    "RawFrame",
    "RadarClusterPipeline",
]
