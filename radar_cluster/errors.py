"""Exceptions raised by the clustering core.

All errors derive from `RadarClusterError` so callers can drop a frame
with a single `except` clause.  Configuration problems also subclass
`ValueError`; runtime failures subclass `RuntimeError`.
"""

from __future__ import annotations


class RadarClusterError(Exception):
    """Base class for every error raised by `radar_cluster`."""


class ConfigurationError(RadarClusterError, ValueError):
    """Clustering parameters are unusable.  Raised before any frame work."""


class InvalidParameter(ConfigurationError):
    """`epsilon` is not positive or `min_pts` is smaller than one."""


class UpstreamTransferError(RadarClusterError, RuntimeError):
    """The device to host copy of a frame failed; the frame is aborted."""


class ContractViolation(RadarClusterError, RuntimeError):
    """A caller broke an interface contract (bad buffer, closed index...)."""
