"""Candidate selection, spatial indexing, clustering and aggregation.

This package turns the valid returns of a frame into clustered objects:
`returns` defines the record layout, `index` answers radius queries,
`cluster` runs DBSCAN and `aggregate` builds the compacted output.
"""

from . import returns, index, cluster, aggregate

__all__ = ["returns", "index", "cluster", "aggregate"]
