"""Clustering configuration.

Experiment configurations are YAML documents.  The clustering core only
reads the `cluster` section:

```yaml
cluster:
  epsilon: 1.0   # neighbourhood radius, sensor frame units
  min_pts: 5     # neighbourhood size (point included) for a core point
```

Sweeps address single values with dotted keys such as
`cluster.epsilon`; `apply_overrides` writes them into a copy of a
configuration.
"""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass
from numbers import Integral, Real
from typing import Any, Dict, Mapping

from .errors import InvalidParameter

CLUSTER_KEYS = ("epsilon", "min_pts")


def _check_epsilon(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (Real, str)):
        raise InvalidParameter(f"cluster.epsilon must be a number, got {value!r}")
    try:
        epsilon = float(value)
    except ValueError as exc:
        raise InvalidParameter(f"cluster.epsilon must be a number, got {value!r}") from exc
    if math.isnan(epsilon) or epsilon <= 0:
        raise InvalidParameter(f"cluster.epsilon must be > 0, got {value!r}")
    return epsilon


def _check_min_pts(value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidParameter(f"cluster.min_pts must be an integer, got {value!r}")
    if isinstance(value, Integral):
        min_pts = int(value)
    elif isinstance(value, Real) and float(value).is_integer():
        # YAML may spell integers as 5.0
        min_pts = int(value)
    elif isinstance(value, str) and value.strip().lstrip("+-").isdigit():
        min_pts = int(value)
    else:
        raise InvalidParameter(f"cluster.min_pts must be an integer, got {value!r}")
    if min_pts < 1:
        raise InvalidParameter(f"cluster.min_pts must be >= 1, got {value!r}")
    return min_pts


@dataclass
class ClusterConfig:
    """DBSCAN parameters used for every frame."""

    epsilon: float = 1.0
    min_pts: int = 5

    def validate(self) -> "ClusterConfig":
        """Normalise the fields, raising `InvalidParameter` when they are unusable."""
        self.epsilon = _check_epsilon(self.epsilon)
        self.min_pts = _check_min_pts(self.min_pts)
        return self


def cluster_config_from_dict(cfg: Mapping[str, Any] | None) -> ClusterConfig:
    """Build a validated `ClusterConfig` from a parsed configuration.

    `cfg` is the full experiment configuration; missing keys fall back
    to the defaults and unknown keys in the `cluster` section are
    rejected.
    """
    section = (cfg or {}).get("cluster") or {}
    if not isinstance(section, Mapping):
        raise InvalidParameter(f"cluster section must be a mapping, got {section!r}")
    unknown = sorted(set(section) - set(CLUSTER_KEYS))
    if unknown:
        raise InvalidParameter(f"unknown cluster keys {unknown}")
    return ClusterConfig(
        section.get("epsilon", ClusterConfig.epsilon),
        section.get("min_pts", ClusterConfig.min_pts),
    ).validate()


def apply_overrides(cfg: Mapping[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a deep copy of `cfg` with dotted keys replaced.

    `{"cluster.epsilon": 0.5}` sets `cfg["cluster"]["epsilon"]`; missing
    or non-mapping intermediate levels are replaced by new sections.
    """
    result = copy.deepcopy(dict(cfg))
    for dotted, value in overrides.items():
        *path, leaf = dotted.split(".")
        section = result
        for name in path:
            child = section.get(name)
            if not isinstance(child, dict):
                child = section[name] = {}
            section = child
        section[leaf] = value
    return result
