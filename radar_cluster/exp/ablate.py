"""Parameter sweeps over the clustering settings.

A sweep configuration names a base experiment and a grid of dotted
parameters:

```yaml
name: eps_sweep
base_config: configs/example.yaml
output_root: runs
param_grid:
  cluster.epsilon: [0.5, 1.0, 2.0]
  cluster.min_pts: [3, 5]
```

Every combination is expanded into a full configuration and its
`cluster` section is validated before the first run starts, so a typo
in the grid fails the sweep up front instead of halfway through.  Each
run goes through `run_experiment`; the registry (`registry.csv` under
the output root) gets one row per run with the effective DBSCAN
parameters next to the per-frame clustering statistics.
"""

from __future__ import annotations

import argparse
import itertools
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Tuple

import pandas as pd
import yaml

from ..config import ClusterConfig, apply_overrides, cluster_config_from_dict
from ..errors import InvalidParameter
from .runner import run_experiment

logger = logging.getLogger(__name__)

REGISTRY_COLUMNS = [
    "run_id",
    "epsilon",
    "min_pts",
    "frames",
    "clusters_mean",
    "valid_returns_mean",
    "invalid_returns_mean",
    "noise_ratio",
    "points_per_object_mean",
]


def expand_grid(
    base_cfg: Mapping[str, Any], param_grid: Mapping[str, Sequence[Any]]
) -> List[Tuple[Dict[str, Any], Dict[str, Any], ClusterConfig]]:
    """Expand `param_grid` over `base_cfg`.

    Returns
    -------
    list of (combo, config, cluster_config)
        The grid point, the overridden experiment configuration and its
        validated clustering parameters, in grid order.

    Raises
    ------
    InvalidParameter
        A grid point yields unusable clustering parameters.
    """
    keys = list(param_grid)
    expanded = []
    for values in itertools.product(*(param_grid[k] for k in keys)):
        combo = dict(zip(keys, values))
        cfg = apply_overrides(base_cfg, combo)
        try:
            cluster_cfg = cluster_config_from_dict(cfg)
        except InvalidParameter as exc:
            raise InvalidParameter(f"grid point {combo}: {exc}") from exc
        expanded.append((combo, cfg, cluster_cfg))
    return expanded


def run_ablation(ablation_cfg: Dict[str, Any]) -> pd.DataFrame:
    """Run a parameter sweep and append its results to the registry.

    Parameters
    ----------
    ablation_cfg : dict
        Must contain `base_config` (path to a YAML experiment
        configuration) and `param_grid` (dotted parameter name -> list
        of values).  Optional: `name`, `output_root`.

    Returns
    -------
    pd.DataFrame
        One row per run of this sweep, with the columns of
        `REGISTRY_COLUMNS` followed by the grid parameters.
    """
    base_path = ablation_cfg.get("base_config")
    if base_path is None:
        raise ValueError("ablation configuration must specify base_config")
    with open(base_path, "r") as f:
        base_cfg = yaml.safe_load(f) or {}
    grid = expand_grid(base_cfg, ablation_cfg.get("param_grid", {}) or {})
    name_base = ablation_cfg.get("name", "ablation")
    output_root = ablation_cfg.get("output_root", "runs")

    rows = []
    for i, (combo, cfg, cluster_cfg) in enumerate(grid):
        summary = run_experiment(cfg, run_name=f"{name_base}_{i}", output_root=output_root)
        logger.info(
            "run %d/%d eps=%g min_pts=%d: %.2f clusters/frame, noise ratio %.3f",
            i + 1,
            len(grid),
            cluster_cfg.epsilon,
            cluster_cfg.min_pts,
            summary.get("clusters_mean", float("nan")),
            summary.get("noise_ratio", float("nan")),
        )
        row = {col: summary.get(col) for col in REGISTRY_COLUMNS}
        row.update(run_id=summary["run_dir"], epsilon=cluster_cfg.epsilon, min_pts=cluster_cfg.min_pts)
        # grid keys outside the cluster section are kept verbatim
        row.update({k: v for k, v in combo.items() if not k.startswith("cluster.")})
        rows.append(row)
    df = pd.DataFrame(rows, columns=_columns(rows))

    registry_path = Path(output_root) / "registry.csv"
    registry = df
    if registry_path.exists():
        registry = pd.concat([pd.read_csv(registry_path), df], ignore_index=True)
    registry.to_csv(registry_path, index=False)
    return df


def _columns(rows: List[Dict[str, Any]]) -> List[str]:
    extra = [k for row in rows for k in row if k not in REGISTRY_COLUMNS]
    return REGISTRY_COLUMNS + list(dict.fromkeys(extra))


def main() -> None:
    parser = argparse.ArgumentParser(description="Sweep DBSCAN parameters over a radar recording")
    parser.add_argument("--config", type=str, required=True, help="Path to sweep YAML configuration file")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    with open(args.config, "r") as f:
        abl_cfg = yaml.safe_load(f)
    df = run_ablation(abl_cfg)
    print("Sweep completed. Results appended to registry.csv")
    print(df[["epsilon", "min_pts", "clusters_mean", "noise_ratio"]])


if __name__ == "__main__":
    main()
