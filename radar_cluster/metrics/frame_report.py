"""Per-frame summaries of clustering output.

These helpers turn an `OutputBuffer` into flat dictionaries (one per
frame and one per object) that the experiment runner collects into
pandas tables, and into the DEBUG log lines emitted by the pipeline.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..detect.aggregate import OutputBuffer


def frame_summary(
    output: OutputBuffer,
    n_beams: Optional[int] = None,
    elapsed_ms: Optional[float] = None,
) -> Dict[str, Any]:
    """Return scalar statistics of one processed frame.

    Parameters
    ----------
    output : OutputBuffer
        The processed frame.
    n_beams : int, optional
        Size of the beam grid.  Defaults to `width * height`.
    elapsed_ms : float, optional
        Wall time spent indexing and clustering, in milliseconds.

    Returns
    -------
    dict
        Keys `frame`, `timestamp`, `beams`, `candidates`,
        `valid_returns`, `invalid_returns`, `num_clusters` and, when
        given, `cluster_ms`.
    """
    meta = output.metadata
    if n_beams is None:
        n_beams = meta.width * meta.height
    summary: Dict[str, Any] = {
        "frame": meta.launch_count,
        "timestamp": meta.timestamp,
        "beams": int(n_beams),
        "candidates": meta.candidate_count,
        "valid_returns": meta.valid_returns,
        "invalid_returns": meta.invalid_returns,
        "num_clusters": meta.num_clusters,
    }
    if elapsed_ms is not None:
        summary["cluster_ms"] = float(elapsed_ms)
    return summary


def object_rows(output: OutputBuffer) -> List[Dict[str, Any]]:
    """Return one flat row per object with its centroid and average velocity."""
    rows = []
    for obj in output.objects():
        rows.append(
            {
                "frame": output.launch_count,
                "object_id": obj.object_id,
                "point_count": obj.count,
                "centroid_x": float(obj.centroid[0]),
                "centroid_y": float(obj.centroid[1]),
                "centroid_z": float(obj.centroid[2]),
                "velocity_x": float(obj.avg_velocity[0]),
                "velocity_y": float(obj.avg_velocity[1]),
                "velocity_z": float(obj.avg_velocity[2]),
            }
        )
    return rows


def log_frame_report(
    logger: logging.Logger,
    output: OutputBuffer,
    n_beams: Optional[int] = None,
    elapsed_ms: Optional[float] = None,
    per_cluster: bool = False,
) -> None:
    """Log the frame summary, and optionally each object, at DEBUG level."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    s = frame_summary(output, n_beams, elapsed_ms)
    logger.debug(
        "Scan %d | returns: %d | candidates: %d | valid returns: %d | clusters: %d | DBSCAN %.2f ms",
        s["frame"],
        s["beams"],
        s["candidates"],
        s["valid_returns"],
        s["num_clusters"],
        s.get("cluster_ms", float("nan")),
    )
    if per_cluster:
        for row in object_rows(output):
            logger.debug(
                "Cluster %d: %d returns | velocity %.3f %.3f %.3f | centroid %.3f %.3f %.3f",
                row["object_id"],
                row["point_count"],
                row["velocity_x"],
                row["velocity_y"],
                row["velocity_z"],
                row["centroid_x"],
                row["centroid_y"],
                row["centroid_z"],
            )
