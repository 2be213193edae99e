"""Recorded radar frames on disk.

A recording is a folder with one `frame_{i}.npy` file per frame (a flat
array of radar return records) and a `meta.csv` table with one row per
frame:

| column       | meaning                         |
|--------------|---------------------------------|
| frame        | launch counter of the frame     |
| timestamp    | acquisition time (seconds)      |
| width        | beam grid width                 |
| height       | beam grid height                |

Replaying a recording yields `RawFrame` objects backed by host arrays,
so the full pipeline, staging included, runs without a device.
"""

from __future__ import annotations

import os
from typing import Iterator, Optional, Sequence

import numpy as np
import pandas as pd

from ..detect.returns import RADAR_RETURN_DTYPE
from .staging import RawFrame

META_COLUMNS = ["frame", "timestamp", "width", "height"]


class FrameRecording:
    """Recording folder wrapper."""

    frame_filename = "frame_{}.npy"

    def __init__(self, directory: str) -> None:
        """
        Args:
            directory (string): Path to the folder that contains the recorded frames.
        """
        if not os.path.isdir(directory):
            raise FileNotFoundError(f"Recording folder not found: {directory}")
        self.directory = directory
        self.meta = self.parse_meta()

    def __repr__(self) -> str:
        return "<FrameRecording at {}>".format(self.directory)

    def __len__(self) -> int:
        return len(self.meta)

    def __getitem__(self, idx: int) -> RawFrame:
        return self.frame(idx)

    def __iter__(self) -> Iterator[RawFrame]:
        for idx in range(len(self)):
            yield self.frame(idx)

    def parse_meta(self) -> pd.DataFrame:
        filename = os.path.join(self.directory, "meta.csv")
        meta = pd.read_csv(filename)
        missing = [c for c in META_COLUMNS if c not in meta.columns]
        if missing:
            raise ValueError(f"meta.csv is missing columns {missing}")
        return meta

    def frame(self, idx: int) -> RawFrame:
        """Load frame number `idx` (row `idx` of meta.csv)."""
        row = self.meta.iloc[idx]
        filename = os.path.join(self.directory, self.frame_filename.format(idx))
        records = np.load(filename, allow_pickle=False)
        return RawFrame(
            buffer=records,
            width=int(row["width"]),
            height=int(row["height"]),
            timestamp=float(row["timestamp"]),
            launch_count=int(row["frame"]),
        )

    def frames(self, indices: Optional[Sequence[int]] = None) -> Iterator[RawFrame]:
        """Iterate over the selected frames, all of them by default."""
        if indices is None:
            indices = range(len(self))
        for idx in indices:
            yield self.frame(int(idx))


def save_recording(directory: str, frames: Sequence[RawFrame]) -> FrameRecording:
    """Write host-backed frames as a recording folder and reopen it."""
    os.makedirs(directory, exist_ok=True)
    rows = []
    for idx, frame in enumerate(frames):
        records = np.asarray(frame.buffer, dtype=RADAR_RETURN_DTYPE).reshape(-1)
        np.save(os.path.join(directory, FrameRecording.frame_filename.format(idx)), records)
        rows.append(
            {
                "frame": frame.launch_count,
                "timestamp": frame.timestamp,
                "width": frame.width,
                "height": frame.height,
            }
        )
    pd.DataFrame(rows, columns=META_COLUMNS).to_csv(os.path.join(directory, "meta.csv"), index=False)
    return FrameRecording(directory)
