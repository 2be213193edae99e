"""Per-frame summaries and report logging."""

from . import frame_report

__all__ = ["frame_report"]
