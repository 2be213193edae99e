"""Frame staging and recorded frame replay."""

from . import staging, recording

__all__ = ["staging", "recording"]
