"""Device to host staging of raw radar frames.

The upstream kernel leaves one record per beam in a device resident
buffer.  `FrameStager` copies that buffer to host memory over the
producing stream, blocks until the copy has completed and then selects
the valid returns.  The copy is the only synchronisation point between
the device and the host side clustering.

Buffers and streams are duck typed so that the stager works with plain
numpy arrays (CPU replay, tests) as well as device arrays:

* a `numpy.ndarray` is copied directly;
* an object with `copy_to_host(stream)` returns a host array;
* a CuPy style array exposes `get(stream=...)`.

Streams only need a `synchronize()` method, or may be `None`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import numpy as np

from ..detect.returns import RADAR_RETURN_DTYPE, CandidateSet
from ..errors import ContractViolation, UpstreamTransferError

logger = logging.getLogger(__name__)


@dataclass
class RawFrame:
    """One frame as produced by the ranging kernel.

    Parameters
    ----------
    buffer : Any
        Device (or host) array of `width * height` radar return records.
    width, height : int
        Beam grid dimensions.
    timestamp : float
        Acquisition time of the frame.
    launch_count : int
        Monotonically increasing frame counter.
    stream : Any, optional
        Execution stream the producing kernel was launched on.
    """

    buffer: Any
    width: int
    height: int
    timestamp: float = 0.0
    launch_count: int = 0
    stream: Any = None

    @property
    def n_beams(self) -> int:
        return int(self.width) * int(self.height)


def _copy_to_host(buffer: Any, stream: Any) -> np.ndarray:
    if isinstance(buffer, np.ndarray):
        return np.array(buffer, copy=True)
    if hasattr(buffer, "copy_to_host"):
        return np.asarray(buffer.copy_to_host(stream))
    if hasattr(buffer, "get"):
        return np.asarray(buffer.get(stream=stream))
    raise ContractViolation(f"unsupported frame buffer type {type(buffer).__name__}")


class FrameStager:
    """Copy a frame to the host and extract its candidate set."""

    def transfer(self, frame: RawFrame) -> np.ndarray:
        """Synchronously copy the frame's records to a new host array.

        Raises
        ------
        UpstreamTransferError
            The copy or the stream synchronisation failed.
        ContractViolation
            The host array has the wrong layout or record count.
        """
        try:
            host = _copy_to_host(frame.buffer, frame.stream)
            if frame.stream is not None:
                frame.stream.synchronize()
        except ContractViolation:
            raise
        except Exception as exc:
            raise UpstreamTransferError(
                f"device to host copy failed for frame {frame.launch_count}: {exc}"
            ) from exc
        return self._check_layout(host, frame)

    @staticmethod
    def _check_layout(host: np.ndarray, frame: RawFrame) -> np.ndarray:
        if host.dtype.names != RADAR_RETURN_DTYPE.names:
            raise ContractViolation(
                f"frame records have dtype {host.dtype}, expected {RADAR_RETURN_DTYPE}"
            )
        if host.dtype != RADAR_RETURN_DTYPE:
            # same fields in another precision or memory layout
            host = host.astype(RADAR_RETURN_DTYPE)
        host = host.reshape(-1)
        if host.shape[0] != frame.n_beams:
            raise ContractViolation(
                f"frame holds {host.shape[0]} records, expected "
                f"{frame.width}x{frame.height}={frame.n_beams}"
            )
        return host

    def stage(self, frame: RawFrame) -> Tuple[CandidateSet, np.ndarray]:
        """Transfer `frame` and filter it to returns with positive intensity.

        Returns
        -------
        candidates : CandidateSet
            Valid returns in beam order (possibly empty).
        host : np.ndarray
            The full host copy of the frame.
        """
        host = self.transfer(frame)
        candidates = CandidateSet.from_returns(host)
        logger.debug(
            "frame %d staged: %d beams, %d candidates",
            frame.launch_count,
            host.shape[0],
            len(candidates),
        )
        return candidates, host


class DoubleBuffer:
    """Two-slot hand off between a producer and the clustering core.

    The producer fills the slot returned by `acquire()` and hands it over
    with `publish()`.  The consumer takes it with `take()` and gives it
    back with `release()` once the frame has been staged.  A slot is owned
    by one side at a time.
    """

    def __init__(self, slots: Tuple[Any, Any]) -> None:
        self._free = list(slots)
        self._ready: Optional[Any] = None

    def acquire(self) -> Any:
        if not self._free:
            raise ContractViolation("no free slot: consumer still holds both slots")
        return self._free.pop(0)

    def publish(self, slot: Any) -> None:
        if self._ready is not None:
            raise ContractViolation("a published frame is still waiting to be taken")
        self._ready = slot

    def take(self) -> Any:
        if self._ready is None:
            raise ContractViolation("no frame has been published")
        slot, self._ready = self._ready, None
        return slot

    def release(self, slot: Any) -> None:
        if any(s is slot for s in self._free):
            raise ContractViolation("slot released twice")
        self._free.append(slot)
