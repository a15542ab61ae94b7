"""
Audio frame primitives.

Pure data containers only.
No behavior, no queues, no timing logic.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class CaptureFrame:
    """
    One fixed-length capture window from the microphone.

    sequence_num:
        Monotonic sequence number assigned by the capture pipeline.
        Used for gap detection and debugging only.

    samples:
        float32 mono samples in [-1.0, 1.0].
        Length MUST equal constants.CAPTURE_WINDOW_SAMPLES.

    ts_ms:
        Wall-clock timestamp (milliseconds) when the window was delivered
        on the event loop. Used for observability only (not control logic).
    """
    sequence_num: int
    samples: np.ndarray
    ts_ms: int


@dataclass(frozen=True)
class ScheduledChunk:
    """Placement of one decoded reply chunk on the output clock."""
    sequence_num: int
    start_s: float
    duration_s: float

    @property
    def end_s(self) -> float:
        return self.start_s + self.duration_s
