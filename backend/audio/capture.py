"""
Microphone capture pipeline.

Device blocks arrive on the audio thread and are marshalled onto the
event loop with loop.call_soon_threadsafe. On the loop, blocks are
re-windowed to exactly CAPTURE_WINDOW_SAMPLES, fed to the frequency tap,
encoded to PCM16 and handed to the transport's outbound path.

Readiness is checked per window: windows produced while the transport
is not ready are dropped and counted, never queued.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Protocol

import numpy as np

from audio.analysis import FrequencyTap
from audio.frames import CaptureFrame
from audio.pcm import encode_pcm16
from constants import CAPTURE_WINDOW_SAMPLES
from observability.logger import log_component


class MicrophoneSource(Protocol):
    def start(self, on_block: Callable[[np.ndarray], None]) -> None: ...
    def stop(self) -> None: ...


class OutboundAudio(Protocol):
    def transport_ready(self) -> bool: ...
    def send_audio(self, chunk: bytes) -> None: ...


class WindowAligner:
    """Rechunk float32 blocks to exact fixed-size windows without loss."""

    def __init__(self, window_samples: int = CAPTURE_WINDOW_SAMPLES) -> None:
        if window_samples <= 0:
            raise ValueError("window_samples must be > 0")
        self._window = window_samples
        self._buffer = np.zeros(0, dtype=np.float32)

    def add(self, block: np.ndarray) -> list[np.ndarray]:
        """Add samples and return every complete window, oldest first."""
        samples = np.asarray(block, dtype=np.float32).reshape(-1)
        if samples.size == 0:
            return []
        self._buffer = np.concatenate((self._buffer, samples))

        windows: list[np.ndarray] = []
        while self._buffer.size >= self._window:
            windows.append(self._buffer[: self._window].copy())
            self._buffer = self._buffer[self._window:]
        return windows

    def pending(self) -> int:
        return int(self._buffer.size)

    def clear(self) -> None:
        self._buffer = np.zeros(0, dtype=np.float32)


class CapturePipeline:
    """
    One pipeline per runtime; start() rebinds it to a session's devices.

    start()/stop() are idempotent.
    """

    def __init__(
        self,
        *,
        tap: FrequencyTap | None = None,
        window_samples: int = CAPTURE_WINDOW_SAMPLES,
    ) -> None:
        self._tap = tap
        self._aligner = WindowAligner(window_samples)
        self._source: MicrophoneSource | None = None
        self._sink: OutboundAudio | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._session_id: str | None = None

        # Bumped on every start/stop so blocks queued for an old run are dropped
        self._generation = 0

        self._next_seq = 0
        self.windows_seen = 0
        self.windows_sent = 0
        self.windows_dropped = 0

    @property
    def running(self) -> bool:
        return self._source is not None

    def start(
        self,
        source: MicrophoneSource,
        sink: OutboundAudio,
        *,
        session_id: str | None = None,
    ) -> None:
        if self._source is source and self._sink is sink:
            return
        self.stop()

        self._loop = asyncio.get_running_loop()
        self._source = source
        self._sink = sink
        self._session_id = session_id
        self._generation += 1
        self._aligner.clear()

        generation = self._generation
        source.start(lambda block: self._from_device(generation, block))

        log_component("capture", "capture_started", session_id=session_id)

    def stop(self) -> None:
        if self._source is None:
            return

        source = self._source
        self._generation += 1
        self._source = None
        self._sink = None
        self._aligner.clear()
        source.stop()

        log_component(
            "capture",
            "capture_stopped",
            session_id=self._session_id,
            **self.snapshot(),
        )

    # ------------------------------------------------------------------
    # Audio thread -> event loop
    # ------------------------------------------------------------------

    def _from_device(self, generation: int, block: np.ndarray) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        # Device buffers are reused by the driver; copy before crossing threads
        loop.call_soon_threadsafe(self._on_block, generation, np.array(block, copy=True))

    def _on_block(self, generation: int, block: np.ndarray) -> None:
        if generation != self._generation:
            return
        for window in self._aligner.add(block):
            self._on_window(window)

    def _on_window(self, window: np.ndarray) -> None:
        frame = CaptureFrame(
            sequence_num=self._next_seq,
            samples=window,
            ts_ms=int(time.time() * 1000),
        )
        self._next_seq += 1
        self.windows_seen += 1

        if self._tap is not None:
            self._tap.observe(frame.samples)

        sink = self._sink
        if sink is None or not sink.transport_ready():
            self.windows_dropped += 1
            return

        sink.send_audio(encode_pcm16(frame.samples))
        self.windows_sent += 1

    def snapshot(self) -> dict[str, int]:
        """
        Lightweight snapshot for logging / metrics.
        """
        return {
            "windows_seen": self.windows_seen,
            "windows_sent": self.windows_sent,
            "windows_dropped": self.windows_dropped,
            "last_sequence_num": self._next_seq - 1,
        }
