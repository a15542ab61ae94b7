"""
Periodic video still sampler.

Once per interval while a session is active: read the current camera
frame, scale to VIDEO_SCALE_FACTOR of its linear dimensions, JPEG-encode
at VIDEO_JPEG_QUALITY and submit it to the transport.

Exactly one sampling task is live at a time; start() cancels any
running task before creating a new one.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Protocol

import cv2
import numpy as np

from constants import VIDEO_JPEG_QUALITY, VIDEO_SAMPLE_INTERVAL_MS, VIDEO_SCALE_FACTOR
from observability.logger import log_component


class StillEncodeError(Exception):
    """Raised when a frame cannot be JPEG-encoded."""


class FrameSource(Protocol):
    async def read_frame(self) -> np.ndarray | None: ...


class StillSink(Protocol):
    def transport_ready(self) -> bool: ...
    def send_video_frame(self, jpeg: bytes) -> None: ...


def encode_still(
    frame: np.ndarray,
    scale: float = VIDEO_SCALE_FACTOR,
    quality: int = VIDEO_JPEG_QUALITY,
) -> bytes:
    """
    Downscale a BGR frame and JPEG-encode it.

    Raises:
        StillEncodeError if the frame is empty or the encoder fails.
    """
    if frame.ndim < 2 or frame.shape[0] == 0 or frame.shape[1] == 0:
        raise StillEncodeError(f"frame has no pixels: shape={frame.shape}")

    height, width = frame.shape[:2]
    target = (max(1, int(round(width * scale))), max(1, int(round(height * scale))))
    small = cv2.resize(frame, target, interpolation=cv2.INTER_AREA)

    ok, encoded = cv2.imencode(".jpg", small, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise StillEncodeError("cv2.imencode returned failure")
    return encoded.tobytes()


def _has_pixels(frame: np.ndarray | None) -> bool:
    return frame is not None and frame.ndim >= 2 and frame.shape[0] > 0 and frame.shape[1] > 0


class VideoSampler:
    """Owns at most one periodic sampling task."""

    def __init__(
        self,
        *,
        interval_ms: int = VIDEO_SAMPLE_INTERVAL_MS,
        encode: Callable[[np.ndarray], bytes] = encode_still,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be > 0")
        self._interval_s = interval_ms / 1000.0
        self._encode = encode
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None
        self._session_id: str | None = None

        self.stills_sent = 0
        self.ticks_skipped = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(
        self,
        source: FrameSource,
        sink: StillSink,
        *,
        session_id: str | None = None,
    ) -> None:
        self.stop()
        self._session_id = session_id
        self._task = asyncio.create_task(self._run(source, sink))
        log_component("video", "video_sampler_started", session_id=session_id)

    def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        if not task.done():
            task.cancel()
        log_component(
            "video",
            "video_sampler_stopped",
            session_id=self._session_id,
            stills_sent=self.stills_sent,
            ticks_skipped=self.ticks_skipped,
        )

    async def _run(self, source: FrameSource, sink: StillSink) -> None:
        while True:
            await self._sleep(self._interval_s)
            try:
                await self.tick(source, sink)
            except Exception as e:  # pylint: disable=broad-exception-caught
                # A failed read or send costs one still, not the sampler
                self.ticks_skipped += 1
                log_component(
                    "video",
                    "video_tick_failed",
                    session_id=self._session_id,
                    exception=type(e).__name__,
                    message=str(e),
                )

    async def tick(self, source: FrameSource, sink: StillSink) -> bool:
        """
        Sample once. Returns True if a still was submitted.

        Missing/empty frames and an unready transport are silent skips.
        """
        if not sink.transport_ready():
            self.ticks_skipped += 1
            return False

        frame = await source.read_frame()
        if not _has_pixels(frame):
            self.ticks_skipped += 1
            return False
        assert frame is not None

        try:
            jpeg = self._encode(frame)
        except StillEncodeError as e:
            self.ticks_skipped += 1
            log_component("video", "still_encode_failed", session_id=self._session_id, error=str(e))
            return False

        # Readiness may have changed while the frame was being read
        if not sink.transport_ready():
            self.ticks_skipped += 1
            return False

        sink.send_video_frame(jpeg)
        self.stills_sent += 1
        return True
