"""
Local media device backends.

- SoundDeviceMicrophone: float32 mono input stream; blocks are delivered
  from the PortAudio thread to a registered callback.
- SoundDeviceOutput: output stream that doubles as the playback clock.
  Buffers are placed at absolute times on that clock and mixed in the
  PortAudio callback.
- CameraSource: OpenCV capture; frames are read in a worker thread.

MediaDevices.acquire() opens all three or none.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from typing import Any, Callable

import cv2
import numpy as np
import sounddevice as sd

from audio.pcm import PlayableBuffer
from constants import (
    CAPTURE_CHANNELS,
    CAPTURE_SAMPLE_RATE_HZ,
    CAPTURE_WINDOW_SAMPLES,
    PLAYBACK_CHANNELS,
    PLAYBACK_OUTPUT_SAMPLE_RATE_HZ,
)
from media.errors import MediaAcquisitionError
from observability.logger import log_component


# ---------------------------------------------------------------------
# Microphone
# ---------------------------------------------------------------------

class SoundDeviceMicrophone:
    """PortAudio input stream at the capture rate."""

    def __init__(
        self,
        *,
        device: int | None = None,
        sample_rate: int = CAPTURE_SAMPLE_RATE_HZ,
        blocksize: int = CAPTURE_WINDOW_SAMPLES,
    ) -> None:
        self._device = device
        self._sample_rate = sample_rate
        self._blocksize = blocksize
        self._stream: sd.InputStream | None = None
        self._on_block: Callable[[np.ndarray], None] | None = None
        self.overflows = 0

    def open(self) -> None:
        try:
            self._stream = sd.InputStream(
                samplerate=self._sample_rate,
                channels=CAPTURE_CHANNELS,
                dtype="float32",
                blocksize=self._blocksize,
                device=self._device,
                callback=self._callback,
            )
        except (sd.PortAudioError, ValueError) as e:
            raise MediaAcquisitionError(f"microphone unavailable: {e}") from e

    def start(self, on_block: Callable[[np.ndarray], None]) -> None:
        if self._stream is None:
            raise MediaAcquisitionError("microphone not open")
        self._on_block = on_block
        self._stream.start()

    def stop(self) -> None:
        self._on_block = None
        if self._stream is not None and self._stream.active:
            self._stream.stop()

    def close(self) -> None:
        self.stop()
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    def _callback(self, indata: np.ndarray, frames: int, time_info: Any, status: sd.CallbackFlags) -> None:
        # PortAudio thread
        if status and status.input_overflow:
            self.overflows += 1
        on_block = self._on_block
        if on_block is not None:
            on_block(indata[:, 0])


# ---------------------------------------------------------------------
# Speaker + output clock
# ---------------------------------------------------------------------

class SoundDeviceOutput:
    """
    Output stream whose rendered frame count is the playback clock.

    The mixer list is shared with the PortAudio thread and guarded by a
    threading.Lock. Segments are (start_frame, samples) in start order.
    """

    def __init__(
        self,
        *,
        device: int | None = None,
        sample_rate: int = PLAYBACK_OUTPUT_SAMPLE_RATE_HZ,
    ) -> None:
        self._device = device
        self._sample_rate = sample_rate
        self._stream: sd.OutputStream | None = None
        self._lock = threading.Lock()
        self._segments: list[tuple[int, np.ndarray]] = []
        self._frames_rendered = 0
        self.underflows = 0

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    def open(self) -> None:
        try:
            stream = sd.OutputStream(
                samplerate=self._sample_rate,
                channels=PLAYBACK_CHANNELS,
                dtype="float32",
                device=self._device,
                callback=self._callback,
            )
        except (sd.PortAudioError, ValueError) as e:
            raise MediaAcquisitionError(f"speaker unavailable: {e}") from e

        try:
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            stream.close()
            raise MediaAcquisitionError(f"speaker failed to start: {e}") from e
        self._stream = stream

    def close(self) -> None:
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None
        with self._lock:
            self._segments.clear()

    def current_time(self) -> float:
        with self._lock:
            return self._frames_rendered / self._sample_rate

    def play_at(self, start_s: float, buffer: PlayableBuffer) -> None:
        start_frame = int(round(start_s * self._sample_rate))
        samples = buffer.mono().astype(np.float32, copy=False)
        if samples.size == 0:
            return
        with self._lock:
            self._segments.append((start_frame, samples))

    def _callback(self, outdata: np.ndarray, frames: int, time_info: Any, status: sd.CallbackFlags) -> None:
        # PortAudio thread
        if status and status.output_underflow:
            self.underflows += 1

        mix = np.zeros(frames, dtype=np.float32)
        with self._lock:
            block_start = self._frames_rendered
            block_end = block_start + frames
            remaining: list[tuple[int, np.ndarray]] = []
            for start_frame, samples in self._segments:
                seg_end = start_frame + samples.size
                if seg_end <= block_start:
                    continue
                if start_frame < block_end:
                    lo = max(start_frame, block_start)
                    hi = min(seg_end, block_end)
                    mix[lo - block_start:hi - block_start] += samples[lo - start_frame:hi - start_frame]
                remaining.append((start_frame, samples))
            self._segments = [seg for seg in remaining if seg[0] + seg[1].size > block_end]
            self._frames_rendered = block_end

        outdata[:, 0] = np.clip(mix, -1.0, 1.0)


# ---------------------------------------------------------------------
# Camera
# ---------------------------------------------------------------------

class CameraSource:
    """OpenCV camera; read_frame() never blocks the event loop."""

    def __init__(self, *, index: int = 0) -> None:
        self._index = index
        self._capture: cv2.VideoCapture | None = None

    def open(self) -> None:
        capture = cv2.VideoCapture(self._index)
        if not capture.isOpened():
            capture.release()
            raise MediaAcquisitionError(f"camera {self._index} unavailable")
        capture.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        self._capture = capture

    async def read_frame(self) -> np.ndarray | None:
        return await asyncio.to_thread(self._read)

    def _read(self) -> np.ndarray | None:
        capture = self._capture
        if capture is None:
            return None
        ok, frame = capture.read()
        return frame if ok else None

    def close(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None


# ---------------------------------------------------------------------
# Acquisition
# ---------------------------------------------------------------------

@dataclass
class AcquiredMedia:
    microphone: SoundDeviceMicrophone
    output: SoundDeviceOutput
    camera: CameraSource

    def release(self) -> None:
        self.microphone.close()
        self.output.close()
        self.camera.close()


class MediaDevices:
    """Opens microphone, speaker and camera together."""

    def __init__(
        self,
        *,
        input_device: int | None = None,
        output_device: int | None = None,
        camera_index: int = 0,
    ) -> None:
        self._input_device = input_device
        self._output_device = output_device
        self._camera_index = camera_index

    async def acquire(self) -> AcquiredMedia:
        """
        Raises:
            MediaAcquisitionError if any device cannot be opened;
            devices opened before the failure are closed again.
        """
        return await asyncio.to_thread(self._acquire_blocking)

    def _acquire_blocking(self) -> AcquiredMedia:
        microphone = SoundDeviceMicrophone(device=self._input_device)
        output = SoundDeviceOutput(device=self._output_device)
        camera = CameraSource(index=self._camera_index)

        opened: list[Any] = []
        try:
            for device in (microphone, output, camera):
                device.open()
                opened.append(device)
        except MediaAcquisitionError as e:
            for device in reversed(opened):
                device.close()
            log_component("media", "media_acquire_failed", error=str(e))
            raise

        log_component(
            "media",
            "media_acquired",
            input_device=self._input_device,
            output_device=self._output_device,
            camera_index=self._camera_index,
        )
        return AcquiredMedia(microphone=microphone, output=output, camera=camera)
