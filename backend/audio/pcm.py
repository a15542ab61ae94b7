"""
PCM conversion utilities.

Wire format on both directions of the live session is signed 16-bit
little-endian PCM, carried as base64 text inside JSON messages.

Pure functions only. No device access, no timing, no shared state.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from math import gcd
from typing import Sequence

import numpy as np
from scipy import signal

from constants import PCM_DECODE_SCALE, PCM_ENCODE_SCALE, PCM_SAMPLE_WIDTH_BYTES


class DecodeError(ValueError):
    """Raised when inbound audio bytes or base64 text cannot be decoded."""


@dataclass(frozen=True)
class PlayableBuffer:
    """
    Decoded audio ready to be handed to an output sink.

    samples:
        float32 array shaped (frames, channels), values in [-1.0, 1.0).
    """
    samples: np.ndarray
    sample_rate: int
    channels: int

    @property
    def frames(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration_s(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.frames / self.sample_rate

    def mono(self) -> np.ndarray:
        """Return a 1-D mix of all channels (used by analysis taps)."""
        if self.channels == 1:
            return self.samples[:, 0]
        return self.samples.mean(axis=1).astype(np.float32)


def encode_pcm16(samples: Sequence[float] | np.ndarray) -> bytes:
    """
    Convert float samples to PCM16 little-endian bytes.

    Each sample is clamped to [-1.0, 1.0], scaled by 32767 and rounded.
    Total over its input: out-of-range values clip, never raise.
    """
    audio = np.asarray(samples, dtype=np.float64).reshape(-1)
    if audio.size == 0:
        return b""

    # NaN has no meaningful amplitude; treat as silence.
    audio = np.nan_to_num(audio, nan=0.0, posinf=1.0, neginf=-1.0)
    clipped = np.clip(audio, -1.0, 1.0)
    audio_i16 = np.rint(clipped * PCM_ENCODE_SCALE).astype("<i2")
    return audio_i16.tobytes()


def pcm16le_to_float32(pcm_bytes: bytes) -> np.ndarray:
    """
    Convert PCM16 little-endian mono bytes to float32 in [-1.0, 1.0).

    No resampling. No channel mixing.

    Raises:
        DecodeError if the byte count is not a whole number of samples.
    """
    if len(pcm_bytes) % PCM_SAMPLE_WIDTH_BYTES != 0:
        raise DecodeError(f"truncated PCM16 sample: {len(pcm_bytes)} bytes")

    audio_i16 = np.frombuffer(pcm_bytes, dtype="<i2")  # little-endian int16
    return audio_i16.astype(np.float32) / PCM_DECODE_SCALE


def decode_pcm16(
    data: bytes,
    source_rate: int,
    target_rate: int,
    channels: int = 1,
) -> PlayableBuffer:
    """
    Decode interleaved PCM16 bytes into a PlayableBuffer at target_rate.

    Raises:
        DecodeError if data is not a whole number of interleaved frames,
        or if the rates/channel count are not positive.
    """
    if channels <= 0 or source_rate <= 0 or target_rate <= 0:
        raise DecodeError(
            f"invalid format: channels={channels} "
            f"source_rate={source_rate} target_rate={target_rate}"
        )

    frame_width = PCM_SAMPLE_WIDTH_BYTES * channels
    if len(data) % frame_width != 0:
        raise DecodeError(
            f"byte length {len(data)} is not a multiple of frame width {frame_width}"
        )

    flat = pcm16le_to_float32(data)
    samples = flat.reshape(-1, channels)

    if source_rate != target_rate and samples.shape[0] > 0:
        divisor = gcd(source_rate, target_rate)
        up = target_rate // divisor
        down = source_rate // divisor
        samples = signal.resample_poly(samples, up, down, axis=0)
        samples = np.clip(samples, -1.0, 1.0).astype(np.float32)

    return PlayableBuffer(
        samples=np.ascontiguousarray(samples, dtype=np.float32),
        sample_rate=target_rate,
        channels=channels,
    )


# -----------------------------------------------------------------------------
# Base64 transport helpers
# -----------------------------------------------------------------------------

def bytes_to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def base64_to_bytes(text: str) -> bytes:
    """
    Strict base64 decode.

    Raises:
        DecodeError on malformed input.
    """
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise DecodeError(f"malformed base64 payload: {e}") from e
