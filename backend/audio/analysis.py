"""
Frequency analysis tap for the visualizer.

Mirrors what a browser analyser node reports: the most recent
ANALYSER_FFT_SIZE samples are Blackman-windowed, transformed, smoothed
over time and mapped from [min_db, max_db] onto 0..255 byte levels.

Observation only: the tap never modifies the audio it is fed.
"""

from __future__ import annotations

import numpy as np

from constants import (
    ANALYSER_BIN_COUNT,
    ANALYSER_FFT_SIZE,
    ANALYSER_MAX_DB,
    ANALYSER_MIN_DB,
    ANALYSER_SMOOTHING,
)


class FrequencyTap:
    """
    Rolling spectrum analyser over a mono float32 stream.

    observe() may be called with blocks of any length; only the latest
    fft_size samples contribute to the next spectrum.
    """

    def __init__(
        self,
        *,
        fft_size: int = ANALYSER_FFT_SIZE,
        smoothing: float = ANALYSER_SMOOTHING,
        min_db: float = ANALYSER_MIN_DB,
        max_db: float = ANALYSER_MAX_DB,
    ) -> None:
        if fft_size <= 0 or fft_size % 2 != 0:
            raise ValueError("fft_size must be a positive even number")
        if not 0.0 <= smoothing < 1.0:
            raise ValueError("smoothing must be in [0, 1)")
        if max_db <= min_db:
            raise ValueError("max_db must be greater than min_db")

        self._fft_size = fft_size
        self._smoothing = smoothing
        self._min_db = min_db
        self._max_db = max_db
        self._window = np.blackman(fft_size).astype(np.float32)
        self._ring = np.zeros(fft_size, dtype=np.float32)
        self._smoothed = np.zeros(fft_size // 2, dtype=np.float64)

    @property
    def bin_count(self) -> int:
        return self._fft_size // 2

    def observe(self, samples: np.ndarray) -> None:
        block = np.asarray(samples, dtype=np.float32).reshape(-1)
        if block.size == 0:
            return

        if block.size >= self._fft_size:
            self._ring[:] = block[-self._fft_size:]
        else:
            self._ring = np.roll(self._ring, -block.size)
            self._ring[-block.size:] = block

        spectrum = np.fft.rfft(self._ring * self._window)[: self.bin_count]
        magnitude = np.abs(spectrum) / self._fft_size
        self._smoothed = (
            self._smoothing * self._smoothed + (1.0 - self._smoothing) * magnitude
        )

    def byte_frequency_data(self) -> list[int]:
        """Return bin_count levels in 0..255 for the current spectrum."""
        with np.errstate(divide="ignore"):
            db = 20.0 * np.log10(self._smoothed)
        scaled = (db - self._min_db) * (255.0 / (self._max_db - self._min_db))
        scaled = np.nan_to_num(scaled, nan=0.0, neginf=0.0, posinf=255.0)
        return np.clip(np.floor(scaled), 0, 255).astype(np.uint8).tolist()

    def reset(self) -> None:
        self._ring.fill(0.0)
        self._smoothed.fill(0.0)


def silent_levels() -> list[int]:
    return [0] * ANALYSER_BIN_COUNT
