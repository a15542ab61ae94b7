"""
BEHAVIOR-AS-CONSTANTS
---------------------
Single source of truth for all behavioral invariants of the live session
pipeline.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

# =============================================================================
# Capture audio (mic -> service): float32 mono @ 16kHz, 4096-sample windows
# =============================================================================

CAPTURE_SAMPLE_RATE_HZ: Final[int] = 16_000
CAPTURE_CHANNELS: Final[int] = 1
CAPTURE_WINDOW_SAMPLES: Final[int] = 4096
CAPTURE_WINDOW_DURATION_S: Final[float] = CAPTURE_WINDOW_SAMPLES / CAPTURE_SAMPLE_RATE_HZ

CAPTURE_MIME_TYPE: Final[str] = f"audio/pcm;rate={CAPTURE_SAMPLE_RATE_HZ}"

# =============================================================================
# PCM16 wire encoding
# =============================================================================

PCM_SAMPLE_WIDTH_BYTES: Final[int] = 2
PCM_ENCODE_SCALE: Final[float] = 32767.0
PCM_DECODE_SCALE: Final[float] = 32768.0

# =============================================================================
# Playback audio (service -> speaker): PCM16 mono @ 24kHz
# =============================================================================

PLAYBACK_SOURCE_SAMPLE_RATE_HZ: Final[int] = 24_000
PLAYBACK_OUTPUT_SAMPLE_RATE_HZ: Final[int] = 24_000
PLAYBACK_CHANNELS: Final[int] = 1

# Backlog is never bounded; crossing this only emits a log event.
PLAYBACK_BACKLOG_WARN_S: Final[float] = 10.0

# =============================================================================
# Frequency analysis tap (visualizer)
# =============================================================================

ANALYSER_FFT_SIZE: Final[int] = 256
ANALYSER_BIN_COUNT: Final[int] = ANALYSER_FFT_SIZE // 2
ANALYSER_SMOOTHING: Final[float] = 0.8
ANALYSER_MIN_DB: Final[float] = -100.0
ANALYSER_MAX_DB: Final[float] = -30.0

# =============================================================================
# Video sampling
# =============================================================================

VIDEO_SAMPLE_INTERVAL_MS: Final[int] = 1000
VIDEO_SCALE_FACTOR: Final[float] = 0.25
VIDEO_JPEG_QUALITY: Final[int] = 50
VIDEO_MIME_TYPE: Final[str] = "image/jpeg"

# =============================================================================
# Lifecycle timing
# =============================================================================

SCAN_DURATION_MS: Final[int] = 3000

# =============================================================================
# Live service session
# =============================================================================

LIVE_MODEL: Final[str] = "gemini-2.5-flash-native-audio-preview-09-2025"
LIVE_VOICE: Final[str] = "Kore"
LIVE_HOST: Final[str] = "generativelanguage.googleapis.com"
LIVE_ENDPOINT_PATH: Final[str] = (
    "/ws/google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent"
)
LIVE_SETUP_TIMEOUT_S: Final[float] = 10.0
LIVE_MAX_MESSAGE_BYTES: Final[int] = 2**24

# =============================================================================
# Captions / user-visible messages
# =============================================================================

CAPTION_DEFAULT: Final[str] = (
    "Click the microphone to ask about specs, price, battery, or weight"
)
CAPTION_INITIALIZING: Final[str] = "Initializing secure connection..."
CAPTION_SCANNING: Final[str] = "Scanning hardware..."
CAPTION_SCAN_COMPLETE: Final[str] = "Scan complete. AI is ready."

NOTICE_CREDENTIAL_MISSING: Final[str] = "API key is missing."
ERROR_MEDIA_REQUIRED: Final[str] = "Camera/Microphone access required."
ERROR_CONNECTION: Final[str] = "Connection Error"

# =============================================================================
# Hardware specs
# =============================================================================

SPECS_DOCUMENT_PATH_DEFAULT: Final[str] = "laptop_full_specs.json"

# =============================================================================
# Helper Functions
# =============================================================================

def samples_to_seconds(num_samples: int, sample_rate_hz: int) -> float:
    """
    Convert a sample count to a duration in seconds.

    Defensive behavior:
    - Non-positive input returns 0.0.
    """
    if num_samples <= 0 or sample_rate_hz <= 0:
        return 0.0
    return num_samples / sample_rate_hz


# =============================================================================
# Convenience Bundles
# =============================================================================

@dataclass(frozen=True)
class AudioFormat:
    """
    Immutable bundle describing a PCM stream format.

    This is a convenience wrapper for passing format metadata around;
    it is NOT a second source of truth.
    """
    sample_rate_hz: int
    channels: int = 1
    sample_width_bytes: int = PCM_SAMPLE_WIDTH_BYTES

    @property
    def bytes_per_second(self) -> int:
        """Return number of encoded bytes per second of audio."""
        return self.sample_rate_hz * self.channels * self.sample_width_bytes


CAPTURE_FORMAT: Final[AudioFormat] = AudioFormat(
    sample_rate_hz=CAPTURE_SAMPLE_RATE_HZ,
    channels=CAPTURE_CHANNELS,
)
PLAYBACK_FORMAT: Final[AudioFormat] = AudioFormat(
    sample_rate_hz=PLAYBACK_SOURCE_SAMPLE_RATE_HZ,
    channels=PLAYBACK_CHANNELS,
)
