"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No orchestration logic
- No protocol constants
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    LIVE_HOST,
    LIVE_MODEL,
    LIVE_VOICE,
    SCAN_DURATION_MS,
    SPECS_DOCUMENT_PATH_DEFAULT,
    VIDEO_SAMPLE_INTERVAL_MS,
)


def _optional_int(name: str) -> int | None:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    return int(raw)


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the session controller and its collaborators.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"

    # ------------------------------------------------------------------
    # Live service
    # ------------------------------------------------------------------

    api_key: str | None = None
    live_model: str = LIVE_MODEL
    live_voice: str = LIVE_VOICE
    live_host: str = LIVE_HOST

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    input_device: int | None = None
    output_device: int | None = None
    camera_index: int = 0

    # ------------------------------------------------------------------
    # Lifecycle / sampling
    # ------------------------------------------------------------------

    scan_duration_ms: int = SCAN_DURATION_MS
    video_interval_ms: int = VIDEO_SAMPLE_INTERVAL_MS

    # ------------------------------------------------------------------
    # Hardware specs
    # ------------------------------------------------------------------

    specs_path: str = SPECS_DOCUMENT_PATH_DEFAULT
    gpu_hint: str | None = None
    resolution_hint: str | None = None

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool = True

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        The API credential is optional here: a missing key is surfaced
        to the user when a session is started, not at process startup.

        Raises:
            ValueError if a numeric variable is malformed.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),

            api_key=os.environ.get("API_KEY") or os.environ.get("GEMINI_API_KEY"),
            live_model=os.environ.get("LIVE_MODEL", LIVE_MODEL),
            live_voice=os.environ.get("LIVE_VOICE", LIVE_VOICE),
            live_host=os.environ.get("LIVE_HOST", LIVE_HOST),

            input_device=_optional_int("INPUT_DEVICE"),
            output_device=_optional_int("OUTPUT_DEVICE"),
            camera_index=int(os.environ.get("CAMERA_INDEX", "0")),

            scan_duration_ms=int(os.environ.get("SCAN_DURATION_MS", str(SCAN_DURATION_MS))),
            video_interval_ms=int(
                os.environ.get("VIDEO_INTERVAL_MS", str(VIDEO_SAMPLE_INTERVAL_MS))
            ),

            specs_path=os.environ.get("SPECS_PATH", SPECS_DOCUMENT_PATH_DEFAULT),
            gpu_hint=os.environ.get("LIVE_GPU_HINT"),
            resolution_hint=os.environ.get("LIVE_RESOLUTION_HINT"),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",
        )
