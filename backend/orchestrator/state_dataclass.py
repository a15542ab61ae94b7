"""
Authoritative lifecycle state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
"""
from __future__ import annotations

from dataclasses import dataclass

from constants import CAPTION_DEFAULT, SCAN_DURATION_MS
from hardware.specs import HardwareSpecs
from orchestrator.enums.phase import Phase


@dataclass(frozen=True)
class LifecycleState:
    """Immutable snapshot of all lifecycle-owned state."""

    # ------------------------------------------------------------------
    # Control state
    # ------------------------------------------------------------------
    phase: Phase = Phase.IDLE

    # None whenever no Session exists
    session_id: str | None = None

    # ------------------------------------------------------------------
    # Session progress
    # ------------------------------------------------------------------
    media_acquired: bool = False
    transport_open: bool = False

    # ------------------------------------------------------------------
    # Business data
    # ------------------------------------------------------------------
    specs: HardwareSpecs | None = None

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------
    caption: str = CAPTION_DEFAULT

    # Inline, non-phase-changing message (e.g. missing credential)
    notice: str | None = None

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------
    # Non-empty iff phase is ERROR
    last_error: str | None = None

    # ------------------------------------------------------------------
    # Timing
    # ------------------------------------------------------------------
    scan_duration_ms: int = SCAN_DURATION_MS
