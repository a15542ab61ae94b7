"""
Authoritative application phase enumeration.

Rules:
- This enum defines ONLY the control-plane phases.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class Phase(str, Enum):
    """
    High-level deterministic phases of the live specs assistant.

    These phases represent user-visible lifecycle, NOT connection status
    and NOT device lifecycles.
    """

    IDLE = "IDLE"
    INITIALIZING = "INITIALIZING"
    SCANNING = "SCANNING"
    DASHBOARD = "DASHBOARD"
    ACTIVE = "ACTIVE"
    ERROR = "ERROR"
