"""
Unified event definitions for the lifecycle reducer.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Events raised by session-scoped sources (devices, transport, timers)
carry session_id so the reducer can drop stale deliveries.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from hardware.specs import HardwareSpecs


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (phase, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------
    START_REQUESTED = "START_REQUESTED"
    STOP_REQUESTED = "STOP_REQUESTED"
    MIC_INTERACTION_OPENED = "MIC_INTERACTION_OPENED"
    PROMPT_SUBMITTED = "PROMPT_SUBMITTED"

    # ------------------------------------------------------------------
    # Media devices
    # ------------------------------------------------------------------
    MEDIA_ACQUIRED = "MEDIA_ACQUIRED"
    MEDIA_ACQUIRE_FAILED = "MEDIA_ACQUIRE_FAILED"

    # ------------------------------------------------------------------
    # Session transport
    # ------------------------------------------------------------------
    TRANSPORT_OPENED = "TRANSPORT_OPENED"
    TRANSPORT_CLOSED = "TRANSPORT_CLOSED"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    AUDIO_CHUNK_RECEIVED = "AUDIO_CHUNK_RECEIVED"

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    SCAN_COMPLETE = "SCAN_COMPLETE"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


@dataclass(frozen=True)
class SessionEvent(Event):
    """
    Base class for events scoped to one Session.

    The reducer MUST ignore events whose session_id does not match the
    current session.
    """

    session_id: str


# =============================================================================
# User Actions
# =============================================================================

@dataclass(frozen=True)
class StartRequested(SessionEvent):
    """
    User asked to start. session_id is the id the new Session will use.
    """
    credential: str | None = None


@dataclass(frozen=True)
class StopRequested(Event):
    """User asked to end the current session."""


@dataclass(frozen=True)
class MicInteractionOpened(Event):
    """User opened the microphone interaction panel (presentation only)."""


@dataclass(frozen=True)
class PromptSubmitted(Event):
    """User submitted a text question for the live model."""
    text: str


# =============================================================================
# Media Devices
# =============================================================================

@dataclass(frozen=True)
class MediaAcquired(SessionEvent):
    """Microphone, camera and speaker are open."""


@dataclass(frozen=True)
class MediaAcquireFailed(SessionEvent):
    """Device acquisition was denied or a device is unavailable."""
    reason: str


# =============================================================================
# Session Transport
# =============================================================================

@dataclass(frozen=True)
class TransportOpened(SessionEvent):
    """Setup acknowledged by the service; the handle accepts sends."""


@dataclass(frozen=True)
class TransportClosed(SessionEvent):
    """Remote ended the session."""
    reason: str | None = None


@dataclass(frozen=True)
class TransportError(SessionEvent):
    """Unrecoverable transport fault."""
    reason: str


@dataclass(frozen=True)
class AudioChunkReceived(SessionEvent):
    """
    One decodable audio payload from a server message.

    data is raw PCM16 (base64 already removed by the transport).
    """
    data: bytes


# =============================================================================
# Timers
# =============================================================================

@dataclass(frozen=True)
class ScanComplete(SessionEvent):
    """
    Scan delay elapsed.

    Constructed by the runtime at timer expiry with a fresh specs snapshot.
    """
    specs: HardwareSpecs
