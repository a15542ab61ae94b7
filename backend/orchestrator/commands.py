"""
Side-effect command definitions for the lifecycle reducer.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
- Reducer logic remains pure and deterministic.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from orchestrator.events import EventType

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging, replay,
    and runtime dispatch.
    """

    # Media devices
    ACQUIRE_MEDIA = "ACQUIRE_MEDIA"
    RELEASE_MEDIA = "RELEASE_MEDIA"

    # Capture / video
    START_CAPTURE = "START_CAPTURE"
    STOP_CAPTURE = "STOP_CAPTURE"
    START_VIDEO_SAMPLER = "START_VIDEO_SAMPLER"
    STOP_VIDEO_SAMPLER = "STOP_VIDEO_SAMPLER"

    # Session transport
    CONNECT_TRANSPORT = "CONNECT_TRANSPORT"
    SEND_TEXT = "SEND_TEXT"
    CLOSE_TRANSPORT = "CLOSE_TRANSPORT"
    INVALIDATE_TRANSPORT = "INVALIDATE_TRANSPORT"

    # Playback
    PLAY_AUDIO = "PLAY_AUDIO"

    # Timers
    START_TIMER = "START_TIMER"
    CANCEL_TIMER = "CANCEL_TIMER"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Media Commands
# =============================================================================

@dataclass(frozen=True)
class AcquireMedia(Command):
    """
    Open microphone, camera and speaker for a session.

    The runtime must answer with exactly one MediaAcquired or
    MediaAcquireFailed carrying the same session_id.
    """
    session_id: str
    command_type: CommandType = CommandType.ACQUIRE_MEDIA


@dataclass(frozen=True)
class ReleaseMedia(Command):
    session_id: str
    command_type: CommandType = CommandType.RELEASE_MEDIA


# =============================================================================
# Capture / Video Commands
# =============================================================================

@dataclass(frozen=True)
class StartCapture(Command):
    session_id: str
    command_type: CommandType = CommandType.START_CAPTURE


@dataclass(frozen=True)
class StopCapture(Command):
    command_type: CommandType = CommandType.STOP_CAPTURE


@dataclass(frozen=True)
class StartVideoSampler(Command):
    """Start (or restart) the periodic still sampler."""
    session_id: str
    command_type: CommandType = CommandType.START_VIDEO_SAMPLER


@dataclass(frozen=True)
class StopVideoSampler(Command):
    command_type: CommandType = CommandType.STOP_VIDEO_SAMPLER


# =============================================================================
# Transport Commands
# =============================================================================

@dataclass(frozen=True)
class ConnectTransport(Command):
    """
    Open the live session.

    The credential is read from the Session object, not carried here.
    """
    session_id: str
    command_type: CommandType = CommandType.CONNECT_TRANSPORT


@dataclass(frozen=True)
class SendText(Command):
    session_id: str
    text: str
    command_type: CommandType = CommandType.SEND_TEXT


@dataclass(frozen=True)
class CloseTransport(Command):
    """Graceful local close (user stop)."""
    session_id: str
    command_type: CommandType = CommandType.CLOSE_TRANSPORT


@dataclass(frozen=True)
class InvalidateTransport(Command):
    """Drop the handle: no further sends, no further events."""
    session_id: str
    reason: str
    command_type: CommandType = CommandType.INVALIDATE_TRANSPORT


# =============================================================================
# Playback Commands
# =============================================================================

@dataclass(frozen=True)
class PlayAudio(Command):
    """Hand one inbound PCM16 chunk to the session's playback scheduler."""
    session_id: str
    data: bytes
    command_type: CommandType = CommandType.PLAY_AUDIO


# =============================================================================
# Timer Commands
# =============================================================================

@dataclass(frozen=True)
class StartTimer(Command):
    """
    Request to start a named timer.

    On expiration, the runtime must inject the specified timeout event.
    """
    timer_id: str
    duration_ms: int
    timeout_event_type: EventType
    command_type: CommandType = CommandType.START_TIMER


@dataclass(frozen=True)
class CancelTimer(Command):
    """Request to cancel a previously scheduled timer."""
    timer_id: str
    command_type: CommandType = CommandType.CANCEL_TIMER


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
