"""
Runtime execution context.

Provides Runtime with live access to the imperative resources needed for
command execution and side effects (devices, transport, pipelines, the
session registry).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero lifecycle state
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Protocol, runtime_checkable

from audio.analysis import FrequencyTap
from audio.playback import OutputClock, PlaybackScheduler
from protocol.live import LiveSessionConfig
from session.connection_status import ConnectionStatus

if TYPE_CHECKING:
    from audio.capture import CapturePipeline
    from hardware.specs import HardwareSpecs
    from orchestrator.events import Event
    from session.session import Session
    from video.sampler import VideoSampler


# ---------------------------------------------------------------------
# Capability Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class AcquiredMediaProtocol(Protocol):
    """Open devices for one session. release() closes all of them."""

    microphone: Any
    output: OutputClock
    camera: Any

    def release(self) -> None: ...


@runtime_checkable
class MediaDevicesProtocol(Protocol):
    async def acquire(self) -> AcquiredMediaProtocol:
        """
        Open microphone, speaker and camera together.

        Must raise MediaAcquisitionError on denial or unavailability.
        """


@runtime_checkable
class TransportHandleProtocol(Protocol):
    @property
    def is_open(self) -> bool: ...
    def send_audio(self, chunk: bytes) -> None: ...
    def send_video_frame(self, jpeg: bytes) -> None: ...
    def send_text(self, text: str) -> None: ...
    def close(self) -> None: ...
    def invalidate(self, reason: str) -> None: ...


@runtime_checkable
class TransportProtocol(Protocol):
    async def connect(
        self,
        *,
        session_id: str,
        api_key: str,
        config: LiveSessionConfig,
        emit_event: Callable[[Event], Awaitable[None]],
    ) -> TransportHandleProtocol: ...


@runtime_checkable
class SpecsSourceProtocol(Protocol):
    def collect(self) -> HardwareSpecs: ...


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

class RuntimeExecutionContext:
    """
    Imperative execution context for Runtime.

    Runtime is allowed to:
    - Call devices, transport and pipelines
    - Register and discard Session containers
    - Observe connection state

    Runtime is NOT allowed to:
    - Store lifecycle decisions here
    """

    def __init__(
        self,
        *,
        devices: MediaDevicesProtocol,
        transport: TransportProtocol,
        capture: CapturePipeline,
        sampler: VideoSampler,
        specs_source: SpecsSourceProtocol,
        live_config: LiveSessionConfig,
        input_tap: FrequencyTap,
        output_tap: FrequencyTap,
    ) -> None:
        self.devices = devices
        self.transport = transport
        self.capture = capture
        self.sampler = sampler
        self.specs_source = specs_source
        self.live_config = live_config
        self.input_tap = input_tap
        self.output_tap = output_tap

        self._sessions: dict[str, Session] = {}

    # ----------------------------
    # Session registry
    # ----------------------------

    def register(self, session: Session) -> None:
        self._sessions[session.session_id] = session

    def session_for(self, session_id: str | None) -> Session | None:
        if session_id is None:
            return None
        return self._sessions.get(session_id)

    def discard_session(self, session_id: str) -> Session | None:
        return self._sessions.pop(session_id, None)

    def sessions(self) -> list[Session]:
        return list(self._sessions.values())

    # ----------------------------
    # Playback
    # ----------------------------

    def build_scheduler(self, output: OutputClock, session_id: str) -> PlaybackScheduler:
        """Fresh scheduler per session; the cursor never carries over."""
        return PlaybackScheduler(output=output, tap=self.output_tap, session_id=session_id)

    # ----------------------------
    # Observability
    # ----------------------------

    def connection_status(self, session_id: str | None) -> ConnectionStatus:
        session = self.session_for(session_id)
        if session is None:
            return ConnectionStatus.DOWN
        return session.connection_status
