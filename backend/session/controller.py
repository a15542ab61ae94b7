"""
Session controller.

Responsibilities:
- Owns the Runtime and its execution context
- Creates a Session container per start request
- Translates user actions into lifecycle events
- Exposes read-only snapshots (phase, caption, specs, levels)

NOT responsible for:
- Lifecycle decisions (reducer)
- Executing side effects (runtime)
- HTTP concerns (server.routes)
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from audio.analysis import FrequencyTap, silent_levels
from audio.capture import CapturePipeline
from hardware.specs import HardwareSpecsSource
from observability.logger import log_event
from orchestrator.enums.phase import Phase
from orchestrator.events import (
    EventType,
    MicInteractionOpened,
    PromptSubmitted,
    StartRequested,
    StopRequested,
)
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import (
    MediaDevicesProtocol,
    RuntimeExecutionContext,
    SpecsSourceProtocol,
    TransportProtocol,
)
from orchestrator.state_dataclass import LifecycleState
from prompts import SYSTEM_INSTRUCTION_V1, SYSTEM_INSTRUCTION_VERSION
from protocol.live import LiveSessionConfig
from session.session import Session
from transport.live import LiveTransport
from video.sampler import VideoSampler

if TYPE_CHECKING:
    from config import AppConfig


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


def _default_devices(config: AppConfig) -> MediaDevicesProtocol:
    # PortAudio is loaded on import; keep it off the import path of the app
    from media.devices import MediaDevices  # pylint: disable=import-outside-toplevel

    return MediaDevices(
        input_device=config.input_device,
        output_device=config.output_device,
        camera_index=config.camera_index,
    )


_STREAMING_PHASES = (Phase.SCANNING, Phase.DASHBOARD, Phase.ACTIVE)


# ------------------------------------------------------------------
# SessionController
# ------------------------------------------------------------------

class SessionController:
    """
    One controller per process; at most one live Session at a time.

    Collaborators are injectable so tests can run without devices or
    network.
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        devices: MediaDevicesProtocol | None = None,
        transport: TransportProtocol | None = None,
        specs_source: SpecsSourceProtocol | None = None,
        capture: CapturePipeline | None = None,
        sampler: VideoSampler | None = None,
    ) -> None:
        self._config = config
        self._devices = devices
        self._transport = transport or LiveTransport(host=config.live_host)
        self._specs_source = specs_source or HardwareSpecsSource(
            document_path=config.specs_path,
            gpu_hint=config.gpu_hint,
            resolution_hint=config.resolution_hint,
        )
        self._capture = capture
        self._sampler = sampler
        self._live_config = LiveSessionConfig(
            model=config.live_model,
            voice=config.live_voice,
            system_instruction=SYSTEM_INSTRUCTION_V1,
        )
        self.runtime = self._build_runtime()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def _build_runtime(self) -> Runtime:
        if self._devices is None:
            self._devices = _default_devices(self._config)

        input_tap = FrequencyTap()
        output_tap = FrequencyTap()

        capture = self._capture or CapturePipeline(tap=input_tap)
        sampler = self._sampler or VideoSampler(interval_ms=self._config.video_interval_ms)

        context = RuntimeExecutionContext(
            devices=self._devices,
            transport=self._transport,
            capture=capture,
            sampler=sampler,
            specs_source=self._specs_source,
            live_config=self._live_config,
            input_tap=input_tap,
            output_tap=output_tap,
        )
        return Runtime(
            initial_state=LifecycleState(scan_duration_ms=self._config.scan_duration_ms),
            context=context,
        )

    @property
    def state(self) -> LifecycleState:
        return self.runtime.state

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def start(self, credential: str | None = None) -> str | None:
        """
        Begin a new session.

        The credential falls back to the configured key. Returns the new
        session id, or None if the request was not adopted (e.g. the
        credential is missing).
        """
        if credential is None or not credential.strip():
            credential = self._config.api_key
        session_id = _new_session_id()

        context = self.runtime.context
        context.register(Session(session_id=session_id, credential=(credential or "").strip()))

        await self.runtime.handle_event(
            StartRequested(
                event_type=EventType.START_REQUESTED,
                ts_ms=_now_ms(),
                session_id=session_id,
                credential=credential,
            )
        )

        if self.runtime.state.session_id != session_id:
            context.discard_session(session_id)
            return None

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "session_created",
            "session_id": session_id,
            "system_instruction_version": SYSTEM_INSTRUCTION_VERSION,
            "model": self._live_config.model,
        })
        return session_id

    async def stop(self) -> None:
        await self.runtime.handle_event(
            StopRequested(event_type=EventType.STOP_REQUESTED, ts_ms=_now_ms())
        )

    async def open_mic(self) -> None:
        await self.runtime.handle_event(
            MicInteractionOpened(event_type=EventType.MIC_INTERACTION_OPENED, ts_ms=_now_ms())
        )

    async def send_prompt(self, text: str) -> None:
        await self.runtime.handle_event(
            PromptSubmitted(event_type=EventType.PROMPT_SUBMITTED, ts_ms=_now_ms(), text=text)
        )

    async def restart(self) -> None:
        """
        Leave ERROR (or any phase) by rebuilding the runtime from scratch.

        Every device and transport of the old runtime is released first.
        """
        previous = self.runtime.state
        await self.runtime.shutdown()
        self.runtime = self._build_runtime()
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "runtime_restarted",
            "from_phase": previous.phase.value,
            "session_id": previous.session_id,
        })

    async def shutdown(self) -> None:
        await self.runtime.shutdown()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        state = self.runtime.state
        return {
            "phase": state.phase.value,
            "caption": state.caption,
            "specs": state.specs.to_dict() if state.specs is not None else None,
            "error": state.last_error,
            "notice": state.notice,
            "session_id": state.session_id,
            "connection_status": self.runtime.context.connection_status(state.session_id).value,
        }

    def levels(self) -> dict[str, list[int]]:
        """
        Frequency levels for the input and output visualizers.

        Outside a streaming phase both report silence.
        """
        if self.runtime.state.phase not in _STREAMING_PHASES:
            return {"input": silent_levels(), "output": silent_levels()}
        context = self.runtime.context
        return {
            "input": context.input_tap.byte_frequency_data(),
            "output": context.output_tap.byte_frequency_data(),
        }
