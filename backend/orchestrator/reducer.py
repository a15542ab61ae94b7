"""
Pure lifecycle reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (phase, event) pair is handled or explicitly ignored (logged).
"""

# Reducer owns timer semantics; runtime must not cancel timers implicitly.

from __future__ import annotations

from dataclasses import replace
from typing import Any

from constants import (
    CAPTION_DEFAULT,
    CAPTION_INITIALIZING,
    CAPTION_SCAN_COMPLETE,
    CAPTION_SCANNING,
    ERROR_CONNECTION,
    ERROR_MEDIA_REQUIRED,
    NOTICE_CREDENTIAL_MISSING,
)
from hardware.specs import hardware_summary_text
from orchestrator.commands import (
    AcquireMedia,
    CancelTimer,
    CloseTransport,
    Command,
    ConnectTransport,
    InvalidateTransport,
    LogEvent,
    PlayAudio,
    ReleaseMedia,
    SendText,
    StartCapture,
    StartTimer,
    StartVideoSampler,
    StopCapture,
    StopVideoSampler,
)
from orchestrator.enums.phase import Phase
from orchestrator.events import (
    AudioChunkReceived,
    Event,
    EventType,
    MediaAcquired,
    MediaAcquireFailed,
    MicInteractionOpened,
    PromptSubmitted,
    ScanComplete,
    SessionEvent,
    StartRequested,
    StopRequested,
    TransportClosed,
    TransportError,
    TransportOpened,
)
from orchestrator.state_dataclass import LifecycleState


# =============================================================================
# Timer IDs
# =============================================================================

TIMER_SCAN = "hardware_scan"


# Phases in which the live transport is expected to be open
_STREAMING_PHASES = frozenset({Phase.SCANNING, Phase.DASHBOARD, Phase.ACTIVE})


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: LifecycleState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "phase": state.phase.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "session_id": state.session_id,
            "transport_open": state.transport_open,
            "details": details or {},
        }
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []
    phase_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "phase_changed":
                phase_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + phase_change_logs)


def _phase_changed(
    old: LifecycleState, new: LifecycleState, event: Event, source: str
) -> LogEvent:
    return _log(
        new,
        event,
        "phase_changed",
        {
            "from_phase": old.phase.value,
            "to_phase": new.phase.value,
            "source": source,
        },
    )


def _ignore(
    state: LifecycleState, event: Event, reason: str
) -> tuple[LifecycleState, tuple[Command, ...]]:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


def _is_stale(state: LifecycleState, event: SessionEvent) -> bool:
    return state.session_id is None or event.session_id != state.session_id


def _teardown(state: LifecycleState, *, graceful: bool, reason: str) -> tuple[Command, ...]:
    """
    Side effects for leaving a session (to IDLE, ERROR, or a superseding start).

    Order: stop producers first, then the transport, then the devices.
    """
    if state.session_id is None:
        return ()

    session_id = state.session_id
    transport: Command
    if graceful:
        transport = CloseTransport(session_id=session_id)
    else:
        transport = InvalidateTransport(session_id=session_id, reason=reason)

    return (
        CancelTimer(timer_id=TIMER_SCAN),
        StopVideoSampler(),
        StopCapture(),
        transport,
        ReleaseMedia(session_id=session_id),
    )


def _enter_error(
    state: LifecycleState, event: Event, message: str, reason: str
) -> tuple[LifecycleState, tuple[Command, ...]]:
    new_state = replace(
        state,
        phase=Phase.ERROR,
        last_error=message,
        transport_open=False,
        media_acquired=False,
    )
    return new_state, _logs_last(
        _teardown(state, graceful=False, reason=reason)
        + (
            _phase_changed(state, new_state, event, "enter_error"),
            _log(new_state, event, "enter_error", {"message": message, "reason": reason}),
        )
    )


def _enter_idle(
    state: LifecycleState, event: Event, *, graceful: bool, source: str, reason: str
) -> tuple[LifecycleState, tuple[Command, ...]]:
    new_state = replace(
        state,
        phase=Phase.IDLE,
        session_id=None,
        media_acquired=False,
        transport_open=False,
        caption=CAPTION_DEFAULT,
    )
    return new_state, _logs_last(
        _teardown(state, graceful=graceful, reason=reason)
        + (
            _phase_changed(state, new_state, event, source),
            _log(state, event, source, {"reason": reason}),
        )
    )


# =============================================================================
# Reducer
# =============================================================================

def reduce(
    state: LifecycleState, event: Event
) -> tuple[LifecycleState, tuple[Command, ...]]:
    """
    Pure reducer for the application lifecycle.

    Given the current lifecycle state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (phase, event) pair is handled or explicitly ignored
    - Session-safe: ignores events carrying a stale session id
    """
    # ------------------------------------------------------------------
    # ERROR gating: terminal until the runtime is rebuilt
    # ------------------------------------------------------------------
    if state.phase is Phase.ERROR:
        return _ignore(state, event, "in_error_phase")

    # ------------------------------------------------------------------
    # User start
    # ------------------------------------------------------------------
    if isinstance(event, StartRequested):
        credential = (event.credential or "").strip()
        if not credential:
            new_state = replace(state, notice=NOTICE_CREDENTIAL_MISSING)
            return new_state, (_log(new_state, event, "credential_missing"),)

        # A new start supersedes any prior session
        superseded = _teardown(state, graceful=False, reason="superseded")

        new_state = replace(
            state,
            phase=Phase.INITIALIZING,
            session_id=event.session_id,
            media_acquired=False,
            transport_open=False,
            specs=None,
            caption=CAPTION_INITIALIZING,
            notice=None,
            last_error=None,
        )
        return new_state, _logs_last(
            superseded
            + (
                AcquireMedia(session_id=event.session_id),
                _phase_changed(state, new_state, event, "start_requested"),
                _log(
                    new_state,
                    event,
                    "session_starting",
                    {"superseded_session_id": state.session_id},
                ),
            )
        )

    # ------------------------------------------------------------------
    # User stop
    # ------------------------------------------------------------------
    if isinstance(event, StopRequested):
        if state.phase is Phase.IDLE:
            return _ignore(state, event, "already_idle")
        return _enter_idle(
            state, event, graceful=True, source="stop_requested", reason="user_stop"
        )

    # ------------------------------------------------------------------
    # Presentation actions
    # ------------------------------------------------------------------
    if isinstance(event, MicInteractionOpened):
        if state.phase is Phase.DASHBOARD:
            new_state = replace(state, phase=Phase.ACTIVE)
            return new_state, _logs_last((
                _phase_changed(state, new_state, event, "mic_interaction_opened"),
            ))
        return _ignore(state, event, "mic_interaction_requires_dashboard")

    if isinstance(event, PromptSubmitted):
        if state.phase not in (Phase.DASHBOARD, Phase.ACTIVE):
            return _ignore(state, event, "prompt_requires_dashboard_or_active")
        text = event.text.strip()
        if not text:
            return _ignore(state, event, "empty_prompt")
        assert state.session_id is not None
        new_state = replace(state, caption=f"Asking about: {text}...")
        return new_state, (
            SendText(session_id=state.session_id, text=text),
            _log(new_state, event, "prompt_sent", {"text_len": len(text)}),
        )

    # ------------------------------------------------------------------
    # Everything below is session-scoped
    # ------------------------------------------------------------------
    if not isinstance(event, SessionEvent):
        return _ignore(state, event, "unhandled_event")

    if _is_stale(state, event):
        return _ignore(state, event, "stale_session")

    # ------------------------------------------------------------------
    # Media acquisition
    # ------------------------------------------------------------------
    if isinstance(event, MediaAcquired):
        if state.phase is not Phase.INITIALIZING:
            return _ignore(state, event, "media_acquired_outside_initializing")
        new_state = replace(state, media_acquired=True)
        return new_state, (
            ConnectTransport(session_id=event.session_id),
            _log(new_state, event, "media_acquired"),
        )

    if isinstance(event, MediaAcquireFailed):
        if state.phase is not Phase.INITIALIZING:
            return _ignore(state, event, "media_failure_outside_initializing")
        return _enter_error(state, event, ERROR_MEDIA_REQUIRED, event.reason)

    # ------------------------------------------------------------------
    # Transport lifecycle
    # ------------------------------------------------------------------
    if isinstance(event, TransportOpened):
        if state.phase is not Phase.INITIALIZING:
            return _ignore(state, event, "transport_opened_outside_initializing")
        new_state = replace(
            state,
            phase=Phase.SCANNING,
            transport_open=True,
            caption=CAPTION_SCANNING,
        )
        return new_state, _logs_last((
            StartCapture(session_id=event.session_id),
            StartVideoSampler(session_id=event.session_id),
            StartTimer(
                timer_id=TIMER_SCAN,
                duration_ms=state.scan_duration_ms,
                timeout_event_type=EventType.SCAN_COMPLETE,
            ),
            _phase_changed(state, new_state, event, "transport_opened"),
        ))

    if isinstance(event, TransportError):
        if state.phase is Phase.IDLE:
            return _ignore(state, event, "transport_error_while_idle")
        return _enter_error(state, event, ERROR_CONNECTION, event.reason)

    if isinstance(event, TransportClosed):
        if state.phase is Phase.IDLE:
            return _ignore(state, event, "transport_closed_while_idle")
        return _enter_idle(
            state,
            event,
            graceful=False,
            source="transport_closed",
            reason=event.reason or "remote_close",
        )

    # ------------------------------------------------------------------
    # Inbound audio (data plane; not logged per chunk)
    # ------------------------------------------------------------------
    if isinstance(event, AudioChunkReceived):
        if not state.transport_open or state.phase not in _STREAMING_PHASES:
            return _ignore(state, event, "audio_without_open_transport")
        return state, (PlayAudio(session_id=event.session_id, data=event.data),)

    # ------------------------------------------------------------------
    # Scan timer
    # ------------------------------------------------------------------
    if isinstance(event, ScanComplete):
        if state.phase is not Phase.SCANNING:
            return _ignore(state, event, "scan_complete_outside_scanning")
        new_state = replace(
            state,
            phase=Phase.DASHBOARD,
            specs=event.specs,
            caption=CAPTION_SCAN_COMPLETE,
        )
        return new_state, _logs_last((
            SendText(
                session_id=event.session_id,
                text=hardware_summary_text(event.specs),
            ),
            _phase_changed(state, new_state, event, "scan_complete"),
            _log(new_state, event, "specs_recorded", {"model_name": event.specs.model_name}),
        ))

    return _ignore(state, event, "unhandled_event")
