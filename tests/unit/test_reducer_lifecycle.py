# pylint: disable=missing-module-docstring,missing-function-docstring

from dataclasses import replace

from constants import (
    CAPTION_DEFAULT,
    CAPTION_INITIALIZING,
    CAPTION_SCAN_COMPLETE,
    CAPTION_SCANNING,
    ERROR_CONNECTION,
    ERROR_MEDIA_REQUIRED,
    NOTICE_CREDENTIAL_MISSING,
)
from hardware.specs import HardwareSpecs
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
    EventType,
    MediaAcquired,
    MediaAcquireFailed,
    MicInteractionOpened,
    PromptSubmitted,
    ScanComplete,
    StartRequested,
    StopRequested,
    TransportClosed,
    TransportError,
    TransportOpened,
)
from orchestrator.reducer import TIMER_SCAN, reduce
from orchestrator.state_dataclass import LifecycleState

SID = "sess_a"

SPECS = HardwareSpecs(
    model_name="Gaming Laptop",
    os="Windows",
    processor="8 Cores",
    ram="16 GB+",
    gpu="NVIDIA GeForce RTX 3060",
    resolution="1920x1080",
    runtime="Python 3.12 / Windows",
)


def _non_logs(commands: tuple[Command, ...]) -> list[Command]:
    return [c for c in commands if not isinstance(c, LogEvent)]


def _decisions(commands: tuple[Command, ...]) -> list[str]:
    return [c.event["decision"] for c in commands if isinstance(c, LogEvent)]


def _start(session_id: str = SID, credential: str | None = "key") -> StartRequested:
    return StartRequested(
        event_type=EventType.START_REQUESTED, ts_ms=1, session_id=session_id, credential=credential
    )


def _opened(session_id: str = SID) -> TransportOpened:
    return TransportOpened(event_type=EventType.TRANSPORT_OPENED, ts_ms=3, session_id=session_id)


def _state(phase: Phase, **kwargs) -> LifecycleState:
    transport_open = phase in (Phase.SCANNING, Phase.DASHBOARD, Phase.ACTIVE)
    return LifecycleState(
        phase=phase,
        session_id=SID,
        media_acquired=phase is not Phase.INITIALIZING,
        transport_open=transport_open,
        **kwargs,
    )


def _teardown_sequence(commands: tuple[Command, ...]) -> list[type]:
    return [type(c) for c in _non_logs(commands)]


# ---------------------------------------------------------------------
# Start
# ---------------------------------------------------------------------

def test_start_from_idle_acquires_media() -> None:
    state, commands = reduce(LifecycleState(), _start())

    assert state.phase is Phase.INITIALIZING
    assert state.session_id == SID
    assert state.caption == CAPTION_INITIALIZING
    assert _non_logs(commands) == [AcquireMedia(session_id=SID)]
    assert "phase_changed" in _decisions(commands)


def test_blank_credential_sets_notice_and_stays_idle() -> None:
    for credential in (None, "", "   "):
        state, commands = reduce(LifecycleState(), _start(credential=credential))

        assert state.phase is Phase.IDLE
        assert state.session_id is None
        assert state.notice == NOTICE_CREDENTIAL_MISSING
        assert _non_logs(commands) == []


def test_successful_start_clears_notice() -> None:
    state = LifecycleState(notice=NOTICE_CREDENTIAL_MISSING)

    state, _ = reduce(state, _start())

    assert state.notice is None


def test_start_while_active_supersedes_previous_session() -> None:
    state, commands = reduce(_state(Phase.ACTIVE, specs=SPECS), _start(session_id="sess_b"))

    assert state.phase is Phase.INITIALIZING
    assert state.session_id == "sess_b"
    assert state.specs is None
    assert _teardown_sequence(commands) == [
        CancelTimer,
        StopVideoSampler,
        StopCapture,
        InvalidateTransport,
        ReleaseMedia,
        AcquireMedia,
    ]
    released = [c for c in commands if isinstance(c, ReleaseMedia)]
    assert released[0].session_id == SID


# ---------------------------------------------------------------------
# Media
# ---------------------------------------------------------------------

def test_media_acquired_connects_transport() -> None:
    state, commands = reduce(
        _state(Phase.INITIALIZING),
        MediaAcquired(event_type=EventType.MEDIA_ACQUIRED, ts_ms=2, session_id=SID),
    )

    assert state.phase is Phase.INITIALIZING
    assert state.media_acquired
    assert _non_logs(commands) == [ConnectTransport(session_id=SID)]


def test_media_denied_enters_error() -> None:
    state, commands = reduce(
        _state(Phase.INITIALIZING),
        MediaAcquireFailed(
            event_type=EventType.MEDIA_ACQUIRE_FAILED, ts_ms=2, session_id=SID, reason="denied"
        ),
    )

    assert state.phase is Phase.ERROR
    assert state.last_error == ERROR_MEDIA_REQUIRED
    assert InvalidateTransport in _teardown_sequence(commands)
    assert ReleaseMedia in _teardown_sequence(commands)


# ---------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------

def test_transport_opened_starts_scan() -> None:
    state, commands = reduce(_state(Phase.INITIALIZING), _opened())

    assert state.phase is Phase.SCANNING
    assert state.transport_open
    assert state.caption == CAPTION_SCANNING
    assert _non_logs(commands) == [
        StartCapture(session_id=SID),
        StartVideoSampler(session_id=SID),
        StartTimer(
            timer_id=TIMER_SCAN,
            duration_ms=state.scan_duration_ms,
            timeout_event_type=EventType.SCAN_COMPLETE,
        ),
    ]


def test_scan_complete_records_specs_and_announces_them() -> None:
    state, commands = reduce(
        _state(Phase.SCANNING),
        ScanComplete(event_type=EventType.SCAN_COMPLETE, ts_ms=4, session_id=SID, specs=SPECS),
    )

    assert state.phase is Phase.DASHBOARD
    assert state.specs == SPECS
    assert state.caption == CAPTION_SCAN_COMPLETE
    sends = [c for c in commands if isinstance(c, SendText)]
    assert len(sends) == 1
    assert sends[0].text.startswith("SYSTEM SCAN COMPLETE. Detected Specs: {")
    assert "RTX 3060" in sends[0].text


def test_scan_complete_outside_scanning_is_ignored() -> None:
    state = _state(Phase.DASHBOARD, specs=SPECS)

    new_state, commands = reduce(
        state,
        ScanComplete(event_type=EventType.SCAN_COMPLETE, ts_ms=4, session_id=SID, specs=SPECS),
    )

    assert new_state == state
    assert _decisions(commands) == ["ignore"]


def test_transport_error_enters_error_from_any_session_phase() -> None:
    for phase in (Phase.INITIALIZING, Phase.SCANNING, Phase.DASHBOARD, Phase.ACTIVE):
        state, commands = reduce(
            _state(phase),
            TransportError(event_type=EventType.TRANSPORT_ERROR, ts_ms=5, session_id=SID, reason="x"),
        )

        assert state.phase is Phase.ERROR
        assert state.last_error == ERROR_CONNECTION
        assert not state.transport_open
        assert _teardown_sequence(commands) == [
            CancelTimer,
            StopVideoSampler,
            StopCapture,
            InvalidateTransport,
            ReleaseMedia,
        ]


def test_remote_close_returns_to_idle() -> None:
    state, commands = reduce(
        _state(Phase.DASHBOARD, specs=SPECS),
        TransportClosed(event_type=EventType.TRANSPORT_CLOSED, ts_ms=5, session_id=SID),
    )

    assert state.phase is Phase.IDLE
    assert state.session_id is None
    assert state.caption == CAPTION_DEFAULT
    assert ReleaseMedia in _teardown_sequence(commands)


def test_stale_session_events_are_ignored() -> None:
    state = _state(Phase.SCANNING)

    for event in (
        _opened(session_id="sess_old"),
        TransportError(
            event_type=EventType.TRANSPORT_ERROR, ts_ms=5, session_id="sess_old", reason="x"
        ),
        AudioChunkReceived(
            event_type=EventType.AUDIO_CHUNK_RECEIVED, ts_ms=5, session_id="sess_old", data=b"\0\0"
        ),
    ):
        new_state, commands = reduce(state, event)
        assert new_state == state
        assert _non_logs(commands) == []
        assert commands[0].event["details"]["reason"] == "stale_session"


# ---------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------

def test_audio_is_played_while_transport_open() -> None:
    event = AudioChunkReceived(
        event_type=EventType.AUDIO_CHUNK_RECEIVED, ts_ms=6, session_id=SID, data=b"\x01\x00"
    )
    for phase in (Phase.SCANNING, Phase.DASHBOARD, Phase.ACTIVE):
        state = _state(phase)

        new_state, commands = reduce(state, event)

        assert new_state == state
        assert commands == (PlayAudio(session_id=SID, data=b"\x01\x00"),)


def test_audio_before_open_is_ignored() -> None:
    event = AudioChunkReceived(
        event_type=EventType.AUDIO_CHUNK_RECEIVED, ts_ms=6, session_id=SID, data=b"\x01\x00"
    )

    _, commands = reduce(_state(Phase.INITIALIZING), event)

    assert _non_logs(commands) == []


# ---------------------------------------------------------------------
# Presentation actions
# ---------------------------------------------------------------------

def test_mic_interaction_moves_dashboard_to_active() -> None:
    event = MicInteractionOpened(event_type=EventType.MIC_INTERACTION_OPENED, ts_ms=7)

    state, commands = reduce(_state(Phase.DASHBOARD, specs=SPECS), event)

    assert state.phase is Phase.ACTIVE
    assert state.specs == SPECS
    assert _non_logs(commands) == []

    same, _ = reduce(_state(Phase.SCANNING), event)
    assert same.phase is Phase.SCANNING


def test_prompt_is_sent_only_after_scan() -> None:
    event = PromptSubmitted(event_type=EventType.PROMPT_SUBMITTED, ts_ms=8, text="  battery?  ")

    state, commands = reduce(_state(Phase.ACTIVE), event)

    assert _non_logs(commands) == [SendText(session_id=SID, text="battery?")]
    assert state.caption == "Asking about: battery?..."

    _, early = reduce(_state(Phase.SCANNING), event)
    assert _non_logs(early) == []

    _, empty = reduce(
        _state(Phase.ACTIVE),
        PromptSubmitted(event_type=EventType.PROMPT_SUBMITTED, ts_ms=8, text="   "),
    )
    assert _non_logs(empty) == []


# ---------------------------------------------------------------------
# Stop / ERROR
# ---------------------------------------------------------------------

def test_stop_closes_gracefully_in_teardown_order() -> None:
    state, commands = reduce(
        _state(Phase.ACTIVE, specs=SPECS),
        StopRequested(event_type=EventType.STOP_REQUESTED, ts_ms=9),
    )

    assert state.phase is Phase.IDLE
    assert state.session_id is None
    assert not state.media_acquired
    assert _non_logs(commands) == [
        CancelTimer(timer_id=TIMER_SCAN),
        StopVideoSampler(),
        StopCapture(),
        CloseTransport(session_id=SID),
        ReleaseMedia(session_id=SID),
    ]
    # Phase change is always the last log
    assert _decisions(commands)[-1] == "phase_changed"


def test_stop_while_idle_is_ignored() -> None:
    state, commands = reduce(
        LifecycleState(), StopRequested(event_type=EventType.STOP_REQUESTED, ts_ms=9)
    )

    assert state == LifecycleState()
    assert _decisions(commands) == ["ignore"]


def test_error_phase_ignores_everything() -> None:
    state = replace(_state(Phase.ERROR), last_error=ERROR_CONNECTION, transport_open=False)

    for event in (
        _start(session_id="sess_b"),
        StopRequested(event_type=EventType.STOP_REQUESTED, ts_ms=9),
        _opened(),
    ):
        new_state, commands = reduce(state, event)
        assert new_state == state
        assert _non_logs(commands) == []


def test_log_payload_has_required_fields() -> None:
    _, commands = reduce(LifecycleState(), _start())

    payload = next(c for c in commands if isinstance(c, LogEvent)).event

    for key in ("ts_ms", "phase", "event_type", "decision", "session_id", "transport_open", "details"):
        assert key in payload


# ---------------------------------------------------------------------
# Totality
# ---------------------------------------------------------------------

def _one_of_each_event() -> dict[EventType, object]:
    return {
        EventType.START_REQUESTED: _start(session_id="sess_b"),
        EventType.STOP_REQUESTED: StopRequested(event_type=EventType.STOP_REQUESTED, ts_ms=9),
        EventType.MIC_INTERACTION_OPENED: MicInteractionOpened(
            event_type=EventType.MIC_INTERACTION_OPENED, ts_ms=9
        ),
        EventType.PROMPT_SUBMITTED: PromptSubmitted(
            event_type=EventType.PROMPT_SUBMITTED, ts_ms=9, text="Is this fast?"
        ),
        EventType.MEDIA_ACQUIRED: MediaAcquired(
            event_type=EventType.MEDIA_ACQUIRED, ts_ms=9, session_id=SID
        ),
        EventType.MEDIA_ACQUIRE_FAILED: MediaAcquireFailed(
            event_type=EventType.MEDIA_ACQUIRE_FAILED, ts_ms=9, session_id=SID, reason="denied"
        ),
        EventType.TRANSPORT_OPENED: _opened(),
        EventType.TRANSPORT_CLOSED: TransportClosed(
            event_type=EventType.TRANSPORT_CLOSED, ts_ms=9, session_id=SID
        ),
        EventType.TRANSPORT_ERROR: TransportError(
            event_type=EventType.TRANSPORT_ERROR, ts_ms=9, session_id=SID, reason="reset"
        ),
        EventType.AUDIO_CHUNK_RECEIVED: AudioChunkReceived(
            event_type=EventType.AUDIO_CHUNK_RECEIVED, ts_ms=9, session_id=SID, data=b"\x00\x00"
        ),
        EventType.SCAN_COMPLETE: ScanComplete(
            event_type=EventType.SCAN_COMPLETE, ts_ms=9, session_id=SID, specs=SPECS
        ),
    }


_SESSION_PHASES = {Phase.INITIALIZING, Phase.SCANNING, Phase.DASHBOARD, Phase.ACTIVE}

_DEFINED = {
    EventType.START_REQUESTED: _SESSION_PHASES | {Phase.IDLE},
    EventType.STOP_REQUESTED: _SESSION_PHASES,
    EventType.MIC_INTERACTION_OPENED: {Phase.DASHBOARD},
    EventType.PROMPT_SUBMITTED: {Phase.DASHBOARD, Phase.ACTIVE},
    EventType.MEDIA_ACQUIRED: {Phase.INITIALIZING},
    EventType.MEDIA_ACQUIRE_FAILED: {Phase.INITIALIZING},
    EventType.TRANSPORT_OPENED: {Phase.INITIALIZING},
    EventType.TRANSPORT_CLOSED: _SESSION_PHASES,
    EventType.TRANSPORT_ERROR: _SESSION_PHASES,
    EventType.AUDIO_CHUNK_RECEIVED: {Phase.SCANNING, Phase.DASHBOARD, Phase.ACTIVE},
    EventType.SCAN_COMPLETE: {Phase.SCANNING},
}


def _realistic_state(phase: Phase) -> LifecycleState:
    if phase is Phase.IDLE:
        return LifecycleState()
    if phase is Phase.ERROR:
        return replace(_state(Phase.ERROR), last_error=ERROR_CONNECTION, transport_open=False)
    return _state(phase)


def test_every_phase_and_event_pair_is_handled() -> None:
    events = _one_of_each_event()
    assert set(events) == set(EventType)

    for phase in Phase:
        state = _realistic_state(phase)
        for event_type, event in events.items():
            new_state, commands = reduce(state, event)

            assert isinstance(new_state.phase, Phase)
            assert all(isinstance(c, Command) for c in commands)

            if phase in _DEFINED[event_type]:
                continue

            # Undefined pairs only log
            assert new_state == state, (phase, event_type)
            assert _non_logs(commands) == [], (phase, event_type)
            assert _decisions(commands) == ["ignore"], (phase, event_type)
