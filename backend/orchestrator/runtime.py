"""
Runtime execution shell for the application lifecycle.

Responsibilities:
- Own lifecycle state
- Call pure reducer
- Execute commands with side effects (devices, transport, pipelines)
- Schedule and cancel timers
- Convert timer expiry into events
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from audio.pcm import DecodeError
from media.errors import MediaAcquisitionError
from observability.logger import log_event
from observability.metrics import discard_timer, start_timer, stop_timer, timed
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
from orchestrator.events import (
    Event,
    EventType,
    MediaAcquired,
    MediaAcquireFailed,
    ScanComplete,
    TransportClosed,
    TransportError,
    TransportOpened,
)
from orchestrator.reducer import reduce
from orchestrator.state_dataclass import LifecycleState

if TYPE_CHECKING:
    from orchestrator.runtime_context import RuntimeExecutionContext
    from session.session import Session


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class Runtime:
    """
    Runtime execution boundary for the application.

    Responsibilities:
    - Own the authoritative lifecycle state
    - Act as the universal event sink
      (controller actions, device results, transport events, timers)
    - Invoke the pure reducer deterministically
    - Execute emitted commands with side effects

    Guarantees:
    - Reducer is always called exactly once per incoming event
    - State transitions are serialized and deterministic
    - All side effects occur *after* state has been updated
    - Runtime never performs lifecycle decisions itself
    - Timers and background work emit events back into handle_event
    """

    def __init__(
        self,
        *,
        initial_state: LifecycleState,
        context: RuntimeExecutionContext,
    ) -> None:
        self._state = initial_state
        self._ctx = context
        self._timers: dict[str, asyncio.Task[None]] = {}
        self._tasks: set[asyncio.Task[None]] = set()

        # session_id -> metrics timer id for transport connect latency
        self._connect_timers: dict[str, str] = {}

    @property
    def state(self) -> LifecycleState:
        """
        Return the current immutable lifecycle state.

        Consumers must never modify this state directly.
        """
        return self._state

    @property
    def context(self) -> RuntimeExecutionContext:
        return self._ctx

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the lifecycle pipeline.

        Processing steps:
        1. Record transport bookkeeping (connection status, latency metric)
        2. Pass the current state and event to the pure reducer
        3. Swap in the new lifecycle state
        4. Execute all emitted commands sequentially

        This method is the *only* entry point for events affecting
        lifecycle state.
        """
        if isinstance(event, TransportOpened):
            self._on_transport_opened(event)
        elif isinstance(event, (TransportError, TransportClosed)):
            timer_id = self._connect_timers.pop(event.session_id, None)
            if timer_id is not None:
                discard_timer(timer_id)

        self._state, commands = reduce(self._state, event)

        for cmd in commands:
            await self._execute_command(cmd)

    async def shutdown(self) -> None:
        """
        Clean shutdown of runtime.

        Cancels timers and background tasks, stops the pipelines, drops
        every transport handle and releases every device.
        """
        for timer_id in list(self._timers.keys()):
            self._cancel_timer(timer_id)

        for task in list(self._tasks):
            task.cancel()

        self._ctx.sampler.stop()
        self._ctx.capture.stop()

        for session in self._ctx.sessions():
            handle = session.detach_handle()
            if handle is not None:
                handle.invalidate("shutdown")
            self._release_session_media(session)
            self._ctx.discard_session(session.session_id)

        for timer_id in self._connect_timers.values():
            discard_timer(timer_id)
        self._connect_timers.clear()

        pending = list(self._timers.values()) + list(self._tasks)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                "connection_status": self._ctx.connection_status(
                    cmd.event.get("session_id")
                ).value,
            })

        elif isinstance(cmd, AcquireMedia):
            self._spawn(self._acquire_media(cmd.session_id))

        elif isinstance(cmd, ReleaseMedia):
            session = self._ctx.discard_session(cmd.session_id)
            if session is not None:
                self._release_session_media(session)
            self._ctx.input_tap.reset()
            self._ctx.output_tap.reset()

        elif isinstance(cmd, StartCapture):
            session = self._session_with_media(cmd.session_id, cmd)
            if session is not None:
                self._ctx.capture.start(
                    session.media.microphone, session, session_id=cmd.session_id
                )

        elif isinstance(cmd, StopCapture):
            self._ctx.capture.stop()

        elif isinstance(cmd, StartVideoSampler):
            session = self._session_with_media(cmd.session_id, cmd)
            if session is not None:
                self._ctx.sampler.start(
                    session.media.camera, session, session_id=cmd.session_id
                )

        elif isinstance(cmd, StopVideoSampler):
            self._ctx.sampler.stop()

        elif isinstance(cmd, ConnectTransport):
            await self._connect_transport(cmd.session_id)

        elif isinstance(cmd, SendText):
            session = self._ctx.session_for(cmd.session_id)
            if session is None:
                self._log_missing_session(cmd)
                return
            session.send_text(cmd.text)

        elif isinstance(cmd, CloseTransport):
            session = self._ctx.session_for(cmd.session_id)
            handle = session.detach_handle() if session is not None else None
            if handle is not None:
                handle.close()

        elif isinstance(cmd, InvalidateTransport):
            timer_id = self._connect_timers.pop(cmd.session_id, None)
            if timer_id is not None:
                discard_timer(timer_id)
            session = self._ctx.session_for(cmd.session_id)
            handle = session.detach_handle() if session is not None else None
            if handle is not None:
                handle.invalidate(cmd.reason)

        elif isinstance(cmd, PlayAudio):
            self._play_audio(cmd)

        elif isinstance(cmd, StartTimer):
            self._start_timer(
                timer_id=cmd.timer_id,
                duration_ms=cmd.duration_ms,
                timeout_event_type=cmd.timeout_event_type,
            )

        elif isinstance(cmd, CancelTimer):
            self._cancel_timer(cmd.timer_id)

        else:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "COMMAND_NOT_HANDLED",
                "session_id": self._state.session_id,
                "command_type": type(cmd).__name__,
            })

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    async def _acquire_media(self, session_id: str) -> None:
        """
        Open devices in the background and report the outcome as an event.

        Devices that arrive after their session has been superseded or
        stopped are released immediately.
        """
        try:
            with timed(
                "media_acquire_latency",
                session_id=session_id,
                phase=self._state.phase.value,
            ):
                media = await self._ctx.devices.acquire()
        except MediaAcquisitionError as e:
            await self.handle_event(
                MediaAcquireFailed(
                    event_type=EventType.MEDIA_ACQUIRE_FAILED,
                    ts_ms=_now_ms(),
                    session_id=session_id,
                    reason=str(e),
                )
            )
            return

        session = self._ctx.session_for(session_id)
        if session is None or self._state.session_id != session_id:
            media.release()
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "stale_media_released",
                "session_id": session_id,
            })
            return

        session.attach_media(media, self._ctx.build_scheduler(media.output, session_id))
        await self.handle_event(
            MediaAcquired(
                event_type=EventType.MEDIA_ACQUIRED,
                ts_ms=_now_ms(),
                session_id=session_id,
            )
        )

    def _release_session_media(self, session: Session) -> None:
        media = session.detach_media()
        if media is not None:
            media.release()

    def _session_with_media(self, session_id: str, cmd: Command) -> Session | None:
        session = self._ctx.session_for(session_id)
        if session is None or session.media is None:
            self._log_missing_session(cmd)
            return None
        return session

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _connect_transport(self, session_id: str) -> None:
        session = self._ctx.session_for(session_id)
        if session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "connect_skipped_no_session",
                "session_id": session_id,
            })
            return

        self._connect_timers[session_id] = start_timer("transport_connect_latency")
        handle = await self._ctx.transport.connect(
            session_id=session_id,
            api_key=session.credential,
            config=self._ctx.live_config,
            emit_event=self.handle_event,
        )

        # The session may have been torn down while connect() was pending
        if self._ctx.session_for(session_id) is not session:
            handle.invalidate("session_ended_during_connect")
            timer_id = self._connect_timers.pop(session_id, None)
            if timer_id is not None:
                discard_timer(timer_id)
            return

        session.attach_handle(handle)
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "transport_connect_started",
            "session_id": session_id,
            "model": self._ctx.live_config.model,
        })

    def _on_transport_opened(self, event: TransportOpened) -> None:
        timer_id = self._connect_timers.pop(event.session_id, None)
        if timer_id is not None:
            stop_timer(timer_id, session_id=event.session_id, phase=self._state.phase.value)
        session = self._ctx.session_for(event.session_id)
        if session is not None:
            session.mark_open()

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def _play_audio(self, cmd: PlayAudio) -> None:
        session = self._ctx.session_for(cmd.session_id)
        scheduler = session.scheduler if session is not None else None
        if scheduler is None:
            self._log_missing_session(cmd)
            return

        try:
            scheduler.schedule(cmd.data)
        except DecodeError as e:
            # A bad chunk is dropped; the session continues
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "audio_chunk_decode_failed",
                "session_id": cmd.session_id,
                "bytes": len(cmd.data),
                "error": str(e),
            })

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _log_missing_session(self, cmd: Command) -> None:
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "command_skipped_no_session",
            "session_id": getattr(cmd, "session_id", None),
            "command_type": cmd.command_type.value,
        })

    # ------------------------------------------------------------------
    # Timer management
    # ------------------------------------------------------------------

    def _start_timer(
        self,
        *,
        timer_id: str,
        duration_ms: int,
        timeout_event_type: EventType,
    ) -> None:
        """
        Start or replace a timer that emits a timeout event.

        Timer tasks re-enter handle_event() when they expire,
        maintaining the single event entry point invariant.
        """
        self._cancel_timer(timer_id)

        async def _timer_task() -> None:
            try:
                await asyncio.sleep(duration_ms / 1000.0)
            except asyncio.CancelledError:
                # Timer was cancelled - this is normal
                return

            self._timers.pop(timer_id, None)
            event = self._construct_timeout_event(
                timer_id=timer_id,
                timeout_event_type=timeout_event_type,
            )
            await self.handle_event(event)

        self._timers[timer_id] = asyncio.create_task(_timer_task())

    def _cancel_timer(self, timer_id: str) -> None:
        """
        Cancel an in-flight timer if it exists.

        Idempotent: safe to call even if timer doesn't exist.
        """
        task = self._timers.pop(timer_id, None)
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _construct_timeout_event(
        self,
        *,
        timer_id: str,
        timeout_event_type: EventType,
    ) -> Event:
        """
        Construct the timeout event for an expired timer.

        The reducer emits timer commands with just EventType; runtime
        constructs the full event with the current session and a fresh
        hardware snapshot.
        """
        if timeout_event_type is EventType.SCAN_COMPLETE:
            return ScanComplete(
                event_type=EventType.SCAN_COMPLETE,
                ts_ms=_now_ms(),
                session_id=self._state.session_id or "",
                specs=self._ctx.specs_source.collect(),
            )

        raise ValueError(
            f"Unknown timeout event type: {timeout_event_type} "
            f"for timer_id: {timer_id}"
        )
