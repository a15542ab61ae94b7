"""
Live session transport over a raw WebSocket.

Core model (IMPORTANT):
- One handle per Session. A handle is never reused after close/invalidate.
- Outbound sends are fire-and-forget. They are serialized onto the socket
  in call order by a single sender task draining a FIFO.
- Sends before the service acknowledges setup are dropped (counted).
  Sends after close/error/invalidation are no-ops (counted).
- Inbound events are delivered through one ordered channel: an asyncio
  queue drained by a single dispatcher task that awaits emit_event for
  one event at a time. The socket task never calls emit_event directly.
- Terminal events (TransportClosed / TransportError) are mutually
  exclusive and emitted at most once.
- A malformed inbound message is logged and skipped; it never tears the
  session down.

Design constraints:
- Transport must not call the reducer directly.
- Transport must not know about lifecycle phases.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Coroutine

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedError,
    ConnectionClosedOK,
    WebSocketException,
)

from constants import (
    CAPTURE_MIME_TYPE,
    LIVE_HOST,
    LIVE_MAX_MESSAGE_BYTES,
    LIVE_SETUP_TIMEOUT_S,
    VIDEO_MIME_TYPE,
)
from observability.logger import log_component
from orchestrator.events import (
    AudioChunkReceived,
    Event,
    EventType,
    TransportClosed,
    TransportError,
    TransportOpened,
)
from protocol.live import (
    LiveProtocolError,
    LiveSessionConfig,
    MalformedMessage,
    build_endpoint_url,
    build_setup_message,
    encode_media_chunk,
    encode_text_input,
    expect_setup_complete,
    parse_server_message,
)


EmitEvent = Callable[[Event], Coroutine[Any, Any, None]]


def _now_ms() -> int:
    return int(time.time() * 1000)


class LiveSessionHandle:
    """
    Handle for one live session.

    Public interface:
    - send_audio(chunk) / send_video_frame(jpeg) / send_text(text)
    - close(): graceful local close, flushes already-queued sends
    - invalidate(reason): drop immediately
    - is_open: True between setup acknowledgement and termination
    """

    def __init__(
        self,
        *,
        session_id: str,
        url: str,
        config: LiveSessionConfig,
        emit_event: EmitEvent,
        connector: Callable[..., Any] = ws_connect,
        setup_timeout_s: float = LIVE_SETUP_TIMEOUT_S,
    ) -> None:
        self.session_id = session_id
        self._url = url
        self._config = config
        self._emit_async = emit_event
        self._connector = connector
        self._setup_timeout_s = setup_timeout_s

        self._outbound: asyncio.Queue[str | None] = asyncio.Queue()
        self._events: asyncio.Queue[Event | None] = asyncio.Queue()

        self._run_task: asyncio.Task[None] | None = None
        self._dispatch_task: asyncio.Task[None] | None = None

        self._open = False
        # No further sends accepted
        self._stopped = False
        # No further events delivered
        self._suppressed = False
        self._terminal_emitted = False

        self.sent = 0
        self.dropped_before_open = 0
        self.dropped_after_close = 0
        self.audio_chunks_received = 0
        self.messages_skipped = 0

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        if self._run_task is not None:
            return
        self._dispatch_task = asyncio.create_task(self._dispatch())
        self._run_task = asyncio.create_task(self._run())

    @property
    def config(self) -> LiveSessionConfig:
        return self._config

    @property
    def is_open(self) -> bool:
        return self._open and not self._stopped

    def close(self) -> None:
        """
        Graceful local close.

        Already-queued sends are flushed, then the socket is closed.
        No events are delivered after this call.
        """
        if self._stopped:
            self._suppress()
            return
        was_open = self._open
        self._stopped = True
        self._open = False
        self._suppress()

        if was_open:
            self._outbound.put_nowait(None)
        else:
            self._cancel_run()
        self._log("transport_closed_locally", was_open=was_open)

    def invalidate(self, reason: str) -> None:
        """Drop the handle: no further sends, no further events."""
        already_stopped = self._stopped
        self._stopped = True
        self._open = False
        self._suppress()
        self._cancel_run()
        if not already_stopped:
            self._log("transport_invalidated", reason=reason)

    async def wait_closed(self) -> None:
        tasks = [t for t in (self._run_task, self._dispatch_task) if t is not None]
        current = asyncio.current_task()
        tasks = [t for t in tasks if t is not current]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # -------------------------------------------------------------------------
    # Outbound
    # -------------------------------------------------------------------------

    def send_audio(self, chunk: bytes) -> None:
        self._enqueue(lambda: encode_media_chunk(chunk, mime_type=CAPTURE_MIME_TYPE))

    def send_video_frame(self, jpeg: bytes) -> None:
        self._enqueue(lambda: encode_media_chunk(jpeg, mime_type=VIDEO_MIME_TYPE))

    def send_text(self, text: str) -> None:
        self._enqueue(lambda: encode_text_input(text))

    def _enqueue(self, build: Callable[[], str]) -> None:
        if self._stopped:
            self.dropped_after_close += 1
            return
        if not self._open:
            self.dropped_before_open += 1
            return
        self._outbound.put_nowait(build())

    async def _send_loop(self, ws: Any) -> None:
        while True:
            payload = await self._outbound.get()
            if payload is None:
                await ws.close()
                return
            try:
                await ws.send(payload)
            except ConnectionClosed:
                # Receive loop reports the close
                return
            except (OSError, WebSocketException) as e:
                self._terminate(
                    TransportError(
                        event_type=EventType.TRANSPORT_ERROR,
                        ts_ms=_now_ms(),
                        session_id=self.session_id,
                        reason=f"send_failed: {e}",
                    )
                )
                self._cancel_run()
                return
            self.sent += 1

    # -------------------------------------------------------------------------
    # Connection / inbound
    # -------------------------------------------------------------------------

    async def _run(self) -> None:
        try:
            async with self._connector(self._url, max_size=LIVE_MAX_MESSAGE_BYTES) as ws:
                await ws.send(build_setup_message(self._config))
                raw = await asyncio.wait_for(ws.recv(), timeout=self._setup_timeout_s)
                expect_setup_complete(raw)
                if self._stopped:
                    return

                self._open = True
                self._log("transport_opened", model=self._config.model, voice=self._config.voice)
                self._emit(
                    TransportOpened(
                        event_type=EventType.TRANSPORT_OPENED,
                        ts_ms=_now_ms(),
                        session_id=self.session_id,
                    )
                )

                sender = asyncio.create_task(self._send_loop(ws))
                try:
                    async for message in ws:
                        self._handle_message(message)
                finally:
                    if not sender.done():
                        sender.cancel()
                    await asyncio.gather(sender, return_exceptions=True)

            self._terminate(self._closed_event("remote_close"))

        except asyncio.TimeoutError:
            self._terminate(self._error_event("setup_timeout"))
        except LiveProtocolError as e:
            self._terminate(self._error_event(f"setup_rejected: {e}"))
        except ConnectionClosedOK:
            self._terminate(self._closed_event("remote_close"))
        except ConnectionClosedError as e:
            self._terminate(self._error_event(f"abnormal_close: {e}"))
        except (OSError, WebSocketException) as e:
            self._terminate(self._error_event(f"connect_failed: {e}"))
        except Exception as e:  # pylint: disable=broad-exception-caught
            # Any other fault still ends the session with exactly one terminal event
            self._log("receive_loop_failed", exception=type(e).__name__, message=str(e))
            self._terminate(self._error_event(f"receive_failed: {e}"))

    def _handle_message(self, raw: str | bytes) -> None:
        if self._suppressed:
            return
        try:
            message = parse_server_message(raw)
        except MalformedMessage as e:
            self.messages_skipped += 1
            self._log("inbound_message_skipped", error=str(e))
            return

        if message.skipped_parts:
            self._log("inbound_parts_skipped", count=message.skipped_parts)
        if message.go_away:
            self._log("inbound_go_away")

        for chunk in message.audio_chunks:
            self.audio_chunks_received += 1
            self._emit(
                AudioChunkReceived(
                    event_type=EventType.AUDIO_CHUNK_RECEIVED,
                    ts_ms=_now_ms(),
                    session_id=self.session_id,
                    data=chunk,
                )
            )

    # -------------------------------------------------------------------------
    # Event channel
    # -------------------------------------------------------------------------

    def _emit(self, event: Event) -> None:
        if self._suppressed:
            return
        self._events.put_nowait(event)

    def _terminate(self, event: Event) -> None:
        self._open = False
        self._stopped = True
        if self._terminal_emitted or self._suppressed:
            return
        self._terminal_emitted = True
        self._log(
            "transport_terminated",
            terminal_event=event.event_type.value,
            reason=getattr(event, "reason", None),
        )
        self._emit(event)
        self._events.put_nowait(None)
        self._outbound.put_nowait(None)

    def _suppress(self) -> None:
        if self._suppressed:
            return
        self._suppressed = True
        self._events.put_nowait(None)

    async def _dispatch(self) -> None:
        while True:
            event = await self._events.get()
            if event is None:
                return
            if self._suppressed:
                continue
            try:
                await self._emit_async(event)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                self._log(
                    "event_consumer_failed",
                    failed_event=event.event_type.value,
                    exception=type(exc).__name__,
                    message=str(exc),
                )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _cancel_run(self) -> None:
        task = self._run_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _closed_event(self, reason: str) -> TransportClosed:
        return TransportClosed(
            event_type=EventType.TRANSPORT_CLOSED,
            ts_ms=_now_ms(),
            session_id=self.session_id,
            reason=reason,
        )

    def _error_event(self, reason: str) -> TransportError:
        return TransportError(
            event_type=EventType.TRANSPORT_ERROR,
            ts_ms=_now_ms(),
            session_id=self.session_id,
            reason=reason,
        )

    def _log(self, event_type: str, **details: Any) -> None:
        log_component("transport", event_type, session_id=self.session_id, **details)


class LiveTransport:
    """Factory for LiveSessionHandle instances."""

    def __init__(
        self,
        *,
        host: str = LIVE_HOST,
        connector: Callable[..., Any] = ws_connect,
        setup_timeout_s: float = LIVE_SETUP_TIMEOUT_S,
    ) -> None:
        self._host = host
        self._connector = connector
        self._setup_timeout_s = setup_timeout_s

    async def connect(
        self,
        *,
        session_id: str,
        api_key: str,
        config: LiveSessionConfig,
        emit_event: EmitEvent,
    ) -> LiveSessionHandle:
        """
        Open a live session.

        Returns immediately with a started handle; TransportOpened (or a
        terminal event) is delivered later through emit_event.
        """
        handle = LiveSessionHandle(
            session_id=session_id,
            url=build_endpoint_url(self._host, api_key),
            config=config,
            emit_event=emit_event,
            connector=self._connector,
            setup_timeout_s=self._setup_timeout_s,
        )
        handle.start()
        return handle
