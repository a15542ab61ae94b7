# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import base64
import json
from typing import Any, Callable

import pytest

from orchestrator.events import (
    AudioChunkReceived,
    Event,
    TransportClosed,
    TransportError,
    TransportOpened,
)
from protocol.live import LiveSessionConfig
from transport.live import LiveSessionHandle, LiveTransport

SETUP_COMPLETE = '{"setupComplete": {}}'
_CLOSE = object()

CONFIG = LiveSessionConfig(model="gemini-x", voice="Kore", system_instruction="hi")


def _audio(*chunks: bytes) -> str:
    parts = [
        {"inlineData": {"mimeType": "audio/pcm;rate=24000", "data": base64.b64encode(c).decode()}}
        for c in chunks
    ]
    return json.dumps({"serverContent": {"modelTurn": {"parts": parts}}})


class FakeWebSocket:
    def __init__(self, *incoming: Any) -> None:
        self.sent: list[str] = []
        self.closed = False
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()
        for item in incoming:
            self._inbox.put_nowait(item)

    def push(self, item: Any) -> None:
        self._inbox.put_nowait(item)

    async def send(self, payload: str) -> None:
        self.sent.append(payload)

    async def recv(self) -> Any:
        return await self._inbox.get()

    def __aiter__(self) -> "FakeWebSocket":
        return self

    async def __anext__(self) -> Any:
        item = await self._inbox.get()
        if item is _CLOSE:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True
        self._inbox.put_nowait(_CLOSE)


class FakeConnector:
    def __init__(self, ws: FakeWebSocket | None = None, error: Exception | None = None) -> None:
        self.ws = ws
        self.error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, url: str, **kwargs: Any) -> "FakeConnector":
        self.calls.append((url, kwargs))
        return self

    async def __aenter__(self) -> FakeWebSocket:
        if self.error is not None:
            raise self.error
        assert self.ws is not None
        return self.ws

    async def __aexit__(self, *exc: Any) -> bool:
        return False


class Recorder:
    def __init__(self) -> None:
        self.events: list[Event] = []

    async def __call__(self, event: Event) -> None:
        self.events.append(event)

    def types(self) -> list[type]:
        return [type(e) for e in self.events]


async def _until(predicate: Callable[[], bool], attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


async def _connect(
    connector: FakeConnector, recorder: Recorder, **kwargs: Any
) -> LiveSessionHandle:
    transport = LiveTransport(host="example.test", connector=connector, **kwargs)
    return await transport.connect(
        session_id="sess_a", api_key="k", config=CONFIG, emit_event=recorder
    )


def test_setup_is_sent_first_and_open_precedes_audio() -> None:
    async def scenario() -> None:
        ws = FakeWebSocket(SETUP_COMPLETE, _audio(b"\x01\x00", b"\x02\x00"))
        connector, recorder = FakeConnector(ws), Recorder()

        handle = await _connect(connector, recorder)
        await _until(lambda: len(recorder.events) == 3)

        assert json.loads(ws.sent[0])["setup"]["model"] == "models/gemini-x"
        assert connector.calls[0][0].startswith("wss://example.test/")
        assert recorder.types() == [TransportOpened, AudioChunkReceived, AudioChunkReceived]
        chunks = [e.data for e in recorder.events if isinstance(e, AudioChunkReceived)]
        assert chunks == [b"\x01\x00", b"\x02\x00"]
        assert all(e.session_id == "sess_a" for e in recorder.events)
        assert handle.is_open

        handle.invalidate("test_done")
        await handle.wait_closed()

    asyncio.run(scenario())


def test_sends_before_open_are_dropped_then_serialized_in_order() -> None:
    async def scenario() -> None:
        ws = FakeWebSocket(SETUP_COMPLETE)
        recorder = Recorder()

        handle = await _connect(FakeConnector(ws), recorder)
        handle.send_audio(b"\x00\x00")
        assert handle.dropped_before_open == 1

        await _until(lambda: handle.is_open)
        handle.send_audio(b"\x01\x00")
        handle.send_video_frame(b"\xff\xd8")
        handle.send_text("hello")
        await _until(lambda: handle.sent == 3)

        outbound = [json.loads(p) for p in ws.sent[1:]]
        assert outbound[0]["realtimeInput"]["mediaChunks"][0]["mimeType"] == "audio/pcm;rate=16000"
        assert outbound[1]["realtimeInput"]["mediaChunks"][0]["mimeType"] == "image/jpeg"
        assert outbound[2] == {"realtimeInput": {"text": "hello"}}

        handle.invalidate("test_done")
        await handle.wait_closed()

    asyncio.run(scenario())


def test_remote_close_emits_single_terminal_event() -> None:
    async def scenario() -> None:
        ws = FakeWebSocket(SETUP_COMPLETE)
        recorder = Recorder()

        handle = await _connect(FakeConnector(ws), recorder)
        await _until(lambda: handle.is_open)
        ws.push(_CLOSE)
        await handle.wait_closed()

        assert recorder.types() == [TransportOpened, TransportClosed]
        assert not handle.is_open

        handle.send_audio(b"\x00\x00")
        assert handle.dropped_after_close == 1

    asyncio.run(scenario())


def test_connect_failure_emits_transport_error() -> None:
    async def scenario() -> None:
        recorder = Recorder()

        handle = await _connect(FakeConnector(error=OSError("refused")), recorder)
        await handle.wait_closed()

        assert recorder.types() == [TransportError]
        assert recorder.events[0].reason.startswith("connect_failed")

    asyncio.run(scenario())


def test_setup_rejection_emits_transport_error() -> None:
    async def scenario() -> None:
        recorder = Recorder()
        ws = FakeWebSocket('{"error": {"code": 403}}')

        handle = await _connect(FakeConnector(ws), recorder)
        await handle.wait_closed()

        assert recorder.types() == [TransportError]
        assert recorder.events[0].reason.startswith("setup_rejected")

    asyncio.run(scenario())


def test_setup_timeout_emits_transport_error() -> None:
    async def scenario() -> None:
        recorder = Recorder()

        handle = await _connect(FakeConnector(FakeWebSocket()), recorder, setup_timeout_s=0.01)
        await handle.wait_closed()

        assert recorder.types() == [TransportError]
        assert recorder.events[0].reason == "setup_timeout"

    asyncio.run(scenario())


def test_malformed_message_is_skipped_without_ending_session() -> None:
    async def scenario() -> None:
        ws = FakeWebSocket(SETUP_COMPLETE, "not json", _audio(b"\x01\x00"))
        recorder = Recorder()

        handle = await _connect(FakeConnector(ws), recorder)
        await _until(lambda: len(recorder.events) == 2)

        assert recorder.types() == [TransportOpened, AudioChunkReceived]
        assert handle.messages_skipped == 1
        assert handle.is_open

        handle.invalidate("test_done")
        await handle.wait_closed()

    asyncio.run(scenario())


def test_wrongly_typed_parts_are_skipped_without_ending_session() -> None:
    async def scenario() -> None:
        bad = '{"serverContent": {"modelTurn": {"parts": 5}}}'
        ws = FakeWebSocket(SETUP_COMPLETE, bad, _audio(b"\x01\x00"))
        recorder = Recorder()

        handle = await _connect(FakeConnector(ws), recorder)
        await _until(lambda: len(recorder.events) == 2)

        assert recorder.types() == [TransportOpened, AudioChunkReceived]
        assert handle.messages_skipped == 1
        assert handle.is_open

        handle.invalidate("test_done")
        await handle.wait_closed()

    asyncio.run(scenario())


def test_unexpected_receive_fault_emits_single_transport_error() -> None:
    async def scenario() -> None:
        ws = FakeWebSocket(SETUP_COMPLETE)
        recorder = Recorder()

        handle = await _connect(FakeConnector(ws), recorder)
        await _until(lambda: handle.is_open)
        ws.push(RuntimeError("decoder blew up"))
        await handle.wait_closed()

        assert recorder.types() == [TransportOpened, TransportError]
        assert recorder.events[1].reason.startswith("receive_failed")
        assert not handle.is_open

        handle.send_audio(b"\x00\x00")
        assert handle.dropped_after_close == 1

    asyncio.run(scenario())


def test_close_flushes_queued_sends_and_emits_nothing() -> None:
    async def scenario() -> None:
        ws = FakeWebSocket(SETUP_COMPLETE)
        recorder = Recorder()

        handle = await _connect(FakeConnector(ws), recorder)
        await _until(lambda: len(recorder.events) == 1)
        handle.send_text("last words")
        handle.close()
        await handle.wait_closed()

        assert ws.closed
        assert json.loads(ws.sent[-1]) == {"realtimeInput": {"text": "last words"}}
        assert recorder.types() == [TransportOpened]

        handle.send_text("too late")
        assert handle.dropped_after_close == 1

    asyncio.run(scenario())


def test_invalidated_handle_delivers_no_further_events() -> None:
    async def scenario() -> None:
        ws = FakeWebSocket(SETUP_COMPLETE)
        recorder = Recorder()

        handle = await _connect(FakeConnector(ws), recorder)
        await _until(lambda: handle.is_open)
        await _until(lambda: len(recorder.events) == 1)

        handle.invalidate("superseded")
        ws.push(_audio(b"\x01\x00"))
        await handle.wait_closed()

        assert recorder.types() == [TransportOpened]

    asyncio.run(scenario())


def test_consumer_failure_does_not_stop_delivery(monkeypatch: pytest.MonkeyPatch) -> None:
    import transport.live as live_mod  # pylint: disable=import-outside-toplevel

    logged: list[str] = []
    monkeypatch.setattr(
        live_mod, "log_component", lambda component, event_type, **kw: logged.append(event_type)
    )

    async def scenario() -> None:
        ws = FakeWebSocket(SETUP_COMPLETE, _audio(b"\x01\x00"), _audio(b"\x02\x00"))
        delivered: list[Event] = []

        async def flaky(event: Event) -> None:
            delivered.append(event)
            if isinstance(event, AudioChunkReceived) and event.data == b"\x01\x00":
                raise RuntimeError("consumer bug")

        transport = LiveTransport(host="example.test", connector=FakeConnector(ws))
        handle = await transport.connect(
            session_id="sess_a", api_key="k", config=CONFIG, emit_event=flaky
        )
        await _until(lambda: len(delivered) == 3)

        assert "event_consumer_failed" in logged

        handle.invalidate("test_done")
        await handle.wait_closed()

    asyncio.run(scenario())
