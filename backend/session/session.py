"""
Live session container.

- Owns the transport handle (mutated only through its methods)
- Owns acquired media devices and the playback scheduler
- Owns connection status (mutable, runtime-controlled)
- NOT a state machine
- Contains no orchestration logic
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from session.connection_status import ConnectionStatus

if TYPE_CHECKING:
    from audio.playback import PlaybackScheduler
    from transport.live import LiveSessionHandle


@dataclass
class Session:
    """Mutable runtime container for a single live session."""

    # ------------------------------------------------------------------
    # Identity / lifecycle
    # ------------------------------------------------------------------

    session_id: str
    credential: str = field(default="", repr=False)
    created_at: float = field(default_factory=time.time)

    # ------------------------------------------------------------------
    # Connection / runtime-controlled state
    # ------------------------------------------------------------------

    connection_status: ConnectionStatus = ConnectionStatus.DOWN
    _handle: LiveSessionHandle | None = field(default=None, init=False, repr=False)

    # ------------------------------------------------------------------
    # Devices / playback
    # ------------------------------------------------------------------

    media: Any = None  # Type: AcquiredMedia in practice
    scheduler: PlaybackScheduler | None = None

    # ------------------------------------------------------------------
    # Wiring helpers (called by Runtime)
    # ------------------------------------------------------------------

    def attach_media(self, media: Any, scheduler: PlaybackScheduler) -> None:
        self.media = media
        self.scheduler = scheduler

    def detach_media(self) -> Any:
        media, self.media = self.media, None
        self.scheduler = None
        return media

    def attach_handle(self, handle: LiveSessionHandle) -> None:
        """
        Attach a new transport handle.

        A previous handle is invalidated, never reused.
        """
        previous = self._handle
        self._handle = handle
        self.connection_status = ConnectionStatus.CONNECTING
        if previous is not None and previous is not handle:
            previous.invalidate("replaced")

    def detach_handle(self) -> LiveSessionHandle | None:
        handle, self._handle = self._handle, None
        self.connection_status = ConnectionStatus.DOWN
        return handle

    def mark_open(self) -> None:
        if self._handle is not None:
            self.connection_status = ConnectionStatus.UP

    @property
    def handle(self) -> LiveSessionHandle | None:
        return self._handle

    # ------------------------------------------------------------------
    # Outbound path (capture pipeline, video sampler, runtime)
    # ------------------------------------------------------------------

    def transport_ready(self) -> bool:
        return self._handle is not None and self._handle.is_open

    def send_audio(self, chunk: bytes) -> None:
        if self._handle is not None:
            self._handle.send_audio(chunk)

    def send_video_frame(self, jpeg: bytes) -> None:
        if self._handle is not None:
            self._handle.send_video_frame(jpeg)

    def send_text(self, text: str) -> None:
        if self._handle is not None:
            self._handle.send_text(text)

