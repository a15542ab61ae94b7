"""
Gapless playback scheduler for inbound reply audio.

Cursor rule, per chunk:
    cursor = max(cursor, now)
    start  = cursor
    cursor = start + duration

Guarantees:
- Chunks play in arrival order.
- A chunk never starts before the previous chunk's scheduled end.
- When behind, playback resynchronizes to `now` (never into the past).

The cursor has a single writer (this scheduler, on the event loop).
No buffering limit is enforced; backlog beyond backlog_warn_s is logged.
"""

from __future__ import annotations

from typing import Protocol

from audio.analysis import FrequencyTap
from audio.frames import ScheduledChunk
from audio.pcm import PlayableBuffer, decode_pcm16
from constants import (
    PLAYBACK_BACKLOG_WARN_S,
    PLAYBACK_CHANNELS,
    PLAYBACK_SOURCE_SAMPLE_RATE_HZ,
)
from observability.logger import log_component


class OutputClock(Protocol):
    """
    Output device seen by the scheduler.

    current_time() is seconds on the device clock; play_at() places a
    buffer at an absolute time on that clock.
    """

    @property
    def sample_rate(self) -> int: ...
    def current_time(self) -> float: ...
    def play_at(self, start_s: float, buffer: PlayableBuffer) -> None: ...


class PlaybackScheduler:
    """One scheduler per Session; owns the playback cursor."""

    def __init__(
        self,
        *,
        output: OutputClock,
        tap: FrequencyTap | None = None,
        source_rate: int = PLAYBACK_SOURCE_SAMPLE_RATE_HZ,
        channels: int = PLAYBACK_CHANNELS,
        backlog_warn_s: float = PLAYBACK_BACKLOG_WARN_S,
        session_id: str | None = None,
    ) -> None:
        self._output = output
        self._tap = tap
        self._source_rate = source_rate
        self._channels = channels
        self._backlog_warn_s = backlog_warn_s
        self._session_id = session_id

        self._cursor = 0.0
        self._next_seq = 0
        self._backlog_warned = False
        self.last_scheduled: ScheduledChunk | None = None

    @property
    def cursor(self) -> float:
        return self._cursor

    def schedule(self, chunk_bytes: bytes) -> float:
        """
        Decode one chunk and place it on the output clock.

        Returns:
            Scheduled start time in output-clock seconds.

        Raises:
            DecodeError before the cursor is touched.
        """
        buffer = decode_pcm16(
            chunk_bytes,
            source_rate=self._source_rate,
            target_rate=self._output.sample_rate,
            channels=self._channels,
        )

        now = self._output.current_time()
        start = max(self._cursor, now)
        self._cursor = start + buffer.duration_s

        self._output.play_at(start, buffer)
        if self._tap is not None:
            self._tap.observe(buffer.mono())

        self.last_scheduled = ScheduledChunk(
            sequence_num=self._next_seq,
            start_s=start,
            duration_s=buffer.duration_s,
        )
        self._next_seq += 1

        self._observe_backlog(now)
        return start

    def backlog_s(self) -> float:
        return max(0.0, self._cursor - self._output.current_time())

    def reset(self) -> None:
        self._cursor = 0.0
        self._next_seq = 0
        self._backlog_warned = False
        self.last_scheduled = None

    def _observe_backlog(self, now: float) -> None:
        backlog = self._cursor - now
        if backlog > self._backlog_warn_s:
            if not self._backlog_warned:
                self._backlog_warned = True
                log_component(
                    "playback",
                    "playback_backlog_high",
                    session_id=self._session_id,
                    backlog_s=round(backlog, 3),
                    threshold_s=self._backlog_warn_s,
                )
        else:
            self._backlog_warned = False
