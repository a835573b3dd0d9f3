"""Event stream lifecycle and policy enums."""

from __future__ import annotations

from enum import Enum


class StreamState(str, Enum):
    """Lifecycle of an ``EventStream``."""

    OPEN = "open"
    CLOSING = "closing"  # closed for appends, still draining buffered events
    CLOSED = "closed"


# CLOSED is terminal.
VALID_STREAM_TRANSITIONS: dict[StreamState, set[StreamState]] = {
    StreamState.OPEN: {StreamState.CLOSING, StreamState.CLOSED},
    StreamState.CLOSING: {StreamState.CLOSED},
    StreamState.CLOSED: set(),
}


class BackpressurePolicy(str, Enum):
    """What ``append`` does when the buffer is full.

    * ``block`` — the producer suspends until a consumer frees space, the
      stream closes, or the append timeout elapses.
    * ``drop_oldest`` — the oldest buffered event is discarded to make room.
    """

    BLOCK = "block"
    DROP_OLDEST = "drop_oldest"


class MalformedFramePolicy(str, Enum):
    """What the session does with a frame the decoder rejects."""

    SKIP = "skip"
    TERMINATE = "terminate"
