"""RTM session — the producer path from raw frames to the event stream.

A session pulls raw frames from the transport collaborator, decodes each
into an ``Envelope``, dispatches it to a typed event and appends the
result to its ``EventStream``.  It owns that stream and closes it when
the frame source is exhausted, when it is stopped, or when a malformed
frame arrives under the ``terminate`` policy.

Usage
-----
>>> async with RTMSession(websocket_frames()) as session:
...     async for event in session:
...         handle(event)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable
from typing import Any, Union

from rtmkit.config import StreamConfig, config
from rtmkit.core.dispatcher import TypedDispatcher, UnknownEventSink
from rtmkit.core.envelope_decoder import MalformedFrame, RawFrame, decode_frame
from rtmkit.core.event_stream import EventStream, StreamClosed, StreamFull
from rtmkit.core.registry import EventTypeRegistry, default_registry
from rtmkit.models.events import RTMEvent
from rtmkit.models.stream import MalformedFramePolicy

logger = logging.getLogger(__name__)

FrameSource = Union[AsyncIterable[RawFrame], Iterable[RawFrame]]


async def _iter_frames(frames: FrameSource) -> AsyncIterator[RawFrame]:
    if isinstance(frames, AsyncIterable):
        iterator = aiter(frames)
        try:
            async for frame in iterator:
                yield frame
        finally:
            # Close the transport iterator as soon as the session stops.
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()
    else:
        for frame in frames:
            yield frame


class RTMSession:
    """Feeds decoded, typed events from a frame source into an event stream.

    Parameters
    ----------
    frames:
        Raw frames in transport order.  Async and plain iterables are both
        accepted; exhaustion ends the session.
    registry:
        Event kinds to decode.  Defaults to ``default_registry()``.  The
        registry is frozen when the session is created.
    settings:
        Buffer, logging and malformed-frame options.  Defaults to the
        module-level ``rtmkit.config.config``.
    on_unknown:
        Observability hook passed through to the dispatcher.
    """

    def __init__(
        self,
        frames: FrameSource,
        *,
        registry: EventTypeRegistry | None = None,
        settings: StreamConfig | None = None,
        on_unknown: UnknownEventSink | None = None,
    ) -> None:
        self._frames = frames
        self._settings = settings if settings is not None else config

        registry = registry if registry is not None else default_registry()
        registry.freeze()
        self._dispatcher = TypedDispatcher(
            registry,
            unknown_event_logging=self._settings.unknown_event_logging,
            on_unknown=on_unknown,
        )
        self._stream = EventStream.from_config(self._settings)
        self._task: asyncio.Task[None] | None = None

        self._frames_received = 0
        self._malformed_frames = 0
        self._overflowed = 0
        self._error: MalformedFrame | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def stream(self) -> EventStream:
        return self._stream

    @property
    def dispatcher(self) -> TypedDispatcher:
        return self._dispatcher

    @property
    def error(self) -> MalformedFrame | None:
        """The frame error that terminated the session, if any."""
        return self._error

    # ------------------------------------------------------------------
    # Producer loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Pump frames into the stream until the source ends.

        The stream is always closed on exit, including cancellation.
        """
        logger.info(
            "RTM session started (capacity=%d, policy=%s)",
            self._stream.capacity,
            self._stream.policy.value,
        )
        try:
            async with contextlib.aclosing(_iter_frames(self._frames)) as frames:
                async for raw in frames:
                    self._frames_received += 1
                    if not await self._ingest(raw):
                        break
        finally:
            self._stream.close()
            logger.info(
                "RTM session ended after %d frame(s), %d malformed",
                self._frames_received,
                self._malformed_frames,
            )

    async def _ingest(self, raw: RawFrame) -> bool:
        """Handle one frame.  Returns ``False`` when the session should end."""
        try:
            envelope = decode_frame(raw)
        except MalformedFrame as exc:
            self._malformed_frames += 1
            if self._settings.malformed_frame_policy is MalformedFramePolicy.TERMINATE:
                logger.error(
                    "Terminating session on malformed frame #%d: %s",
                    self._frames_received,
                    exc,
                )
                self._error = exc
                return False
            logger.warning(
                "Skipping malformed frame #%d: %s", self._frames_received, exc
            )
            return True

        event = self._dispatcher.dispatch(envelope)
        try:
            await self._stream.append(event)
        except StreamFull as exc:
            self._overflowed += 1
            logger.warning("Dropping %s event: %s", event.kind.value, exc)
        except StreamClosed:
            logger.info("Event stream closed by its owner; stopping session")
            return False
        return True

    # ------------------------------------------------------------------
    # Task management
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Task[None]:
        """Run the producer loop as a background task."""
        if self._task is not None:
            raise RuntimeError("RTM session already started")
        self._task = asyncio.create_task(self.run(), name="rtmkit-session")
        return self._task

    async def stop(self) -> None:
        """Close the stream and stop the producer task.  Idempotent."""
        self._stream.close()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

    async def __aenter__(self) -> RTMSession:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    async def next(self, cancel: asyncio.Event | None = None) -> RTMEvent:
        """Shortcut for ``session.stream.next(cancel)``."""
        return await self._stream.next(cancel)

    def __aiter__(self) -> AsyncIterator[RTMEvent]:
        return self._stream.__aiter__()

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_stats(self) -> dict[str, Any]:
        """Return frame, dispatch and stream counters."""
        return {
            "frames_received": self._frames_received,
            "malformed_frames": self._malformed_frames,
            "overflowed": self._overflowed,
            "terminated": self._error is not None,
            "dispatch": self._dispatcher.get_stats(),
            "stream": self._stream.get_stats(),
        }
