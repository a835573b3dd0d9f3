"""EventStream — bounded, ordered, cancellable delivery of RTM events.

One producer appends, one or more consumers take.  Events come out in
the order they went in; each event is delivered to exactly one consumer.

Lifecycle::

    OPEN --close()--> CLOSING (buffer not empty, draining) --> CLOSED
    OPEN --close()--> CLOSED  (buffer empty)

Appends are rejected once the stream leaves OPEN.  Consumers keep
receiving buffered events until the buffer is drained, after which
``next()`` raises ``StreamClosed`` and ``async for`` ends.

The stream belongs to a single asyncio event loop.  All mutation happens
between suspension points, so buffer access and state transitions are
atomic with respect to other tasks on that loop.
"""

from __future__ import annotations

import asyncio
import collections
import logging
from typing import TYPE_CHECKING, Any

from rtmkit.errors import RTMError
from rtmkit.models.events import RTMEvent
from rtmkit.models.stream import (
    VALID_STREAM_TRANSITIONS,
    BackpressurePolicy,
    StreamState,
)

if TYPE_CHECKING:
    from rtmkit.config import StreamConfig

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 64


class StreamClosed(RTMError):
    """Raised on append after close, or on next() once a closed stream is drained."""


class StreamFull(RTMError):
    """Raised when a blocking append times out waiting for buffer space."""


class Cancelled(RTMError):
    """Raised by next() when its cancellation signal fires while suspended."""


class InvalidStreamTransition(RTMError, RuntimeError):
    """Raised when a lifecycle transition is not allowed."""


def _wake_first(waiters: collections.deque[asyncio.Future[None]]) -> None:
    while waiters:
        waiter = waiters.popleft()
        if not waiter.done():
            waiter.set_result(None)
            return


def _wake_all(waiters: collections.deque[asyncio.Future[None]]) -> None:
    while waiters:
        waiter = waiters.popleft()
        if not waiter.done():
            waiter.set_result(None)


def _discard(
    waiters: collections.deque[asyncio.Future[None]], waiter: asyncio.Future[None]
) -> None:
    waiter.cancel()
    try:
        waiters.remove(waiter)
    except ValueError:
        pass


class EventStream:
    """FIFO event buffer with backpressure and cooperative cancellation.

    Parameters
    ----------
    capacity:
        Maximum number of buffered, undelivered events.
    policy:
        What ``append`` does when the buffer is full.
    append_timeout:
        Default timeout in seconds for blocking appends.  ``None`` waits
        until space frees or the stream closes.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        policy: BackpressurePolicy = BackpressurePolicy.BLOCK,
        *,
        append_timeout: float | None = None,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._policy = BackpressurePolicy(policy)
        self._append_timeout = append_timeout
        self._buffer: collections.deque[RTMEvent] = collections.deque()
        self._getters: collections.deque[asyncio.Future[None]] = collections.deque()
        self._putters: collections.deque[asyncio.Future[None]] = collections.deque()
        self._state = StreamState.OPEN
        self._appended = 0
        self._delivered = 0
        self._dropped = 0

    @classmethod
    def from_config(cls, settings: StreamConfig) -> EventStream:
        """Build a stream from the buffer settings in *settings*."""
        return cls(
            settings.buffer_capacity,
            settings.backpressure_policy,
            append_timeout=settings.append_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def policy(self) -> BackpressurePolicy:
        return self._policy

    @property
    def dropped_count(self) -> int:
        """Events discarded by the drop_oldest policy."""
        return self._dropped

    @property
    def is_closed(self) -> bool:
        """``True`` once the stream no longer accepts appends."""
        return self._state is not StreamState.OPEN

    def __len__(self) -> int:
        return len(self._buffer)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _transition(self, target: StreamState) -> None:
        allowed = VALID_STREAM_TRANSITIONS.get(self._state, set())
        if target not in allowed:
            raise InvalidStreamTransition(
                f"Cannot transition stream from {self._state.value} to {target.value}. "
                f"Allowed: {[s.value for s in allowed]}"
            )
        logger.debug("Event stream %s -> %s", self._state.value, target.value)
        self._state = target

    def close(self) -> None:
        """Stop accepting events.  Safe to call any number of times.

        Buffered events stay deliverable.  Every suspended producer is
        woken with ``StreamClosed``; suspended consumers are woken to
        drain what is left.
        """
        if self._state is not StreamState.OPEN:
            return
        self._transition(StreamState.CLOSING if self._buffer else StreamState.CLOSED)
        logger.info(
            "Event stream closed with %d buffered event(s)", len(self._buffer)
        )
        _wake_all(self._getters)
        _wake_all(self._putters)

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    async def append(self, event: RTMEvent, *, timeout: float | None = None) -> None:
        """Enqueue *event* at the tail.

        Parameters
        ----------
        event:
            The event to deliver.
        timeout:
            Overrides the stream's ``append_timeout`` for this call.  Only
            used by the ``block`` policy.

        Raises
        ------
        StreamClosed
            If the stream is closed, or closes while waiting for space.
        StreamFull
            If a blocking append times out.
        """
        if self._state is not StreamState.OPEN:
            raise StreamClosed("Cannot append to a closed event stream")

        if len(self._buffer) >= self._capacity:
            if self._policy is BackpressurePolicy.DROP_OLDEST:
                dropped = self._buffer.popleft()
                self._dropped += 1
                logger.debug(
                    "Buffer full (%d); dropped oldest %s event",
                    self._capacity,
                    dropped.kind.value,
                )
            else:
                await self._wait_for_space(
                    self._append_timeout if timeout is None else timeout
                )

        self._buffer.append(event)
        self._appended += 1
        _wake_first(self._getters)

    async def _wait_for_space(self, timeout: float | None) -> None:
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        while len(self._buffer) >= self._capacity and self._state is StreamState.OPEN:
            putter: asyncio.Future[None] = loop.create_future()
            self._putters.append(putter)
            try:
                if deadline is None:
                    await putter
                else:
                    await asyncio.wait_for(putter, max(deadline - loop.time(), 0))
            except asyncio.TimeoutError:
                self._abandon_putter(putter)
                raise StreamFull(
                    f"Event stream buffer full ({self._capacity}) for {timeout}s"
                ) from None
            except asyncio.CancelledError:
                self._abandon_putter(putter)
                raise

        if self._state is not StreamState.OPEN:
            raise StreamClosed("Event stream closed while waiting for buffer space")

    def _abandon_putter(self, putter: asyncio.Future[None]) -> None:
        _discard(self._putters, putter)
        # Pass on a wake-up this putter may have consumed.
        if len(self._buffer) < self._capacity:
            _wake_first(self._putters)

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    async def next(self, cancel: asyncio.Event | None = None) -> RTMEvent:
        """Remove and return the oldest event, suspending until one arrives.

        Parameters
        ----------
        cancel:
            Optional signal.  Setting it while this call is suspended makes
            it raise ``Cancelled`` promptly.  Events already buffered are
            still returned even if the signal is set.

        Raises
        ------
        StreamClosed
            If the stream is closed and fully drained.
        Cancelled
            If *cancel* fires while waiting.
        """
        loop = asyncio.get_running_loop()

        while not self._buffer:
            if self._state is not StreamState.OPEN:
                if self._state is StreamState.CLOSING:
                    self._transition(StreamState.CLOSED)
                raise StreamClosed("Event stream is closed")
            if cancel is not None and cancel.is_set():
                raise Cancelled("Event stream read cancelled")

            getter: asyncio.Future[None] = loop.create_future()
            self._getters.append(getter)
            try:
                await self._wait_for_event(getter, cancel)
            except asyncio.CancelledError:
                _discard(self._getters, getter)
                if self._buffer:
                    _wake_first(self._getters)
                raise

            if not getter.done():
                # The cancel signal fired before any event arrived.
                _discard(self._getters, getter)
                raise Cancelled("Event stream read cancelled")

        event = self._buffer.popleft()
        self._delivered += 1
        _wake_first(self._putters)
        if not self._buffer and self._state is StreamState.CLOSING:
            self._transition(StreamState.CLOSED)
        return event

    @staticmethod
    async def _wait_for_event(
        getter: asyncio.Future[None], cancel: asyncio.Event | None
    ) -> None:
        if cancel is None:
            await getter
            return
        canceller = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({getter, canceller}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            canceller.cancel()

    def __aiter__(self) -> EventStream:
        return self

    async def __anext__(self) -> RTMEvent:
        try:
            return await self.next()
        except StreamClosed:
            raise StopAsyncIteration from None

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_stats(self) -> dict[str, Any]:
        """Return stream counters and the current state."""
        return {
            "state": self._state.value,
            "capacity": self._capacity,
            "policy": self._policy.value,
            "buffered": len(self._buffer),
            "appended": self._appended,
            "delivered": self._delivered,
            "dropped": self._dropped,
        }
