"""TypedDispatcher — turns an ``Envelope`` into a typed RTM event.

``dispatch`` never raises for a decoded envelope.  An unregistered
discriminant or a payload that fails validation degrades to an
``UnknownEvent`` carrying the raw payload, so one bad or brand-new frame
kind cannot stall the stream behind it.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Callable

from rtmkit.core.registry import EventTypeRegistry, default_registry
from rtmkit.models.envelope import Envelope
from rtmkit.models.events import RTMEvent, RTMEventBase, UnknownEvent, UnknownReason

logger = logging.getLogger(__name__)

UnknownEventSink = Callable[[UnknownEvent], None]


class TypedDispatcher:
    """Resolves an envelope's discriminant and decodes its payload.

    Parameters
    ----------
    registry:
        The registry to resolve against.  Defaults to
        ``default_registry()``.  The dispatcher does not mutate it.
    unknown_event_logging:
        Log every ``UnknownEvent`` produced.  Decode failures are logged
        at WARNING, unregistered kinds at INFO.
    on_unknown:
        Optional observability hook called with every ``UnknownEvent``.
        Exceptions it raises are logged and swallowed.

    Usage
    -----
    >>> dispatcher = TypedDispatcher()
    >>> event = dispatcher.dispatch(decode_frame(raw))
    """

    def __init__(
        self,
        registry: EventTypeRegistry | None = None,
        *,
        unknown_event_logging: bool = True,
        on_unknown: UnknownEventSink | None = None,
    ) -> None:
        self._registry = registry if registry is not None else default_registry()
        self._unknown_event_logging = unknown_event_logging
        self._on_unknown = on_unknown
        self._by_kind: Counter[str] = Counter()
        self._dispatched = 0
        self._unknown = 0
        self._decode_failures = 0

    @property
    def registry(self) -> EventTypeRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, envelope: Envelope) -> RTMEvent:
        """Decode *envelope* into its event variant, or ``UnknownEvent``."""
        self._dispatched += 1
        decode_fn = self._registry.resolve(envelope.type)

        if decode_fn is None:
            event: RTMEvent = UnknownEvent(
                discriminant=envelope.type,
                payload=envelope.payload,
                reason=UnknownReason.UNREGISTERED,
            )
            if self._unknown_event_logging:
                logger.info("Unregistered event type %r", envelope.type)
            return self._record_unknown(event)

        try:
            event = decode_fn(envelope)
            if not isinstance(event, RTMEventBase):
                raise TypeError(
                    f"Decoder returned {type(event).__name__}, not an RTM event"
                )
        except Exception as exc:  # noqa: BLE001
            self._decode_failures += 1
            if self._unknown_event_logging:
                logger.warning(
                    "Failed to decode %r frame (ts=%s): %s",
                    envelope.type,
                    envelope.ts,
                    exc,
                )
            return self._record_unknown(
                UnknownEvent(
                    discriminant=envelope.type,
                    payload=envelope.payload,
                    reason=UnknownReason.DECODE_FAILED,
                    error=str(exc),
                )
            )

        self._by_kind[event.kind.value] += 1
        logger.debug("Dispatched %s event", event.kind.value)
        return event

    def _record_unknown(self, event: UnknownEvent) -> UnknownEvent:
        self._unknown += 1
        self._by_kind[event.kind.value] += 1
        if self._on_unknown is not None:
            try:
                self._on_unknown(event)
            except Exception:  # noqa: BLE001
                logger.exception(
                    "Unknown-event hook failed for %r", event.discriminant
                )
        return event

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_stats(self) -> dict[str, Any]:
        """Return dispatch counters.

        Keys: ``dispatched``, ``unknown``, ``decode_failures`` and a
        ``by_kind`` dict mapping each event kind value to its count.
        """
        return {
            "dispatched": self._dispatched,
            "unknown": self._unknown,
            "decode_failures": self._decode_failures,
            "by_kind": dict(self._by_kind),
        }
