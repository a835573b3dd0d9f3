"""Event type registry — maps a wire discriminant to its decode function.

The dispatcher always does the same two steps, resolve then decode, no
matter how many kinds are registered.  Adding a new event kind is a
``register`` call, never a change to dispatch control flow.

There is no module-level registry.  Each dispatcher owns the instance it
was given, so tests can build registries with fake or partial kind sets.
"""

from __future__ import annotations

import logging
from typing import Callable

from pydantic import BaseModel

from rtmkit.errors import RTMError
from rtmkit.models.envelope import Envelope
from rtmkit.models.events import EVENT_TYPE_MAP, RTMEvent

logger = logging.getLogger(__name__)

DecodeFn = Callable[[Envelope], RTMEvent]


class RegistryFrozenError(RTMError, RuntimeError):
    """Raised when a frozen registry is mutated."""


def model_decoder(model_cls: type[BaseModel]) -> DecodeFn:
    """Build a decode function that validates the payload into *model_cls*.

    Validation errors propagate; the dispatcher turns them into
    ``UnknownEvent``.
    """

    def _decode(envelope: Envelope) -> RTMEvent:
        return model_cls.model_validate(envelope.payload)  # type: ignore[return-value]

    _decode.__name__ = f"decode_{model_cls.__name__}"
    _decode.__qualname__ = _decode.__name__
    return _decode


class EventTypeRegistry:
    """Discriminant -> decode function lookup.

    Resolution is an exact, case-sensitive string match.  Registration
    order does not matter; registering an existing discriminant replaces
    its decoder.

    Examples
    --------
    >>> registry = EventTypeRegistry()
    >>> registry.register_model("presence_change", PresenceChangeEvent)
    >>> registry.resolve("presence_change") is not None
    True
    >>> registry.resolve("Presence_Change") is None
    True
    """

    def __init__(self, decoders: dict[str, DecodeFn] | None = None) -> None:
        self._decoders: dict[str, DecodeFn] = dict(decoders or {})
        self._frozen = False

    # -- Registration -------------------------------------------------------

    def register(self, discriminant: str, decode_fn: DecodeFn) -> None:
        """Add or replace the decoder for *discriminant*.

        Raises
        ------
        RegistryFrozenError
            If ``freeze()`` has been called.
        ValueError
            If *discriminant* is empty.
        """
        self._check_mutable()
        if not discriminant:
            raise ValueError("Discriminant must be a non-empty string.")
        if discriminant in self._decoders:
            logger.debug("Replacing decoder for discriminant %r", discriminant)
        self._decoders[discriminant] = decode_fn

    def register_model(self, discriminant: str, model_cls: type[BaseModel]) -> None:
        """Register a pydantic model as the decode target for *discriminant*."""
        self.register(discriminant, model_decoder(model_cls))

    def unregister(self, discriminant: str) -> bool:
        """Remove *discriminant*.  Returns ``True`` if it was registered."""
        self._check_mutable()
        return self._decoders.pop(discriminant, None) is not None

    def freeze(self) -> None:
        """Make the registry read-only.  Called once a stream starts."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RegistryFrozenError(
                "Event type registry is frozen; register kinds before dispatch starts."
            )

    # -- Lookup -------------------------------------------------------------

    def resolve(self, discriminant: str) -> DecodeFn | None:
        """Return the decoder for *discriminant*, or ``None`` if not found."""
        return self._decoders.get(discriminant)

    def discriminants(self) -> list[str]:
        """Registered discriminants, sorted."""
        return sorted(self._decoders)

    def copy(self) -> EventTypeRegistry:
        """Return an unfrozen copy with the same mappings."""
        return EventTypeRegistry(self._decoders)

    def __contains__(self, discriminant: object) -> bool:
        return discriminant in self._decoders

    def __len__(self) -> int:
        return len(self._decoders)


def default_registry() -> EventTypeRegistry:
    """Return a fresh registry preloaded with every built-in event kind."""
    registry = EventTypeRegistry()
    for discriminant, model_cls in EVENT_TYPE_MAP.items():
        registry.register_model(discriminant, model_cls)
    return registry
