"""Generic frame envelope — the discriminant plus the untouched payload.

An ``Envelope`` only exists for frames that carried a usable ``type``
field.  It is a transient value: the dispatcher consumes it and the
resulting event never keeps a reference to it.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Envelope(BaseModel):
    """Discriminant and dispatch metadata for a single RTM frame.

    ``payload`` is the whole decoded JSON object, unknown fields included,
    so typed decoding and ``UnknownEvent`` both see exactly what the
    server sent.
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(min_length=1)
    ts: str | None = None
    event_ts: str | None = None
    user: str | None = None
    channel_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def discriminant(self) -> str:
        """Alias for ``type``; the value the registry resolves on."""
        return self.type
