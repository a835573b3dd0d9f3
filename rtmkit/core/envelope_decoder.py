"""Envelope decoder — turns a raw RTM frame into an ``Envelope``.

Only the discriminant and the timestamps are validated here.  Everything
else is kept verbatim in ``Envelope.payload`` for the typed decode step,
so frames carrying fields this library has never heard of still decode.
"""

from __future__ import annotations

import json
from typing import Any, Union

from rtmkit.errors import RTMError
from rtmkit.models.envelope import Envelope

RawFrame = Union[bytes, bytearray, str]

DISCRIMINANT_FIELD = "type"


class MalformedFrame(RTMError, ValueError):
    """Raised when a frame is not parseable or has no discriminant."""


def _as_text(raw: RawFrame) -> str:
    if isinstance(raw, (bytes, bytearray)):
        try:
            return bytes(raw).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedFrame(f"Frame is not valid UTF-8: {exc}") from exc
    if isinstance(raw, str):
        return raw
    raise MalformedFrame(
        f"Frame must be bytes or str, got {type(raw).__name__}"
    )


def _timestamp(data: dict[str, Any], field: str) -> str | None:
    # Timestamps are strings on the wire; numbers are tolerated and normalised.
    value = data.get(field)
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise MalformedFrame(
        f"Field {field!r} must be a timestamp, got {type(value).__name__}"
    )


def _user_id(data: dict[str, Any]) -> str | None:
    # user_change / team_join carry a user object rather than an id.
    user = data.get("user")
    if isinstance(user, str):
        return user
    if isinstance(user, dict) and isinstance(user.get("id"), str):
        return user["id"]
    return None


def _channel_id(data: dict[str, Any]) -> str | None:
    # channel_joined / channel_created carry a channel object rather than an id.
    channel = data.get("channel")
    if isinstance(channel, str):
        return channel
    if isinstance(channel, dict) and isinstance(channel.get("id"), str):
        return channel["id"]
    return None


def decode_frame(raw: RawFrame) -> Envelope:
    """Parse *raw* into an ``Envelope``.

    Raises
    ------
    MalformedFrame
        If the frame is not UTF-8 JSON, is not a JSON object, has a missing,
        null, empty or non-string ``type``, or carries a timestamp that is
        neither a string nor a number.
    """
    text = _as_text(raw)

    try:
        data = json.loads(text)
    except (ValueError, RecursionError) as exc:
        # ValueError covers JSONDecodeError and oversized integer literals;
        # RecursionError comes from pathologically nested arrays or objects.
        raise MalformedFrame(f"Invalid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise MalformedFrame(
            f"Frame must be a JSON object, got {type(data).__name__}"
        )

    discriminant = data.get(DISCRIMINANT_FIELD)
    if discriminant is None or discriminant == "":
        raise MalformedFrame(f"Missing {DISCRIMINANT_FIELD} field")
    if not isinstance(discriminant, str):
        raise MalformedFrame(
            f"Field {DISCRIMINANT_FIELD!r} must be a string, "
            f"got {type(discriminant).__name__}"
        )

    return Envelope(
        type=discriminant,
        ts=_timestamp(data, "ts"),
        event_ts=_timestamp(data, "event_ts"),
        user=_user_id(data),
        channel_id=_channel_id(data),
        payload=data,
    )
