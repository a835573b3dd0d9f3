"""Typed RTM event variants.

Every frame that survives envelope decoding becomes exactly one of the
models below.  Known kinds get their own frozen model; anything else,
including a known kind whose payload fails validation, becomes an
``UnknownEvent`` carrying the raw payload so nothing the server sends is
lost.

Wire fields the models do not declare are ignored (pydantic's default),
which keeps decoding forward compatible with new server-side fields.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, ClassVar, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, model_validator


class EventKind(str, Enum):
    """Tags for the event variants.  Values match the wire ``type``."""

    MESSAGE = "message"
    PRESENCE_CHANGE = "presence_change"
    CHANNEL_JOINED = "channel_joined"
    CHANNEL_LEFT = "channel_left"
    REACTION_ADDED = "reaction_added"
    REACTION_REMOVED = "reaction_removed"
    USER_TYPING = "user_typing"
    CONNECTION_ESTABLISHED = "hello"
    UNKNOWN = "unknown"


class Presence(str, Enum):
    ACTIVE = "active"
    AWAY = "away"


class UnknownReason(str, Enum):
    """Why a frame degraded to ``UnknownEvent``."""

    UNREGISTERED = "unregistered"
    DECODE_FAILED = "decode_failed"


def parse_slack_ts(value: str | float | int | None) -> datetime | None:
    """Convert a wire timestamp (``"1355517523.000005"``) to aware UTC.

    Returns ``None`` for missing or unparseable values.
    """
    if value is None or value == "":
        return None
    try:
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def _number_to_ts(value: Any) -> Any:
    # Same normalisation the envelope decoder applies to ts / event_ts.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


WireTs = Annotated[str, BeforeValidator(_number_to_ts)]


# ---------------------------------------------------------------------------
# Nested shapes
# ---------------------------------------------------------------------------


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Edited(_Frozen):
    ts: WireTs = ""
    user: str = ""


class Icon(_Frozen):
    icon_url: str = ""
    icon_emoji: str = ""


class ItemReaction(_Frozen):
    """Aggregated reaction as embedded in a message."""

    name: str
    count: int = 0
    users: list[str] = []


class Comment(_Frozen):
    """File comment attached to ``file_comment`` messages."""

    id: str = ""
    created: int = 0
    timestamp: int = 0
    user: str = ""
    comment: str = ""


class ChannelInfo(_Frozen):
    id: str
    name: str = ""
    created: int = 0
    creator: str = ""
    is_channel: bool = True
    members: list[str] = []


class ReactionItem(_Frozen):
    """The thing a reaction was added to or removed from."""

    type: str = "message"
    channel: str = ""
    ts: WireTs = ""
    file: str = ""
    file_comment: str = ""


# ---------------------------------------------------------------------------
# Event variants
# ---------------------------------------------------------------------------


class RTMEventBase(_Frozen):
    """Common base for every event variant."""

    kind: ClassVar[EventKind]


class MessageEvent(RTMEventBase):
    """A channel message, including its hidden and bot subtypes.

    Subtype-specific fields are empty unless the subtype uses them:
    ``inviter`` for ``channel_join``, ``topic`` for ``channel_topic``,
    ``deleted_ts`` for ``message_deleted`` and so on.
    """

    kind: ClassVar[EventKind] = EventKind.MESSAGE

    channel: str
    text: str = ""
    user: str = ""
    ts: WireTs = ""
    event_ts: WireTs = ""
    subtype: str = ""
    hidden: bool = False
    deleted_ts: WireTs = ""
    edited: Edited | None = None
    is_starred: bool = False
    pinned_to: list[str] = []
    attachments: list[Any] = []
    reactions: list[ItemReaction] = []

    # bot_message
    bot_id: str = ""
    username: str = ""
    icons: Icon | None = None

    # channel_join / channel_topic / channel_purpose / channel_name / archive
    inviter: str = ""
    topic: str = ""
    purpose: str = ""
    name: str = ""
    old_name: str = ""
    members: list[str] = []

    # file_share / file_comment / pinned_item
    upload: bool = False
    comment: Comment | None = None
    item_type: str = ""

    reply_to: int | None = None
    team: str = ""

    @property
    def timestamp(self) -> datetime | None:
        return parse_slack_ts(self.ts)


class PresenceChangeEvent(RTMEventBase):
    kind: ClassVar[EventKind] = EventKind.PRESENCE_CHANGE

    user: str = ""
    presence: Presence
    users: list[str] = []  # batched presence_change frames

    @model_validator(mode="after")
    def check_subject(self) -> PresenceChangeEvent:
        if not self.user and not self.users:
            raise ValueError("presence_change needs user or users")
        return self


class ChannelJoinedEvent(RTMEventBase):
    kind: ClassVar[EventKind] = EventKind.CHANNEL_JOINED

    channel: ChannelInfo


class ChannelLeftEvent(RTMEventBase):
    kind: ClassVar[EventKind] = EventKind.CHANNEL_LEFT

    channel: str


class _ReactionEvent(RTMEventBase):
    user: str
    reaction: str
    item: ReactionItem
    item_user: str = ""
    event_ts: WireTs = ""

    @property
    def timestamp(self) -> datetime | None:
        return parse_slack_ts(self.event_ts)


class ReactionAddedEvent(_ReactionEvent):
    kind: ClassVar[EventKind] = EventKind.REACTION_ADDED


class ReactionRemovedEvent(_ReactionEvent):
    kind: ClassVar[EventKind] = EventKind.REACTION_REMOVED


class UserTypingEvent(RTMEventBase):
    kind: ClassVar[EventKind] = EventKind.USER_TYPING

    channel: str
    user: str


class HelloEvent(RTMEventBase):
    """Sent once by the server when the RTM connection is established."""

    kind: ClassVar[EventKind] = EventKind.CONNECTION_ESTABLISHED


class UnknownEvent(RTMEventBase):
    """Catch-all for unregistered kinds and payloads that failed decoding.

    ``payload`` is the frame exactly as received.  ``error`` is only set
    when ``reason`` is ``DECODE_FAILED``.
    """

    kind: ClassVar[EventKind] = EventKind.UNKNOWN

    discriminant: str
    payload: dict[str, Any] = {}
    reason: UnknownReason = UnknownReason.UNREGISTERED
    error: str | None = None


RTMEvent = Union[
    MessageEvent,
    PresenceChangeEvent,
    ChannelJoinedEvent,
    ChannelLeftEvent,
    ReactionAddedEvent,
    ReactionRemovedEvent,
    UserTypingEvent,
    HelloEvent,
    UnknownEvent,
]

# Default decode targets, keyed by wire discriminant.
EVENT_TYPE_MAP: dict[str, type[RTMEventBase]] = {
    EventKind.MESSAGE.value: MessageEvent,
    EventKind.PRESENCE_CHANGE.value: PresenceChangeEvent,
    EventKind.CHANNEL_JOINED.value: ChannelJoinedEvent,
    EventKind.CHANNEL_LEFT.value: ChannelLeftEvent,
    EventKind.REACTION_ADDED.value: ReactionAddedEvent,
    EventKind.REACTION_REMOVED.value: ReactionRemovedEvent,
    EventKind.USER_TYPING.value: UserTypingEvent,
    EventKind.CONNECTION_ESTABLISHED.value: HelloEvent,
}
