"""rtmkit data models — pydantic v2, frozen (immutable)."""

from rtmkit.models.envelope import Envelope
from rtmkit.models.events import (
    EVENT_TYPE_MAP,
    ChannelInfo,
    ChannelJoinedEvent,
    ChannelLeftEvent,
    Comment,
    Edited,
    EventKind,
    HelloEvent,
    Icon,
    ItemReaction,
    MessageEvent,
    Presence,
    PresenceChangeEvent,
    ReactionAddedEvent,
    ReactionItem,
    ReactionRemovedEvent,
    RTMEvent,
    RTMEventBase,
    UnknownEvent,
    UnknownReason,
    UserTypingEvent,
    parse_slack_ts,
)
from rtmkit.models.stream import (
    VALID_STREAM_TRANSITIONS,
    BackpressurePolicy,
    MalformedFramePolicy,
    StreamState,
)

__all__ = [
    # envelope
    "Envelope",
    # events
    "EventKind",
    "Presence",
    "UnknownReason",
    "RTMEvent",
    "RTMEventBase",
    "MessageEvent",
    "PresenceChangeEvent",
    "ChannelJoinedEvent",
    "ChannelLeftEvent",
    "ReactionAddedEvent",
    "ReactionRemovedEvent",
    "UserTypingEvent",
    "HelloEvent",
    "UnknownEvent",
    "EVENT_TYPE_MAP",
    "parse_slack_ts",
    # nested shapes
    "ChannelInfo",
    "Comment",
    "Edited",
    "Icon",
    "ItemReaction",
    "ReactionItem",
    # stream
    "StreamState",
    "VALID_STREAM_TRANSITIONS",
    "BackpressurePolicy",
    "MalformedFramePolicy",
]
