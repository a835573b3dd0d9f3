"""Tests for TypedDispatcher — typed decode, graceful degradation, stats."""

from __future__ import annotations

import logging

import pytest

from rtmkit.core.dispatcher import TypedDispatcher
from rtmkit.core.registry import EventTypeRegistry
from rtmkit.models.events import (
    ChannelJoinedEvent,
    ChannelLeftEvent,
    EventKind,
    HelloEvent,
    MessageEvent,
    Presence,
    PresenceChangeEvent,
    ReactionAddedEvent,
    ReactionRemovedEvent,
    UnknownEvent,
    UnknownReason,
    UserTypingEvent,
)


class TestKnownKinds:
    def test_presence_change(self, dispatcher, make_envelope):
        event = dispatcher.dispatch(
            make_envelope("presence_change", user="U1", presence="active")
        )
        assert isinstance(event, PresenceChangeEvent)
        assert event.kind is EventKind.PRESENCE_CHANGE
        assert event.user == "U1"
        assert event.presence is Presence.ACTIVE

    def test_message(self, dispatcher, make_envelope):
        event = dispatcher.dispatch(
            make_envelope("message", channel="C1", text="hi", user="U2")
        )
        assert isinstance(event, MessageEvent)
        assert event.kind is EventKind.MESSAGE
        assert (event.channel, event.text, event.user) == ("C1", "hi", "U2")

    def test_batched_presence_change(self, dispatcher, make_envelope):
        event = dispatcher.dispatch(
            make_envelope("presence_change", users=["U1", "U2"], presence="away")
        )
        assert isinstance(event, PresenceChangeEvent)
        assert event.users == ["U1", "U2"]

    def test_numeric_timestamps_agree_with_envelope(self, dispatcher, make_envelope):
        envelope = make_envelope("message", channel="C1", text="hi", ts=1355517523.5)
        event = dispatcher.dispatch(envelope)
        assert isinstance(event, MessageEvent)
        assert event.ts == envelope.ts == "1355517523.5"
        assert event.timestamp is not None

    def test_message_subtype_fields(self, dispatcher, make_envelope):
        event = dispatcher.dispatch(make_envelope(
            "message",
            channel="C1",
            subtype="bot_message",
            bot_id="B1",
            username="deploybot",
            icons={"icon_emoji": ":rocket:"},
            edited={"ts": "1.2", "user": "U3"},
            reactions=[{"name": "tada", "count": 2, "users": ["U1", "U2"]}],
        ))
        assert event.subtype == "bot_message"
        assert event.bot_id == "B1"
        assert event.icons.icon_emoji == ":rocket:"
        assert event.edited.user == "U3"
        assert event.reactions[0].count == 2

    def test_channel_joined(self, dispatcher, make_envelope):
        event = dispatcher.dispatch(
            make_envelope("channel_joined", channel={"id": "C5", "name": "ops"})
        )
        assert isinstance(event, ChannelJoinedEvent)
        assert event.channel.id == "C5"
        assert event.channel.name == "ops"

    def test_channel_left(self, dispatcher, make_envelope):
        event = dispatcher.dispatch(make_envelope("channel_left", channel="C5"))
        assert isinstance(event, ChannelLeftEvent)
        assert event.channel == "C5"

    @pytest.mark.parametrize(
        ("frame_type", "cls"),
        [
            ("reaction_added", ReactionAddedEvent),
            ("reaction_removed", ReactionRemovedEvent),
        ],
    )
    def test_reactions(self, dispatcher, make_envelope, frame_type, cls):
        event = dispatcher.dispatch(make_envelope(
            frame_type,
            user="U1",
            reaction="thumbsup",
            item={"type": "message", "channel": "C1", "ts": "10.1"},
            item_user="U2",
            event_ts="10.2",
        ))
        assert isinstance(event, cls)
        assert event.kind.value == frame_type
        assert event.item.channel == "C1"
        assert event.item_user == "U2"

    def test_user_typing(self, dispatcher, make_envelope):
        event = dispatcher.dispatch(make_envelope("user_typing", channel="C1", user="U1"))
        assert isinstance(event, UserTypingEvent)

    def test_hello(self, dispatcher, make_envelope):
        event = dispatcher.dispatch(make_envelope("hello"))
        assert isinstance(event, HelloEvent)
        assert event.kind is EventKind.CONNECTION_ESTABLISHED


class TestGracefulDegradation:
    def test_unregistered_kind(self, dispatcher, make_envelope):
        env = make_envelope("future_feature_xyz", foo="bar")
        event = dispatcher.dispatch(env)
        assert isinstance(event, UnknownEvent)
        assert event.discriminant == "future_feature_xyz"
        assert event.reason is UnknownReason.UNREGISTERED
        assert event.payload == {"type": "future_feature_xyz", "foo": "bar"}
        assert event.error is None

    def test_missing_required_field(self, dispatcher, make_envelope):
        event = dispatcher.dispatch(make_envelope("presence_change", user="U1"))
        assert isinstance(event, UnknownEvent)
        assert event.discriminant == "presence_change"
        assert event.reason is UnknownReason.DECODE_FAILED
        assert "presence" in event.error

    def test_wrong_field_type(self, dispatcher, make_envelope):
        event = dispatcher.dispatch(make_envelope("channel_joined", channel="C1"))
        assert isinstance(event, UnknownEvent)
        assert event.reason is UnknownReason.DECODE_FAILED

    def test_unknown_presence_value(self, dispatcher, make_envelope):
        event = dispatcher.dispatch(
            make_envelope("presence_change", user="U1", presence="invisible")
        )
        assert isinstance(event, UnknownEvent)

    def test_raising_custom_decoder(self, make_envelope):
        registry = EventTypeRegistry()

        def explode(envelope):
            raise KeyError("boom")

        registry.register("message", explode)
        event = TypedDispatcher(registry).dispatch(make_envelope("message"))
        assert isinstance(event, UnknownEvent)
        assert event.reason is UnknownReason.DECODE_FAILED
        assert "boom" in event.error

    def test_decoder_returning_non_event(self, make_envelope):
        registry = EventTypeRegistry()
        registry.register("message", lambda env: {"not": "an event"})
        event = TypedDispatcher(registry).dispatch(make_envelope("message"))
        assert isinstance(event, UnknownEvent)
        assert "dict" in event.error

    def test_extra_fields_ignored(self, dispatcher, make_envelope):
        event = dispatcher.dispatch(make_envelope(
            "user_typing", channel="C1", user="U1", brand_new_field=True
        ))
        assert isinstance(event, UserTypingEvent)


class TestObservability:
    def test_on_unknown_hook_receives_events(self, registry, make_envelope):
        seen: list[UnknownEvent] = []
        dispatcher = TypedDispatcher(registry, on_unknown=seen.append)
        dispatcher.dispatch(make_envelope("mystery"))
        dispatcher.dispatch(make_envelope("hello"))
        assert [e.discriminant for e in seen] == ["mystery"]

    def test_failing_hook_does_not_propagate(self, registry, make_envelope):
        def bad_hook(event):
            raise RuntimeError("sink down")

        dispatcher = TypedDispatcher(registry, on_unknown=bad_hook)
        event = dispatcher.dispatch(make_envelope("mystery"))
        assert isinstance(event, UnknownEvent)

    def test_decode_failure_logged(self, dispatcher, make_envelope, caplog):
        with caplog.at_level(logging.WARNING, logger="rtmkit.core.dispatcher"):
            dispatcher.dispatch(make_envelope("user_typing", user="U1"))
        assert "Failed to decode 'user_typing'" in caplog.text

    def test_logging_can_be_disabled(self, registry, make_envelope, caplog):
        dispatcher = TypedDispatcher(registry, unknown_event_logging=False)
        with caplog.at_level(logging.DEBUG, logger="rtmkit.core.dispatcher"):
            dispatcher.dispatch(make_envelope("user_typing", user="U1"))
            dispatcher.dispatch(make_envelope("mystery"))
        assert "Failed to decode" not in caplog.text
        assert "Unregistered" not in caplog.text

    def test_stats(self, dispatcher, make_envelope):
        dispatcher.dispatch(make_envelope("hello"))
        dispatcher.dispatch(make_envelope("message", channel="C1"))
        dispatcher.dispatch(make_envelope("message"))  # no channel
        dispatcher.dispatch(make_envelope("mystery"))
        stats = dispatcher.get_stats()
        assert stats["dispatched"] == 4
        assert stats["unknown"] == 2
        assert stats["decode_failures"] == 1
        assert stats["by_kind"] == {"hello": 1, "message": 1, "unknown": 2}
