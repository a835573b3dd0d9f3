"""Shared test fixtures for rtmkit."""

from __future__ import annotations

import json
import os
from collections.abc import Callable
from typing import Any

import pytest

from rtmkit.config import StreamConfig
from rtmkit.core.dispatcher import TypedDispatcher
from rtmkit.core.envelope_decoder import decode_frame
from rtmkit.core.event_stream import EventStream
from rtmkit.core.registry import EventTypeRegistry, default_registry
from rtmkit.models.envelope import Envelope
from rtmkit.models.events import MessageEvent


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep RTMKIT_* variables and stray .env files out of StreamConfig."""
    for key in list(os.environ):
        if key.startswith("RTMKIT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings() -> StreamConfig:
    """Provide default stream settings."""
    return StreamConfig()


@pytest.fixture
def registry() -> EventTypeRegistry:
    """Provide a fresh registry with every built-in kind."""
    return default_registry()


@pytest.fixture
def dispatcher(registry: EventTypeRegistry) -> TypedDispatcher:
    """Provide a dispatcher over the default registry."""
    return TypedDispatcher(registry)


@pytest.fixture
def stream() -> EventStream:
    """Provide a small blocking stream."""
    return EventStream(capacity=4)


# ---------------------------------------------------------------------------
# Frame / envelope / event factories — shared across test modules
# ---------------------------------------------------------------------------


@pytest.fixture
def make_frame() -> Callable[..., bytes]:
    """Factory fixture: build a raw JSON frame from keyword fields."""

    def _factory(frame_type: str | None = "message", **fields: Any) -> bytes:
        data: dict[str, Any] = {}
        if frame_type is not None:
            data["type"] = frame_type
        data.update(fields)
        return json.dumps(data).encode("utf-8")

    return _factory


@pytest.fixture
def make_envelope(make_frame: Callable[..., bytes]) -> Callable[..., Envelope]:
    """Factory fixture: build an Envelope through the real decoder."""

    def _factory(frame_type: str = "message", **fields: Any) -> Envelope:
        return decode_frame(make_frame(frame_type, **fields))

    return _factory


@pytest.fixture
def make_message() -> Callable[..., MessageEvent]:
    """Factory fixture: build a MessageEvent with sensible defaults."""

    def _factory(text: str = "hi", **overrides: Any) -> MessageEvent:
        defaults: dict[str, Any] = {"channel": "C1", "user": "U1", "text": text}
        defaults.update(overrides)
        return MessageEvent(**defaults)

    return _factory
