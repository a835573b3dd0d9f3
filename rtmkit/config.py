"""Stream configuration — env-driven via pydantic-settings.

Reads ``RTMKIT_*`` environment variables and an optional ``.env`` file.

Examples
--------
Override via environment::

    export RTMKIT_BUFFER_CAPACITY=256
    export RTMKIT_BACKPRESSURE_POLICY=drop_oldest
    export RTMKIT_UNKNOWN_EVENT_LOGGING=false

Or via .env file::

    RTMKIT_MALFORMED_FRAME_POLICY=terminate
    RTMKIT_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from rtmkit.models.stream import BackpressurePolicy, MalformedFramePolicy


class StreamConfig(BaseSettings):
    """Options recognised by the event ingestion core."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="RTMKIT_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Event stream
    buffer_capacity: int = Field(default=64, gt=0)
    backpressure_policy: BackpressurePolicy = BackpressurePolicy.BLOCK
    append_timeout_seconds: float | None = Field(default=None, gt=0)

    # Dispatch
    unknown_event_logging: bool = True

    # Session
    malformed_frame_policy: MalformedFramePolicy = MalformedFramePolicy.SKIP

    # Observability
    log_level: str = "INFO"

    @property
    def drops_under_pressure(self) -> bool:
        """Whether the configured policy may discard events."""
        return self.backpressure_policy is BackpressurePolicy.DROP_OLDEST


# Module-level singleton — import as `from rtmkit.config import config`
config = StreamConfig()
