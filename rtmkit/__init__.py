"""rtmkit: typed event ingestion for team-chat real-time messaging streams.

Raw RTM frames are decoded into envelopes, dispatched through an
extensible event type registry into typed event variants, and delivered
in order through a bounded, cancellable event stream:

  - Envelope decoding with forward-compatible payload preservation
  - Registry-driven typed dispatch that degrades to ``UnknownEvent``
  - ``EventStream`` with blocking or drop-oldest backpressure
  - ``RTMSession`` tying a frame source to the stream
"""

__version__ = "0.1.0"
__description__ = "Typed event ingestion for team-chat real-time messaging streams"

from rtmkit.config import StreamConfig
from rtmkit.core.dispatcher import TypedDispatcher
from rtmkit.core.envelope_decoder import MalformedFrame, decode_frame
from rtmkit.core.event_stream import Cancelled, EventStream, StreamClosed, StreamFull
from rtmkit.core.registry import EventTypeRegistry, default_registry
from rtmkit.errors import RTMError
from rtmkit.session import RTMSession

__all__ = [
    "RTMSession",
    "EventStream",
    "TypedDispatcher",
    "EventTypeRegistry",
    "default_registry",
    "decode_frame",
    "StreamConfig",
    "RTMError",
    "MalformedFrame",
    "StreamClosed",
    "StreamFull",
    "Cancelled",
    "__version__",
]
