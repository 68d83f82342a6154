"""
Bridge Module - Engine control channel.

Components:
- codec: ``type:data`` line protocol and typed telegram parsers
- messages: Protocol type tokens and outbound command builders
- message_bus: Outbound/inbound dispatch with a bounded message log
- transport: Minimal transport surface and in-process loopback
- connection: Retrying stream launcher
- events: Named-event pub/sub for cross-feature notifications
"""

from src.bridge.codec import Message, decode, encode
from src.bridge.connection import ConnectionStatus, StreamConnection, StreamConnectionError
from src.bridge.events import EventBus
from src.bridge.message_bus import Direction, MessageBus, MessageLogEntry
from src.bridge.transport import LoopbackTransport, MessageStream, StreamerStatus

__all__ = [
    "Message",
    "decode",
    "encode",
    "ConnectionStatus",
    "StreamConnection",
    "StreamConnectionError",
    "EventBus",
    "Direction",
    "MessageBus",
    "MessageLogEntry",
    "LoopbackTransport",
    "MessageStream",
    "StreamerStatus",
]
