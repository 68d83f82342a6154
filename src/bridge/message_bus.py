"""
Message bus between the training core and the engine transport.

Outbound messages are fire-and-forget: with no live emitter they are logged
and dropped. Inbound raw strings are decoded, recorded in a bounded log and
dispatched to subscribers in subscription order.
"""

from __future__ import annotations

import itertools
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import AsyncIterable, Callable

from loguru import logger

from src.bridge.codec import Message, decode, encode, split_raw
from src.bridge.transport import Emitter, MessageStream, Unsubscribe

MessageHandler = Callable[[Message], None]

DEFAULT_LOG_SIZE = 100


class Direction(str, Enum):
    SENT = "sent"
    RECEIVED = "received"


@dataclass
class MessageLogEntry:
    """One logged protocol message."""

    id: int
    direction: Direction
    type: str
    data: str
    raw: str
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "direction": self.direction.value,
            "type": self.type,
            "data": self.data,
            "raw": self.raw,
            "timestamp": self.timestamp.isoformat(),
        }


class MessageBus:
    """
    Bidirectional protocol bus.

    The connected flag latches on the first decoded inbound message and is
    never cleared by the bus itself; stream status belongs to the connection
    layer.
    """

    def __init__(
        self,
        emitter: Emitter | None = None,
        stream: MessageStream | None = None,
        log_size: int = DEFAULT_LOG_SIZE,
        debug: bool = False,
    ):
        self._emitter = emitter
        self._stream_unsubscribe: Unsubscribe | None = None
        self._handlers: list[MessageHandler] = []
        self._log: deque[MessageLogEntry] = deque(maxlen=log_size)
        self._ids = itertools.count(1)
        self._debug = debug
        self.is_connected = False
        self.last_message: Message | None = None
        if stream is not None:
            self._bind_stream(stream)

    # ===== Transport binding =====

    def attach(self, emitter: Emitter | None, stream: MessageStream | None = None) -> None:
        """Bind to a (new) transport, replacing any previous binding."""
        self._emitter = emitter
        if stream is not None:
            self._bind_stream(stream)

    def detach(self) -> None:
        self._emitter = None
        if self._stream_unsubscribe is not None:
            self._stream_unsubscribe()
            self._stream_unsubscribe = None

    def _bind_stream(self, stream: MessageStream) -> None:
        if self._stream_unsubscribe is not None:
            self._stream_unsubscribe()
        self._stream_unsubscribe = stream.subscribe(self.receive_raw)

    # ===== Outbound =====

    def send_message(self, msg_type: str, data: str = "") -> bool:
        """Encode and send a message. Returns True if an emitter accepted it."""
        raw = encode(msg_type, data)
        return self._emit(raw, msg_type, data)

    def send_command(self, command: tuple[str, str]) -> bool:
        return self.send_message(*command)

    def send_raw_message(self, raw: str) -> bool:
        """Send a pre-formatted string without going through the codec."""
        msg_type, data = split_raw(raw)
        return self._emit(raw, msg_type, data)

    def _emit(self, raw: str, msg_type: str, data: str) -> bool:
        delivered = False
        if self._emitter is None:
            logger.warning("Stream not ready, dropping message: {}", raw)
        else:
            try:
                self._emitter.emit(raw)
                delivered = True
            except Exception as e:
                logger.error("Failed to emit {}: {}", raw, e)
        if self._debug:
            logger.debug("-> {}", raw)
        self._append(Direction.SENT, msg_type, data, raw)
        return delivered

    # ===== Inbound =====

    def on_message(self, handler: MessageHandler) -> Unsubscribe:
        """Subscribe to decoded inbound messages. The returned callable is idempotent."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def receive_raw(self, raw: str) -> None:
        message = decode(raw)
        if message is None:
            logger.debug("Dropping malformed message: {!r}", raw)
            return

        if not self.is_connected:
            logger.info("First engine message received, bus connected")
            self.is_connected = True
        if self._debug:
            logger.debug("<- {}", raw)
        self._append(Direction.RECEIVED, message.type, message.data, raw)
        self.last_message = message

        for handler in list(self._handlers):
            try:
                handler(message)
            except Exception:
                logger.exception("Message handler failed for {}", message.type)

    async def pump(self, source: AsyncIterable[str]) -> int:
        """Drain an async source into the bus on the current task. Returns the count read."""
        count = 0
        async for raw in source:
            self.receive_raw(raw)
            count += 1
        return count

    # ===== Log =====

    def _append(self, direction: Direction, msg_type: str, data: str, raw: str) -> None:
        self._log.appendleft(
            MessageLogEntry(
                id=next(self._ids),
                direction=direction,
                type=msg_type,
                data=data,
                raw=raw,
            )
        )

    @property
    def message_log(self) -> list[MessageLogEntry]:
        """Logged messages, newest first."""
        return list(self._log)

    def clear_log(self) -> None:
        self._log.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)
