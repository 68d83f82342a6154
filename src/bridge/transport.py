"""
Minimal transport surface the message bus depends on.

A transport exposes a status, an outbound emitter and an inbound stream of
raw strings. ``LoopbackTransport`` is an in-process implementation used for
transcript replay and tests.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Protocol

from loguru import logger

RawHandler = Callable[[str], None]
Unsubscribe = Callable[[], None]


class StreamerStatus(str, Enum):
    """Connection status of the video/control stream."""

    INITIALIZING = "initializing"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RETRYING = "retrying"
    FAILED = "failed"
    DISCONNECTED = "disconnected"
    WITHDRAWN = "withdrawn"


class Emitter(Protocol):
    def emit(self, raw: str) -> None: ...


class MessageStream:
    """Subscribable stream of raw inbound strings."""

    def __init__(self) -> None:
        self._handlers: list[RawHandler] = []

    def subscribe(self, handler: RawHandler) -> Unsubscribe:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def push(self, raw: str) -> None:
        for handler in list(self._handlers):
            handler(raw)

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)


class LoopbackTransport:
    """
    In-process transport.

    Outbound strings are collected in ``sent``; inbound strings are injected
    with ``deliver``.
    """

    def __init__(self) -> None:
        self.status = StreamerStatus.INITIALIZING
        self.stream = MessageStream()
        self.sent: list[str] = []

    def emit(self, raw: str) -> None:
        if self.status != StreamerStatus.CONNECTED:
            logger.debug("Loopback emit while {}: {}", self.status.value, raw)
        self.sent.append(raw)

    def deliver(self, raw: str) -> None:
        self.stream.push(raw)

    async def launch(self) -> None:
        self.status = StreamerStatus.CONNECTED

    def disconnect(self) -> None:
        self.status = StreamerStatus.DISCONNECTED
