"""
Stream connection lifecycle.

Launches the engine stream with a bounded number of attempts, binds the
message bus to each new transport and reports a terminal failure once the
attempts are exhausted.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Protocol

from loguru import logger

from src.bridge.message_bus import MessageBus
from src.bridge.transport import MessageStream, StreamerStatus


class StreamConnectionError(Exception):
    """Raised when the stream could not be launched after all retries."""


class ConnectionStatus(str, Enum):
    INITIALIZING = "initializing"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"
    RETRYING = "retrying"


class StreamTransport(Protocol):
    stream: MessageStream

    def emit(self, raw: str) -> None: ...


Launcher = Callable[[], Awaitable[StreamTransport]]

# streamer status -> session end reason
_END_REASONS = {
    StreamerStatus.DISCONNECTED: "disconnected",
    StreamerStatus.WITHDRAWN: "withdrawn",
}


class StreamConnection:
    """
    Retrying launcher for the engine stream.

    A successful launch leaves the connection in ``connecting`` until the
    streamer reports ``connected`` through ``handle_streamer_status``.
    """

    def __init__(
        self,
        launcher: Launcher,
        bus: MessageBus,
        max_retries: int = 3,
        retry_delay_ms: int = 2000,
        on_error: Callable[[str], None] | None = None,
        on_connected: Callable[[], None] | None = None,
        on_session_end: Callable[[str], None] | None = None,
    ):
        self._launcher = launcher
        self._bus = bus
        self.max_retries = max_retries
        self.retry_delay = retry_delay_ms / 1000.0
        self.on_error = on_error
        self.on_connected = on_connected
        self.on_session_end = on_session_end

        self.status = ConnectionStatus.INITIALIZING
        self.retry_count = 0
        self.last_error: str | None = None
        self.transport: StreamTransport | None = None
        self._connected = asyncio.Event()

    @property
    def is_retrying(self) -> bool:
        return self.status == ConnectionStatus.RETRYING

    async def connect(self) -> bool:
        """
        Launch the stream, retrying with a fixed delay.

        Returns True once a transport is bound. After the final failed
        attempt the status is ``failed`` and ``on_error`` is called.
        """
        for attempt in range(1, self.max_retries + 1):
            self.status = ConnectionStatus.RETRYING if attempt > 1 else ConnectionStatus.INITIALIZING
            try:
                transport = await self._launcher()
            except Exception as e:
                self.last_error = str(e) or e.__class__.__name__
                logger.warning(
                    "Stream launch attempt {}/{} failed: {}",
                    attempt,
                    self.max_retries,
                    self.last_error,
                )
                if attempt < self.max_retries:
                    self.retry_count = attempt
                    logger.info("Retrying in {:.1f}s...", self.retry_delay)
                    await asyncio.sleep(self.retry_delay)
                continue

            self.transport = transport
            self._bus.attach(transport, transport.stream)
            self.status = ConnectionStatus.CONNECTING
            self.retry_count = 0
            self.last_error = None
            logger.info("Stream launched on attempt {}", attempt)
            return True

        self.status = ConnectionStatus.FAILED
        message = (
            f"Unable to connect to stream after {self.max_retries} attempts"
            + (f": {self.last_error}" if self.last_error else "")
        )
        logger.error(message)
        if self.on_error:
            self.on_error(message)
        return False

    def handle_streamer_status(self, status: StreamerStatus) -> None:
        """React to a status change reported by the streamer."""
        if status == StreamerStatus.CONNECTED:
            self.status = ConnectionStatus.CONNECTED
            self.retry_count = 0
            self._connected.set()
            if self.on_connected:
                self.on_connected()
            return

        if status == StreamerStatus.FAILED:
            self._connected.clear()
            self.status = ConnectionStatus.FAILED
            logger.warning("Streamer reported failure (retry {}/{})", self.retry_count, self.max_retries)
            return

        reason = _END_REASONS.get(status)
        if reason is not None:
            self._connected.clear()
            self._bus.detach()
            logger.info("Stream session ended: {}", reason)
            if self.on_session_end:
                self.on_session_end(reason)

    async def wait_connected(self, timeout: float | None = None) -> None:
        """Block until the streamer reports connected."""
        if self.status == ConnectionStatus.FAILED:
            raise StreamConnectionError(self.last_error or "stream failed")
        try:
            await asyncio.wait_for(self._connected.wait(), timeout)
        except asyncio.TimeoutError as e:
            raise StreamConnectionError("Timed out waiting for stream") from e

    async def retry(self) -> bool:
        """Manual retry after a terminal failure."""
        self.retry_count = 0
        self._bus.detach()
        return await self.connect()
