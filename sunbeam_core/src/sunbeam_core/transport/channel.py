"""Message channels for Sunbeam.

A channel is one independently connectable, message-based endpoint.
The protocol layer only relies on the narrow Channel contract below;
the websocket implementation is the production transport.

Lifecycle events emitted by every channel:
- open: connection established
- close: connection gone (requested or dropped)
- error: transport or decode failure
- message: one decoded inbound message
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Final, Protocol, runtime_checkable

import structlog
import websockets
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from websockets.exceptions import ConnectionClosed, WebSocketException

from sunbeam_core.common.events import EventEmitter

log = structlog.get_logger()


# ==============================================================================
# Constants
# ==============================================================================
DEFAULT_CONNECT_ATTEMPTS: Final[int] = 3
DEFAULT_OPEN_TIMEOUT: Final[float] = 10.0
DEFAULT_RETRY_MIN_WAIT: Final[float] = 0.5
DEFAULT_RETRY_MAX_WAIT: Final[float] = 5.0


# ==============================================================================
# Channel Protocol
# ==============================================================================
@runtime_checkable
class Channel(Protocol):
    """Protocol for message channels.

    Implementations are event emitters publishing open/close/error/message.
    """

    url: str

    def on(self, event: str, listener: Any) -> Any: ...

    def set_max_listeners(self, n: int) -> None: ...

    async def open(self) -> None:
        """Connect the channel."""
        ...

    async def close(self) -> None:
        """Disconnect the channel; resolves once closure is confirmed."""
        ...

    async def send(self, message: Any) -> None:
        """Send one message."""
        ...

    async def subscribe(self, topic: str, args: dict[str, Any] | None = None) -> Any:
        """Subscribe to a server-side topic."""
        ...

    async def unsubscribe(self, topic: str, args: dict[str, Any] | None = None) -> Any:
        """Unsubscribe from a server-side topic."""
        ...


def subscription_message(event: str, topic: str, args: dict[str, Any] | None) -> dict[str, Any]:
    """Build a subscribe/unsubscribe request body."""
    return {"event": event, "channel": topic, **(args or {})}


# ==============================================================================
# Websocket Channel
# ==============================================================================
class WebSocketChannel(EventEmitter):
    """Websocket-backed channel exchanging JSON messages.

    Only the initial handshake is retried. A connection that drops after
    being established is reported with ``close`` and left closed.

    Attributes:
        url: Endpoint address.
        connect_attempts: Handshake attempts before giving up.
        open_timeout: Seconds allowed for a single handshake.
    """

    def __init__(
        self,
        url: str,
        connect_attempts: int = DEFAULT_CONNECT_ATTEMPTS,
        open_timeout: float = DEFAULT_OPEN_TIMEOUT,
    ) -> None:
        super().__init__()
        self.url = url
        self.connect_attempts = max(1, connect_attempts)
        self.open_timeout = open_timeout
        self._ws: Any = None
        self._reader: asyncio.Task[None] | None = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def open(self) -> None:
        """Connect and start reading; emits ``open`` once connected."""
        if self._ws is not None:
            return

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.connect_attempts),
                wait=wait_exponential(
                    multiplier=1,
                    min=DEFAULT_RETRY_MIN_WAIT,
                    max=DEFAULT_RETRY_MAX_WAIT,
                ),
                retry=retry_if_exception_type(
                    (OSError, asyncio.TimeoutError, WebSocketException)
                ),
                before_sleep=lambda rs: log.warning(
                    "Retrying channel handshake",
                    url=self.url,
                    attempt=rs.attempt_number,
                ),
                reraise=True,
            ):
                with attempt:
                    self._ws = await websockets.connect(
                        self.url,
                        open_timeout=self.open_timeout,
                    )
        except Exception as exc:
            log.error("Channel handshake failed", url=self.url, error=str(exc))
            self.emit("error", exc)
            raise

        self._reader = asyncio.create_task(self._read_loop())
        log.info("Channel connected", url=self.url)
        self.emit("open")

    async def close(self) -> None:
        """Close the connection and wait for the reader to finish."""
        ws, reader = self._ws, self._reader
        if ws is None:
            return

        await ws.close()
        if reader is not None:
            await reader

    async def send(self, message: Any) -> None:
        if self._ws is None:
            msg = f"Channel {self.url} is not connected"
            raise ConnectionError(msg)
        await self._ws.send(json.dumps(message))

    async def subscribe(self, topic: str, args: dict[str, Any] | None = None) -> Any:
        payload = subscription_message("subscribe", topic, args)
        await self.send(payload)
        return payload

    async def unsubscribe(self, topic: str, args: dict[str, Any] | None = None) -> Any:
        payload = subscription_message("unsubscribe", topic, args)
        await self.send(payload)
        return payload

    async def _read_loop(self) -> None:
        ws = self._ws
        reason: Any = None
        dropped = False
        try:
            async for raw in ws:
                try:
                    message = json.loads(raw)
                except ValueError as exc:
                    log.warning("Dropping undecodable frame", url=self.url, error=str(exc))
                    self.emit("error", exc)
                    continue

                try:
                    self.emit("message", message)
                except Exception as exc:
                    log.exception("Message listener failed", url=self.url)
                    self.emit("error", exc)
        except ConnectionClosed as exc:
            reason = exc
            dropped = True
            log.warning("Channel dropped", url=self.url, error=str(exc))
        except Exception as exc:
            reason = exc
            log.exception("Channel reader failed", url=self.url)
        finally:
            self._ws = None
            self._reader = None
            if not dropped:
                await ws.close()
            log.info("Channel closed", url=self.url)
            self.emit("close", reason)
