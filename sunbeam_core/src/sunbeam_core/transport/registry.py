"""Transport registry: one channel per logical role.

The registry owns every channel for the lifetime of the client. It performs
no retries and no reconnects; a failing channel surfaces its error to the
caller and through its ``error`` event.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from sunbeam_core.common.errors import MissingTransportError
from sunbeam_core.transport.channel import Channel, WebSocketChannel

log = structlog.get_logger()

ChannelFactory = Callable[[str], Channel]


@dataclass
class ChannelStatus:
    """Recorded connection state of one channel."""

    connected: bool = False


class TransportRegistry:
    """Maps channel roles to channels and forwards operations to them.

    Attributes:
        channels: Role name to channel.
        status: Role name to recorded connection state.
    """

    def __init__(
        self,
        urls: Mapping[str, str],
        channel_factory: ChannelFactory | None = None,
    ) -> None:
        """Build one channel per configured role.

        Args:
            urls: Role name to endpoint address.
            channel_factory: Builds a channel for an address; defaults to
                WebSocketChannel.
        """
        factory = channel_factory or WebSocketChannel
        self.channels: dict[str, Channel] = {role: factory(url) for role, url in urls.items()}
        self.status: dict[str, ChannelStatus] = {role: ChannelStatus() for role in self.channels}

        for role, channel in self.channels.items():
            channel.on("close", self._on_closed(role))

    @property
    def roles(self) -> list[str]:
        return list(self.channels)

    def __contains__(self, role: object) -> bool:
        return role in self.channels

    def __len__(self) -> int:
        return len(self.channels)

    def get(self, role: str) -> Channel:
        """Return the channel for ``role``.

        Raises:
            MissingTransportError: If the role is unknown.
        """
        channel = self.channels.get(role)
        if channel is None:
            raise MissingTransportError(role)
        return channel

    def mark(self, role: str, connected: bool) -> None:
        self.status[role] = ChannelStatus(connected=connected)

    def is_connected(self, role: str) -> bool:
        status = self.status.get(role)
        return bool(status and status.connected)

    def set_max_listeners(self, n: int) -> None:
        for channel in self.channels.values():
            channel.set_max_listeners(n)

    async def open(self) -> None:
        """Ask every channel to connect."""
        await asyncio.gather(*(channel.open() for channel in self.channels.values()))

    async def close(self) -> None:
        """Ask every channel to disconnect.

        A channel is marked disconnected by its ``close`` event, i.e. only
        once it has confirmed the closure.
        """
        await asyncio.gather(*(channel.close() for channel in self.channels.values()))

    async def send(self, role: str, message: Any) -> None:
        """Send ``message`` on the channel for ``role``.

        Raises:
            MissingTransportError: If the role is unknown. Nothing is sent.
        """
        channel = self.get(role)
        log.debug("Sending message", role=role)
        await channel.send(message)

    async def subscribe(self, role: str, topic: str, args: dict[str, Any] | None = None) -> Any:
        return await self.get(role).subscribe(topic, args or {})

    async def unsubscribe(self, role: str, topic: str, args: dict[str, Any] | None = None) -> Any:
        return await self.get(role).unsubscribe(topic, args or {})

    def _on_closed(self, role: str) -> Callable[..., None]:
        def handler(*_: Any) -> None:
            self.mark(role, False)

        return handler
