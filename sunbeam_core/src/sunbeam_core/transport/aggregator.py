"""Connection-state aggregator.

Folds the lifecycle events of every registered channel into a single
emitter:
- channel-connected: a channel connected for the first time
- ready: every channel has connected at least once (fires once)
- error / message / close: forwarded, tagged with the channel role
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

import structlog

if TYPE_CHECKING:
    from sunbeam_core.common.events import EventEmitter
    from sunbeam_core.transport.registry import TransportRegistry

log = structlog.get_logger()

CHANNEL_CONNECTED = "channel-connected"
READY = "ready"


class ConnectionStateAggregator:
    """Re-emits channel lifecycle events and latches a single ready signal.

    Attributes:
        registry: Registry whose channels are observed.
        target: Emitter that receives the aggregated events.
        ready_event: Name emitted once all channels have connected.
    """

    def __init__(
        self,
        registry: TransportRegistry,
        target: EventEmitter,
        ready_event: str = READY,
    ) -> None:
        self.registry = registry
        self.target = target
        self.ready_event = ready_event
        self._seen: set[str] = set()
        self._ready = False
        self._attached = False

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def connected_roles(self) -> set[str]:
        return set(self._seen)

    def attach(self) -> None:
        """Subscribe to every channel; repeated calls are no-ops."""
        if self._attached:
            return
        self._attached = True

        for role, channel in self.registry.channels.items():
            channel.on("open", self._on_open(role))
            channel.on("error", self._forward("error", role))
            channel.on("message", self._forward("message", role))
            channel.on("close", self._forward("close", role))

    def _on_open(self, role: str) -> Callable[..., None]:
        def handler(*_: Any) -> None:
            self.registry.mark(role, True)
            if role in self._seen:
                return

            self._seen.add(role)
            log.info(
                "Channel connected",
                role=role,
                connected=len(self._seen),
                total=len(self.registry),
            )
            self.target.emit(CHANNEL_CONNECTED, role)

            if not self._ready and len(self._seen) == len(self.registry):
                self._ready = True
                log.info("All channels connected", roles=sorted(self._seen))
                self.target.emit(self.ready_event)

        return handler

    def _forward(self, event: str, role: str) -> Callable[..., None]:
        def handler(*args: Any) -> None:
            self.target.emit(event, *args, role)

        return handler
