"""Transport layer for Sunbeam.

- Channel: one connectable message endpoint (websocket in production)
- TransportRegistry: one channel per logical role
- ConnectionStateAggregator: single ready signal across all channels
- MessageDispatcher / HookRegistry: inbound routing and push hooks
"""

from sunbeam_core.transport.aggregator import (
    CHANNEL_CONNECTED,
    READY,
    ConnectionStateAggregator,
)
from sunbeam_core.transport.channel import Channel, WebSocketChannel, subscription_message
from sunbeam_core.transport.dispatcher import (
    Hook,
    HookRegistry,
    MessageDispatcher,
    is_event_msg,
    is_info_msg,
)
from sunbeam_core.transport.registry import ChannelStatus, TransportRegistry

__all__ = [
    "CHANNEL_CONNECTED",
    "READY",
    "Channel",
    "ChannelStatus",
    "ConnectionStateAggregator",
    "Hook",
    "HookRegistry",
    "MessageDispatcher",
    "TransportRegistry",
    "WebSocketChannel",
    "is_event_msg",
    "is_info_msg",
    "subscription_message",
]
