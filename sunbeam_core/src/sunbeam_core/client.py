"""Sunbeam client: the produced surface of the protocol layer.

Wires the components together, leaves first:

    TransportRegistry -> ConnectionStateAggregator -> RequestCorrelator
        -> AuthStateMachine -> OrderPipeline

Events emitted by the client:
- channel-connected(role): a channel connected for the first time
- ready / open: every channel has connected at least once (once)
- close(reason, role), error(exc, role), message(msg, role)
- ci(data): chain info push
- ct-<uuid>(msg): transaction verification reply
- _auth(msg): authentication reply or authentication error
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from functools import partial
from typing import Any

import structlog

from sunbeam_core.auth.identity import Credentials, IdentityProvider, TransactionSigner
from sunbeam_core.auth.machine import AUTH_NAMESPACE, CHAIN_NAMESPACE, AuthStateMachine
from sunbeam_core.auth.session import SessionContext
from sunbeam_core.common.errors import SunbeamError
from sunbeam_core.common.events import EventEmitter
from sunbeam_core.common.types import Account, BookSide, NetworkDescriptor
from sunbeam_core.config import PRIVATE_ROLE, PUBLIC_ROLE, ClientConfig
from sunbeam_core.orders.order import OrderParams, get_scope
from sunbeam_core.orders.pipeline import OrderPipeline, Submission, verify_namespace
from sunbeam_core.protocol.correlator import ReplyCallback, RequestCorrelator, RequestId
from sunbeam_core.transport.aggregator import READY, ConnectionStateAggregator
from sunbeam_core.transport.channel import WebSocketChannel
from sunbeam_core.transport.dispatcher import Hook, HookRegistry, MessageDispatcher
from sunbeam_core.transport.registry import ChannelFactory, TransportRegistry

log = structlog.get_logger()


class SunbeamClient(EventEmitter):
    """Client for an authenticated venue reachable over several channels.

    Attributes:
        config: Validated client configuration.
        registry: Channel per role.
        correlator: Request/response correlation table.
        session: Active account, session keys, chain metadata.
        authenticator: Authentication state machine.
        orders: Order submission pipeline.
        dispatcher: Inbound message dispatcher.
        hooks: Declared and minted dispatch hooks.
    """

    def __init__(
        self,
        config: ClientConfig | Mapping[str, Any],
        signer: TransactionSigner | None = None,
        identity_provider: IdentityProvider | None = None,
        chain_client: Any = None,
        channel_factory: ChannelFactory | None = None,
    ) -> None:
        """Build every component; nothing connects until ``open()``.

        Args:
            config: ClientConfig or a mapping validated into one.
            signer: External transaction signer.
            identity_provider: External interactive identity provider.
            chain_client: Opaque chain client handed to the provider.
            channel_factory: Builds a channel for an address.
        """
        super().__init__()
        if not isinstance(config, ClientConfig):
            config = ClientConfig.from_mapping(config)
        self.config = config

        factory = channel_factory or partial(
            WebSocketChannel,
            connect_attempts=config.connect_attempts,
        )
        self.registry = TransportRegistry(config.urls, factory)
        if config.max_listeners is not None:
            self.set_max_listeners(config.max_listeners)

        self.correlator = RequestCorrelator(self.registry.send)
        self.session = SessionContext()
        self.authenticator = AuthStateMachine(
            config,
            self.session,
            self.correlator,
            signer=signer,
            identity_provider=identity_provider,
            client=chain_client,
        )
        self.orders = OrderPipeline(self.authenticator, self.correlator, self.registry)

        self.dispatcher = MessageDispatcher(custom_handler=self.handle_rpc_calls)
        self.hooks = HookRegistry(self.dispatcher, config.hooks)

        self.aggregator = ConnectionStateAggregator(self.registry, self)
        self.aggregator.attach()
        self.on(READY, self._on_ready)
        self.on("message", self._on_message)

    # --------------------------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------------------------
    @property
    def ready(self) -> bool:
        return self.aggregator.ready

    def set_max_listeners(self, n: int) -> None:
        super().set_max_listeners(n)
        self.registry.set_max_listeners(n)

    async def start(self) -> None:
        """Connect every channel."""
        log.info("Starting client", roles=self.registry.roles)
        await self.registry.open()

    async def open(self) -> None:
        await self.start()

    async def close(self) -> None:
        """Disconnect every channel and fail outstanding requests."""
        log.info("Closing client", roles=self.registry.roles)
        cancelled = self.correlator.cancel_all(SunbeamError("Client closed"))
        if cancelled:
            log.warning("Cancelled in-flight requests", count=cancelled)
        await self.registry.close()

    async def wait_ready(self, timeout: float | None = None) -> None:
        """Wait until every channel has connected at least once."""
        if self.ready:
            return
        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def _set(*_: Any) -> None:
            if not fut.done():
                fut.set_result(None)

        self.once(READY, _set)
        try:
            await asyncio.wait_for(fut, timeout)
        finally:
            self.off(READY, _set)

    # --------------------------------------------------------------------------
    # Transport
    # --------------------------------------------------------------------------
    async def send(self, role: str, message: Any) -> None:
        await self.registry.send(role, message)

    async def subscribe(self, role: str, channel: str, args: dict[str, Any] | None = None) -> Any:
        return await self.registry.subscribe(role, channel, args)

    async def unsubscribe(self, role: str, channel: str, args: dict[str, Any] | None = None) -> Any:
        return await self.registry.unsubscribe(role, channel, args)

    async def subscribe_public_trades(self, symbol: str) -> Any:
        return await self.subscribe(PUBLIC_ROLE, "trades", {"symbol": symbol})

    async def subscribe_orderbook(self, symbol: str) -> Any:
        return await self.subscribe(PUBLIC_ROLE, "book", {"symbol": symbol})

    async def unsubscribe_orderbook(self, symbol: str) -> Any:
        return await self.unsubscribe(PUBLIC_ROLE, "book", {"symbol": symbol})

    async def subscribe_wallet(self) -> Any:
        """Subscribe to wallet updates of the active account."""
        account = await self.get_auth()
        return await self.subscribe(PRIVATE_ROLE, "wallets", {"account": account.account})

    async def send_req_res(
        self,
        role: str,
        request_id: RequestId,
        timeout_ms: float,
        payload: Any,
        namespace: str,
        callback: ReplyCallback | None = None,
    ) -> Any:
        """Send a correlated request; see RequestCorrelator.send_request."""
        return await self.correlator.send_request(
            role, request_id, timeout_ms, payload, namespace, callback
        )

    # --------------------------------------------------------------------------
    # Authentication
    # --------------------------------------------------------------------------
    @property
    def account(self) -> Account | None:
        return self.session.account

    def set_auth(self, credentials: Credentials | Mapping[str, Any]) -> None:
        self.authenticator.set_auth(_credentials(credentials))

    async def auth(self, credentials: Credentials | Mapping[str, Any] | None = None) -> Account:
        """Authenticate and store the session keys issued by the venue."""
        if credentials is not None:
            credentials = _credentials(credentials)
        return await self.authenticator.auth(credentials)

    async def get_auth(self) -> Account:
        return await self.authenticator.get_auth()

    async def get_signed_tx(self, account: Account | None = None) -> Any:
        return await self.authenticator.get_signed_tx(account)

    async def request_chain_meta(self, role: str = PRIVATE_ROLE) -> Any:
        return await self.authenticator.request_chain_meta(role)

    async def get_chain_id(self, role: str = PRIVATE_ROLE) -> str:
        return await self.authenticator.get_chain_id(role)

    async def get_network(self, role: str = PRIVATE_ROLE) -> NetworkDescriptor:
        return await self.authenticator.get_network(role)

    # --------------------------------------------------------------------------
    # Orders
    # --------------------------------------------------------------------------
    async def place(self, order: OrderParams | Mapping[str, Any]) -> Submission:
        return await self.orders.place(order)

    async def cancel(self, order: Mapping[str, Any] | Any) -> Submission:
        """Cancel by ``{"id": ...}`` or by bare id."""
        order_id = order["id"] if isinstance(order, Mapping) else order
        return await self.orders.cancel(order_id)

    async def verify_tx(
        self,
        meta: Any,
        uuid: Any,
        opts: Mapping[str, Any] | None = None,
    ) -> Any:
        request_timeout = (opts or {}).get("request_timeout") or (opts or {}).get("requestTimeout")
        return await self.orders.verify_tx(meta, uuid, request_timeout)

    @staticmethod
    def get_scope(symbol: str, side: BookSide | str) -> str:
        return get_scope(symbol, side)

    # --------------------------------------------------------------------------
    # Inbound routing
    # --------------------------------------------------------------------------
    def hook(self, name: str) -> Hook:
        """Dispatch hook called ``name`` (e.g. ``onWalletUpdate``)."""
        return self.hooks.resolve(name)

    def handle_rpc_calls(self, message: Any) -> bool:
        """Route replies to waiting requests; True if consumed."""
        if self.dispatcher.is_info_msg(message):
            return self.handle_info_msg(message)

        if self.dispatcher.is_event_msg(message):
            if message.get("channel") == "auth" and message.get("event") == "error":
                self._publish(AUTH_NAMESPACE, message)
                return True

            if message.get("event") == "auth":
                self._publish(AUTH_NAMESPACE, message)

        return False

    def handle_info_msg(self, message: Any) -> bool:
        _, kind, data = message[0], message[1], message[2]

        if kind == CHAIN_NAMESPACE:
            self._publish(CHAIN_NAMESPACE, data)
            return True

        if kind == "ct":
            self._publish(verify_namespace(str(data)), message)
            return True

        return False

    def _publish(self, namespace: str, payload: Any) -> None:
        self.correlator.deliver(namespace, payload)
        self.emit(namespace, payload)

    def _on_message(self, message: Any, role: str | None = None) -> None:
        self.dispatcher.handle(message, role)

    def _on_ready(self) -> None:
        self.emit("open")


def _credentials(value: Credentials | Mapping[str, Any]) -> Credentials:
    if isinstance(value, Credentials):
        return value
    return Credentials.from_mapping(value)
