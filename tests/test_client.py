"""Tests for the client surface, configuration and websocket channel."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest
import websockets
from omegaconf import OmegaConf
from pydantic import ValidationError

from conftest import CHAIN_META, URLS, FakeChannel, channel
from sunbeam_core import ClientConfig, SunbeamClient
from sunbeam_core.common.errors import MissingTransportError, SunbeamError
from sunbeam_core.transport import WebSocketChannel


# ==============================================================================
# Configuration
# ==============================================================================
class TestClientConfig:
    """Tests for ClientConfig validation."""

    def test_defaults(self) -> None:
        config = ClientConfig.from_mapping({"urls": URLS})
        assert config.request_timeout == 10_000
        assert config.exchange_contract == "efinexchange"
        assert config.token_contract == "eosio.token"
        assert config.eos.auth.keys is None

    def test_from_omegaconf(self) -> None:
        node = OmegaConf.create(
            {
                "urls": URLS,
                "request_timeout": 500,
                "eos": {"auth": {"keys": {"account": "alice"}}},
            }
        )
        config = ClientConfig.from_mapping(node)
        assert config.request_timeout == 500
        assert config.eos.auth.keys is not None
        assert config.eos.auth.keys.permission == "active"

    def test_unknown_keys_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ClientConfig.from_mapping({"urls": URLS, "requestTimeout": 5})

    def test_empty_url_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ClientConfig.from_mapping({"urls": {"pub": ""}})

    def test_urls_required(self) -> None:
        with pytest.raises(ValidationError):
            ClientConfig.from_mapping({"urls": {}})


# ==============================================================================
# Client Lifecycle
# ==============================================================================
class TestClientLifecycle:
    """Tests for open/close and the aggregate ready signal."""

    @pytest.mark.asyncio
    async def test_open_emits_ready_once(self, client: SunbeamClient) -> None:
        events: list[str] = []
        client.on("ready", lambda: events.append("ready"))
        client.on("open", lambda: events.append("open"))

        await client.open()
        await client.wait_ready(timeout=1)

        assert sorted(events) == ["open", "ready"]
        assert client.ready is True

        await client.close()
        await client.open()
        assert len(events) == 2

    @pytest.mark.asyncio
    async def test_close_forwards_role(self, client: SunbeamClient) -> None:
        closed: list[Any] = []
        client.on("close", lambda reason, role: closed.append(role))

        await client.open()
        await client.close()

        assert sorted(closed) == ["aux", "priv", "pub"]
        assert not any(client.registry.is_connected(r) for r in client.registry.roles)

    @pytest.mark.asyncio
    async def test_close_fails_pending_requests(self, client: SunbeamClient) -> None:
        channel(client, "priv").responder = None
        task = asyncio.create_task(client.request_chain_meta())
        await asyncio.sleep(0)
        assert client.correlator.in_flight == 1

        await client.close()

        with pytest.raises(SunbeamError, match="Client closed"):
            await task
        assert client.correlator.in_flight == 0

    @pytest.mark.asyncio
    async def test_wait_ready_times_out(self, client: SunbeamClient) -> None:
        with pytest.raises(asyncio.TimeoutError):
            await client.wait_ready(timeout=0.01)

    @pytest.mark.asyncio
    async def test_send_unknown_role(self, client: SunbeamClient) -> None:
        with pytest.raises(MissingTransportError):
            await client.send("nope", {"event": "ping"})

    def test_max_listeners_forwarded(self, config: dict[str, Any]) -> None:
        config["max_listeners"] = 25
        client = SunbeamClient(config, channel_factory=FakeChannel)
        assert all(ch._max_listeners == 25 for ch in client.registry.channels.values())


# ==============================================================================
# Subscriptions and Hooks
# ==============================================================================
class TestSubscriptions:
    @pytest.mark.asyncio
    async def test_public_helpers(self, client: SunbeamClient) -> None:
        await client.subscribe_public_trades("EOS.USDT")
        await client.subscribe_orderbook("EOS.USDT")
        await client.unsubscribe_orderbook("EOS.USDT")

        assert channel(client, "pub").subscriptions == [
            ("subscribe", "trades", {"symbol": "EOS.USDT"}),
            ("subscribe", "book", {"symbol": "EOS.USDT"}),
            ("unsubscribe", "book", {"symbol": "EOS.USDT"}),
        ]

    @pytest.mark.asyncio
    async def test_wallet_subscription_uses_account(self, client: SunbeamClient, signer: Any) -> None:
        client.set_auth({"keys": {"account": "alice", "permission": "active"}, "client": signer})
        await client.subscribe_wallet()

        assert channel(client, "priv").subscriptions == [
            ("subscribe", "wallets", {"account": "alice"}),
        ]


class TestHooks:
    def test_hook_receives_pushes(self, config: dict[str, Any]) -> None:
        """Declared and minted hooks both receive pushed categories."""
        config["hooks"] = {"onWallet": "wu"}
        client = SunbeamClient(config, channel_factory=FakeChannel)
        wallet: list[Any] = []
        trades: list[Any] = []

        client.hook("onWallet")(lambda data, role: wallet.append((data, role)))
        client.hook("onTrades")(lambda data, role: trades.append(data))

        channel(client, "priv").push([0, "wu", {"EOS": "1.0000"}])
        channel(client, "pub").push([7, "trades", [[1, 2, 3]]])

        assert wallet == [({"EOS": "1.0000"}, "priv")]
        assert trades == [[[1, 2, 3]]]
        assert client.hook("onTrades") is client.hook("onTrades")

    @pytest.mark.parametrize("name", ["trades", "once", "online", "on_x", "on"])
    def test_non_hook_name_rejected(self, client: SunbeamClient, name: str) -> None:
        with pytest.raises(AttributeError):
            client.hook(name)

    @pytest.mark.asyncio
    async def test_raising_listener_does_not_block_reply(self, client: SunbeamClient) -> None:
        """Replies reach the waiting request before namespace listeners run."""

        def raising(_: Any) -> None:
            msg = "listener failed"
            raise ValueError(msg)

        client.on("ci", raising)

        assert await client.request_chain_meta() == CHAIN_META

    def test_auth_event_visible_to_hook(self, client: SunbeamClient) -> None:
        got: list[Any] = []
        client.hook("onAuth")(lambda data, role: got.append(data))

        channel(client, "priv").push({"event": "auth", "key1": "x", "key2": "y"})
        assert got == [{"event": "auth", "key1": "x", "key2": "y"}]


def test_get_scope_on_client() -> None:
    assert SunbeamClient.get_scope("EOS.USDT", "ask") == "eos.usdt.a"


# ==============================================================================
# Websocket Channel
# ==============================================================================
class TestWebSocketChannel:
    """Round trip against a local websocket server."""

    @pytest.mark.asyncio
    async def test_round_trip(self) -> None:
        async def echo(ws: Any) -> None:
            async for raw in ws:
                msg = json.loads(raw)
                await ws.send(json.dumps([0, "echo", msg]))

        async with websockets.serve(echo, "127.0.0.1", 0) as server:
            port = list(server.sockets)[0].getsockname()[1]
            ch = WebSocketChannel(f"ws://127.0.0.1:{port}", connect_attempts=1)
            events: list[Any] = []
            got: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
            ch.on("open", lambda: events.append("open"))
            ch.on("close", lambda reason: events.append("close"))
            ch.on("message", lambda m: got.done() or got.set_result(m))

            await ch.open()
            await ch.subscribe("book", {"symbol": "EOS.USDT"})
            reply = await asyncio.wait_for(got, 2)
            await ch.close()

        assert reply == [0, "echo", {"event": "subscribe", "channel": "book", "symbol": "EOS.USDT"}]
        assert events == ["open", "close"]
        assert ch.connected is False

    @pytest.mark.asyncio
    async def test_listener_failure_keeps_reading(self) -> None:
        """A raising message listener is reported as error; reading continues."""

        async def pusher(ws: Any) -> None:
            await ws.send(json.dumps([0, "boom", {}]))
            await ws.send(json.dumps([0, "later", {}]))
            await ws.wait_closed()

        async with websockets.serve(pusher, "127.0.0.1", 0) as server:
            port = list(server.sockets)[0].getsockname()[1]
            ch = WebSocketChannel(f"ws://127.0.0.1:{port}", connect_attempts=1)
            messages: list[Any] = []
            errors: list[Any] = []
            closes: list[Any] = []
            later: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

            def on_message(m: Any) -> None:
                messages.append(m)
                if m[1] == "boom":
                    msg = "bad hook"
                    raise ValueError(msg)
                if not later.done():
                    later.set_result(m)

            ch.on("message", on_message)
            ch.on("error", errors.append)
            ch.on("close", closes.append)

            await ch.open()
            await asyncio.wait_for(later, 2)
            assert ch.connected is True
            assert closes == []
            await ch.close()

        assert messages == [[0, "boom", {}], [0, "later", {}]]
        assert len(errors) == 1
        assert isinstance(errors[0], ValueError)

    @pytest.mark.asyncio
    async def test_undecodable_frame_reported(self) -> None:
        async def pusher(ws: Any) -> None:
            await ws.send("not json")
            await ws.send(json.dumps({"event": "info"}))
            await ws.wait_closed()

        async with websockets.serve(pusher, "127.0.0.1", 0) as server:
            port = list(server.sockets)[0].getsockname()[1]
            ch = WebSocketChannel(f"ws://127.0.0.1:{port}", connect_attempts=1)
            errors: list[Any] = []
            got: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
            ch.on("error", errors.append)
            ch.on("message", lambda m: got.done() or got.set_result(m))

            await ch.open()
            assert await asyncio.wait_for(got, 2) == {"event": "info"}
            await ch.close()

        assert len(errors) == 1
        assert isinstance(errors[0], ValueError)

    @pytest.mark.asyncio
    async def test_server_drop_emits_close_without_reconnect(self) -> None:
        connections: list[Any] = []

        async def dropper(ws: Any) -> None:
            connections.append(ws)
            await ws.close()

        async with websockets.serve(dropper, "127.0.0.1", 0) as server:
            port = list(server.sockets)[0].getsockname()[1]
            ch = WebSocketChannel(f"ws://127.0.0.1:{port}", connect_attempts=1)
            closed: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
            ch.on("close", lambda reason: closed.done() or closed.set_result(reason))

            await ch.open()
            await asyncio.wait_for(closed, 2)
            await asyncio.sleep(0.1)

        assert ch.connected is False
        assert len(connections) == 1

    @pytest.mark.asyncio
    async def test_failed_handshake_emits_error(self) -> None:
        ch = WebSocketChannel("ws://127.0.0.1:9", connect_attempts=1, open_timeout=1)
        errors: list[Any] = []
        ch.on("error", errors.append)

        with pytest.raises(OSError):
            await ch.open()
        assert len(errors) == 1

    @pytest.mark.asyncio
    async def test_send_before_open_fails(self) -> None:
        with pytest.raises(ConnectionError):
            await WebSocketChannel("ws://127.0.0.1:9").send({"event": "ping"})
