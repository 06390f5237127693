"""Shared fakes for the Sunbeam test suite.

No test touches the network: channels, signer and identity provider are
in-memory stand-ins honouring the collaborator contracts.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest

from sunbeam_core.client import SunbeamClient
from sunbeam_core.common.events import EventEmitter

CHAIN_ID = "aca376f206b8fc25a6ed44dbdc66547c36c6c33e3a119ffbeaef943642f0e906"
CHAIN_META = ["eos", "mainnet", CHAIN_ID]

URLS = {
    "pub": "wss://venue.test/pub",
    "priv": "wss://venue.test/priv",
    "aux": "wss://venue.test/aux",
}

Responder = Callable[[Any], Any]


class FakeChannel(EventEmitter):
    """In-memory channel recording sends and replaying scripted replies."""

    def __init__(self, url: str) -> None:
        super().__init__()
        self.url = url
        self.sent: list[Any] = []
        self.subscriptions: list[tuple[str, str, dict[str, Any]]] = []
        self.responder: Responder | None = None
        self.defer_close = False
        self.open_calls = 0
        self.close_calls = 0

    async def open(self) -> None:
        self.open_calls += 1
        self.emit("open")

    async def close(self) -> None:
        self.close_calls += 1
        if not self.defer_close:
            self.emit("close", None)

    def confirm_close(self) -> None:
        self.emit("close", None)

    async def send(self, message: Any) -> None:
        self.sent.append(message)
        if self.responder is None:
            return
        reply = self.responder(message)
        if reply is not None:
            asyncio.get_running_loop().call_soon(self.emit, "message", reply)

    async def subscribe(self, topic: str, args: dict[str, Any] | None = None) -> Any:
        self.subscriptions.append(("subscribe", topic, dict(args or {})))
        return {"event": "subscribe", "channel": topic, **(args or {})}

    async def unsubscribe(self, topic: str, args: dict[str, Any] | None = None) -> Any:
        self.subscriptions.append(("unsubscribe", topic, dict(args or {})))
        return {"event": "unsubscribe", "channel": topic, **(args or {})}

    def push(self, message: Any) -> None:
        """Simulate one inbound message."""
        self.emit("message", message)


class FakeSigner:
    """Signer returning a deterministic signed transaction."""

    def __init__(self, fail_with: Exception | None = None) -> None:
        self.calls: list[dict[str, Any]] = []
        self.fail_with = fail_with

    async def sign_tx(
        self,
        payload: Any,
        account: Any,
        intent: str,
        chain_meta: Any,
        contract: str,
    ) -> dict[str, Any]:
        self.calls.append(
            {
                "payload": payload,
                "account": account,
                "intent": intent,
                "chain_meta": chain_meta,
                "contract": contract,
            }
        )
        if self.fail_with is not None:
            raise self.fail_with
        return {"signatures": [f"SIG_K1_{intent}"], "serializedTransaction": b"\x01\x02\xff"}


class FakeIdentityProvider:
    """Interactive provider that approves (or declines) every request."""

    def __init__(self, account: str = "bob", decline: bool = False) -> None:
        self.account = account
        self.decline = decline
        self.calls: list[tuple[Any, dict[str, Any]]] = []

    async def auth(self, client: Any, options: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((client, dict(options)))
        if self.decline:
            msg = "User rejected the signature request"
            raise PermissionError(msg)
        return {
            "account": self.account,
            "permission": "owner",
            "authorization": {"authorization": f"{self.account}@owner"},
            "publicKey": "EOS6MRyAjQq8ud7hVNYcfnVPJqcVpscN5So8BhtHuGYqET5GDW5CV",
        }


def venue_responder(message: Any) -> Any:
    """Private-channel venue: answers chain and auth requests."""
    if isinstance(message, dict) and message.get("event") == "chain":
        return [0, "ci", CHAIN_META]
    if isinstance(message, dict) and message.get("event") == "auth":
        return {
            "event": "auth",
            "account": message["account"],
            "key1": "k1",
            "key2": "k2",
        }
    return None


def channel(client: SunbeamClient, role: str) -> FakeChannel:
    return client.registry.channels[role]  # type: ignore[return-value]


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def config() -> dict[str, Any]:
    return {
        "urls": dict(URLS),
        "request_timeout": 200,
        "eos": {"http_endpoint": "https://node.venue.test"},
    }


@pytest.fixture
def client(config: dict[str, Any], signer: FakeSigner) -> SunbeamClient:
    c = SunbeamClient(config, signer=signer, channel_factory=FakeChannel)
    channel(c, "priv").responder = venue_responder
    return c
