"""Order submission pipeline for Sunbeam.

Placement runs as a fixed sequence of steps, each producing a typed
intermediate result; the first failure aborts the pipeline and reaches the
caller unchanged:

    account -> chain metadata -> order -> signature -> envelope -> send

Placement and cancellation are fire-and-forget on the private channel.
Transaction verification is a correlated request on the auxiliary channel.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

import structlog

from sunbeam_core.common.errors import InvalidRequestError
from sunbeam_core.common.types import PROTOCOL_VERSION, Account, Envelope, SessionKeys
from sunbeam_core.config import AUX_ROLE, PRIVATE_ROLE
from sunbeam_core.orders.order import Order, OrderParams, tx_to_arr

if TYPE_CHECKING:
    from sunbeam_core.auth.machine import AuthStateMachine
    from sunbeam_core.protocol.correlator import RequestCorrelator
    from sunbeam_core.transport.registry import TransportRegistry

log = structlog.get_logger()

PLACE_OPCODE: Final[str] = "on"
CANCEL_OPCODE: Final[str] = "oc"
VERIFY_OPCODE: Final[str] = "ct"
PLACE_INTENT: Final[str] = "place"


def verify_namespace(uuid: str) -> str:
    return f"{VERIFY_OPCODE}-{uuid}"


# ==============================================================================
# Results
# ==============================================================================
@dataclass(frozen=True)
class Submission:
    """What was sent and the local view of it."""

    payload: Envelope
    data: dict[str, Any]


@dataclass(frozen=True)
class SignedOrder:
    """Intermediate result: an order and the signature covering it."""

    account: Account
    order: Order
    signed: Any


# ==============================================================================
# Pipeline
# ==============================================================================
class OrderPipeline:
    """Builds, signs and publishes orders.

    Attributes:
        auth: Authentication state machine (account, keys, chain meta, signer).
        correlator: Request/response correlator.
        registry: Transport registry for fire-and-forget sends.
    """

    def __init__(
        self,
        auth: AuthStateMachine,
        correlator: RequestCorrelator,
        registry: TransportRegistry,
    ) -> None:
        self.auth = auth
        self.correlator = correlator
        self.registry = registry

    async def place(self, order: OrderParams | Mapping[str, Any]) -> Submission:
        """Sign and publish a new order; no reply is awaited.

        Raises:
            InvalidRequestError: If no session keys are available yet.
            Exception: Signer, metadata or transport failures, unchanged.
        """
        signed_order = await self._sign(order)
        o = signed_order.order

        payload: Envelope = [
            PROTOCOL_VERSION,
            PLACE_OPCODE,
            None,
            {**o.msg_obj(), "meta": tx_to_arr(signed_order.signed)},
        ]
        await self.registry.send(PRIVATE_ROLE, payload)

        log.info(
            "Order placed",
            order_id=o.id,
            side=o.params.side,
            price=o.params.price,
            size=o.params.size,
            account=signed_order.account.account,
        )
        return Submission(payload=payload, data=o.parsed)

    async def cancel(self, order_id: Any) -> Submission:
        """Publish a cancellation; no reply is awaited."""
        payload: Envelope = [PROTOCOL_VERSION, CANCEL_OPCODE, None, {"id": order_id}]
        await self.registry.send(PRIVATE_ROLE, payload)

        log.info("Order cancel sent", order_id=order_id)
        return Submission(payload=payload, data={"id": order_id})

    async def verify_tx(
        self,
        meta: Any,
        uuid: Any,
        request_timeout: float | None = None,
    ) -> Any:
        """Ask the venue to verify a transaction and wait for its verdict.

        Raises:
            InvalidRequestError: If ``uuid`` is missing; nothing is sent.
            RequestTimeoutError: If the venue does not answer in time.
        """
        if not uuid:
            msg = "uuid missing"
            raise InvalidRequestError(msg)

        uuid = str(uuid)
        payload: Envelope = [PROTOCOL_VERSION, VERIFY_OPCODE, uuid, {"meta": meta}]
        return await self.correlator.send_request(
            AUX_ROLE,
            uuid,
            request_timeout or self.auth.config.request_timeout,
            payload,
            verify_namespace(uuid),
        )

    async def _sign(self, params: OrderParams | Mapping[str, Any]) -> SignedOrder:
        account = await self.auth.get_auth()
        chain_meta = await self.auth.get_chain_meta(PRIVATE_ROLE)

        keys = self._require_keys()
        order = Order(params, keys)

        signer = self.auth.signer
        if signer is None:
            msg = "No transaction signer configured"
            raise RuntimeError(msg)

        signed = await signer.sign_tx(
            order.serialize(),
            account,
            PLACE_INTENT,
            chain_meta,
            self.auth.config.exchange_contract,
        )
        return SignedOrder(account=account, order=order, signed=signed)

    def _require_keys(self) -> SessionKeys:
        keys = self.auth.session_keys
        if keys is None:
            msg = "No session keys; authenticate before placing orders"
            raise InvalidRequestError(msg)
        return keys
