"""Client-side order model and wire helpers.

An Order exists only for the duration of one placement: it is built from
the caller's fields plus the current session keys, serialized for signing,
rendered as the unsigned wire body, and then dropped.
"""

from __future__ import annotations

import itertools
import time
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any, Final

from pydantic import BaseModel, Field, PositiveFloat, field_validator

from sunbeam_core.common.types import BookSide, OrderSide, SessionKeys

DEFAULT_ORDER_TYPE: Final[str] = "EXCHANGE_LIMIT"

_sequence = itertools.count()


def generate_client_id() -> int:
    """Microsecond timestamp plus a process-local sequence number."""
    return time.time_ns() // 1000 * 1000 + next(_sequence) % 1000


def format_number(value: float) -> str:
    """Render a number without float artefacts or exponent notation."""
    text = format(Decimal(str(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def get_scope(symbol: str, side: BookSide | str) -> str:
    """Permission scope for one side of a book, e.g. ``eth.btc.a``."""
    s = "a" if BookSide(side) is BookSide.ASK else "b"
    return f"{symbol.lower()}.{s}"


def tx_to_arr(signed: Any) -> list[Any]:
    """Flatten a signed transaction into ``[signatures, packed_trx_hex]``."""
    if isinstance(signed, (list, tuple)):
        return list(signed)

    signatures = list(signed["signatures"])
    packed = signed.get("serializedTransaction", signed.get("serialized_transaction"))
    if isinstance(packed, (bytes, bytearray)):
        packed = packed.hex()
    elif isinstance(packed, Sequence) and not isinstance(packed, str):
        packed = bytes(packed).hex()
    return [signatures, packed]


# ==============================================================================
# Order Parameters
# ==============================================================================
class OrderParams(BaseModel):
    """Caller supplied order fields.

    Attributes:
        side: buy or sell.
        price: Limit price.
        size: Unsigned quantity.
        symbol: Market symbol, if the venue needs one.
        type: Venue order type.
        post_only: Reject instead of taking liquidity.
        id: Client order id, generated when absent.
    """

    model_config = {"frozen": True, "extra": "forbid", "use_enum_values": True}

    side: OrderSide
    price: PositiveFloat
    size: PositiveFloat
    symbol: str | None = None
    type: str = DEFAULT_ORDER_TYPE  # noqa: A003
    post_only: bool = False
    id: int = Field(default_factory=generate_client_id)  # noqa: A003

    @field_validator("side", mode="before")
    @classmethod
    def normalize_side(cls, v: Any) -> Any:
        """Accept BUY/Sell/etc."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str | None) -> str | None:
        return v.strip().upper() if v else v


# ==============================================================================
# Order
# ==============================================================================
class Order:
    """One placement, bound to the session keys that authorize it."""

    def __init__(self, params: OrderParams | Mapping[str, Any], keys: SessionKeys) -> None:
        if not isinstance(params, OrderParams):
            params = OrderParams.model_validate(dict(params))
        self.params = params
        self.keys = keys

    @property
    def id(self) -> int:  # noqa: A003
        return self.params.id

    @property
    def amount(self) -> float:
        """Signed quantity: negative for sells."""
        p = self.params
        return -p.size if p.side == OrderSide.SELL else p.size

    @property
    def flags(self) -> int:
        return 1 if self.params.post_only else 0

    @property
    def parsed(self) -> dict[str, Any]:
        """Local view of what is sent."""
        p = self.params
        data: dict[str, Any] = {
            "id": p.id,
            "side": p.side,
            "price": p.price,
            "size": p.size,
            "amount": self.amount,
            "type": p.type,
            "postOnly": p.post_only,
        }
        if p.symbol:
            data["symbol"] = p.symbol
        return data

    def serialize(self) -> dict[str, Any]:
        """Action arguments covered by the signature."""
        data: dict[str, Any] = {
            "seskey1": self.keys.key1,
            "seskey2": self.keys.key2,
            "id": self.id,
            "price": format_number(self.params.price),
            "qty": format_number(self.amount),
            "flags": self.flags,
        }
        if self.params.symbol:
            data["symbol"] = self.params.symbol
        return data

    def msg_obj(self) -> dict[str, Any]:
        """Unsigned wire body."""
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.params.type,
            "price": format_number(self.params.price),
            "amount": format_number(self.amount),
            "flags": self.flags,
        }
        if self.params.symbol:
            data["symbol"] = self.params.symbol
        return data
