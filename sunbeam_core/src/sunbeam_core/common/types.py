"""Domain primitives and value objects for Sunbeam.

This module defines the immutable types shared by the transport, auth and
order layers:
- Immutability (frozen=True)
- Validation at construction time
- No knowledge of the wire transport

Architectural Decision:
    Wire envelopes stay plain lists/dicts (they are JSON on the channel).
    Only identities, session material and network descriptors are modelled.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Final, NewType

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ==============================================================================
# Domain Primitives
# ==============================================================================
ChannelRole = NewType("ChannelRole", str)
"""Logical channel name (e.g. pub, priv, aux) mapped to one connection."""

PROTOCOL_VERSION: Final[int] = 0

Envelope = list[Any]
"""Fixed-shape wire tuple: [version, opcode, correlation id or None, body]."""


# ==============================================================================
# Enumerations
# ==============================================================================
class OrderSide(str, Enum):
    """Direction of an order as spoken on the wire."""

    BUY = "buy"
    SELL = "sell"


class BookSide(str, Enum):
    """Side of the book used to build permission scopes."""

    ASK = "ask"
    BID = "bid"


# ==============================================================================
# Base Domain Model
# ==============================================================================
class DomainModel(BaseModel):
    """Base model for all domain objects.

    Design Decisions:
    - frozen=True: Immutability prevents accidental state mutation
    - extra="forbid": Catch typos and schema drift early
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        use_enum_values=True,
    )


# ==============================================================================
# Domain Entities
# ==============================================================================
class Account(BaseModel):
    """The authenticated identity.

    Built from static keys (``account@permission``) or returned by an
    interactive identity provider, which may attach extra fields; those
    are preserved untouched.

    Attributes:
        account: On-chain account name.
        permission: Permission level used to sign.
        authorization: Authorization descriptor handed to the signer.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    account: str = Field(..., min_length=1)
    permission: str | None = None
    authorization: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_keys(cls, account: str, permission: str) -> Account:
        """Derive an identity from statically configured keys."""
        return cls(
            account=account,
            permission=permission,
            authorization={"authorization": f"{account}@{permission}"},
        )


class SessionKeys(DomainModel):
    """Short-lived secrets issued by the venue after authentication."""

    key1: str
    key2: str

    def __repr__(self) -> str:
        return "SessionKeys(key1=***, key2=***)"


class NetworkDescriptor(DomainModel):
    """Network description handed to an interactive identity provider."""

    blockchain: str = "eos"
    protocol: str
    host: str
    port: int = Field(..., gt=0, lt=65536)
    chain_id: str = Field(..., serialization_alias="chainId")

    @field_validator("protocol")
    @classmethod
    def normalize_protocol(cls, v: str) -> str:
        """Strip a trailing colon as produced by URL parsers."""
        return v.rstrip(":").lower()

    def as_wire(self) -> dict[str, Any]:
        """Serialize with the camelCase keys identity providers expect."""
        return self.model_dump(by_alias=True)
