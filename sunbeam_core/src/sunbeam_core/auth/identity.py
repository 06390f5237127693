"""Identity sources and signing collaborators.

The signer and the interactive identity provider are external; only
their contracts live here, together with the credentials bundle accepted
by re-authentication and the network descriptor builder.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urlparse

from sunbeam_core.common.types import Account, NetworkDescriptor
from sunbeam_core.config import StaticKeys

DEFAULT_PORTS = {"https": 443}


# ==============================================================================
# Collaborator Protocols
# ==============================================================================
@runtime_checkable
class TransactionSigner(Protocol):
    """Signs exchange actions on behalf of an account."""

    async def sign_tx(
        self,
        payload: Any,
        account: Account,
        intent: str,
        chain_meta: Any,
        contract: str,
    ) -> Any:
        """Return the signed transaction.

        Raises:
            Exception: If signing is rejected or the identity is invalid.
        """
        ...


@runtime_checkable
class IdentityProvider(Protocol):
    """Interactive wallet authorization."""

    async def auth(self, client: Any, options: Mapping[str, Any]) -> Account | Mapping[str, Any]:
        """Return the authorized account.

        Raises:
            Exception: If the user declines.
        """
        ...


# ==============================================================================
# Credentials
# ==============================================================================
@dataclass(frozen=True)
class Credentials:
    """Identity source supplied on (re-)authentication.

    Static keys together with a signer select the static path; otherwise
    an identity provider selects the interactive path.
    """

    keys: StaticKeys | Mapping[str, str] | None = None
    signer: TransactionSigner | None = None
    identity_provider: IdentityProvider | None = None
    client: Any = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Credentials:
        """Build credentials from ``{keys, signer, identity_provider, client}``.

        A client that can sign (has ``sign_tx``) doubles as the signer.
        """
        client = data.get("client")
        signer = data.get("signer")
        if signer is None and callable(getattr(client, "sign_tx", None)):
            signer = client
        return cls(
            keys=data.get("keys"),
            signer=signer,
            identity_provider=data.get("identity_provider"),
            client=client,
        )

    @property
    def static_keys(self) -> StaticKeys | None:
        if self.keys is None or isinstance(self.keys, StaticKeys):
            return self.keys
        return StaticKeys.model_validate(dict(self.keys))

    @property
    def is_static(self) -> bool:
        return self.keys is not None and self.signer is not None


def coerce_account(value: Account | Mapping[str, Any]) -> Account:
    """Normalize what an identity provider returned."""
    if isinstance(value, Account):
        return value
    return Account.model_validate(dict(value))


def build_network(http_endpoint: str, chain_id: str) -> NetworkDescriptor:
    """Describe the chain node for an identity provider.

    The port falls back to 443 for https and 80 otherwise when the
    endpoint does not carry one.
    """
    parsed = urlparse(http_endpoint)
    protocol = parsed.scheme.lower()
    if not protocol or not parsed.hostname:
        msg = f"Invalid chain endpoint: {http_endpoint!r}"
        raise ValueError(msg)

    port = parsed.port or DEFAULT_PORTS.get(protocol, 80)
    return NetworkDescriptor(
        blockchain="eos",
        protocol=protocol,
        host=parsed.hostname,
        port=port,
        chain_id=chain_id,
    )
