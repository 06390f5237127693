"""Authentication layer for Sunbeam.

- SessionContext: active account, session keys, cached chain metadata
- AuthStateMachine: identity resolution and challenge/response handshake
- TransactionSigner / IdentityProvider: external collaborator contracts
"""

from sunbeam_core.auth.identity import (
    Credentials,
    IdentityProvider,
    TransactionSigner,
    build_network,
    coerce_account,
)
from sunbeam_core.auth.machine import (
    AUTH_NAMESPACE,
    CHAIN_NAMESPACE,
    AuthState,
    AuthStateMachine,
)
from sunbeam_core.auth.session import SessionContext

__all__ = [
    "AUTH_NAMESPACE",
    "CHAIN_NAMESPACE",
    "AuthState",
    "AuthStateMachine",
    "Credentials",
    "IdentityProvider",
    "SessionContext",
    "TransactionSigner",
    "build_network",
    "coerce_account",
]
