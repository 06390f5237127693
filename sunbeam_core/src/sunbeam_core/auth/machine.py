"""Authentication state machine for Sunbeam.

Drives the handshake that turns an identity into session keys:

    UNAUTHENTICATED -> RESOLVING_IDENTITY -> AWAITING_CHALLENGE_RESPONSE
                    -> AUTHENTICATED

Any failure lands in AUTH_FAILED; a new ``auth()`` call restarts from
UNAUTHENTICATED. The machine is the only writer of the SessionContext.

Identity sources:
- Static keys: ``account@permission`` derived from configuration
- Interactive: an external identity provider handed a network descriptor
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any, Final

import structlog

from sunbeam_core.auth.identity import (
    Credentials,
    IdentityProvider,
    TransactionSigner,
    build_network,
    coerce_account,
)
from sunbeam_core.common.errors import AuthenticationError
from sunbeam_core.common.types import Account, NetworkDescriptor, SessionKeys
from sunbeam_core.config import PRIVATE_ROLE
from sunbeam_core.protocol.correlator import random_request_id

if TYPE_CHECKING:
    from sunbeam_core.auth.session import SessionContext
    from sunbeam_core.config import ClientConfig
    from sunbeam_core.protocol.correlator import RequestCorrelator

log = structlog.get_logger()

AUTH_NAMESPACE: Final[str] = "_auth"
CHAIN_NAMESPACE: Final[str] = "ci"
VALIDATE_INTENT: Final[str] = "validate"


# ==============================================================================
# Enums
# ==============================================================================
class AuthState(str, Enum):
    """Authentication handshake states."""

    UNAUTHENTICATED = "UNAUTHENTICATED"
    RESOLVING_IDENTITY = "RESOLVING_IDENTITY"
    AWAITING_CHALLENGE_RESPONSE = "AWAITING_CHALLENGE_RESPONSE"
    AUTHENTICATED = "AUTHENTICATED"
    AUTH_FAILED = "AUTH_FAILED"


# ==============================================================================
# State Machine
# ==============================================================================
class AuthStateMachine:
    """Resolves the account and runs the challenge/response exchange.

    Attributes:
        config: Client configuration (static keys, contracts, timeouts).
        session: Session context this machine owns.
        correlator: Request/response correlator.
        signer: External transaction signer.
        identity_provider: External interactive identity provider.
        client: Opaque chain client handle passed to the provider.
    """

    def __init__(
        self,
        config: ClientConfig,
        session: SessionContext,
        correlator: RequestCorrelator,
        signer: TransactionSigner | None = None,
        identity_provider: IdentityProvider | None = None,
        client: Any = None,
        id_factory: Callable[[], int] = random_request_id,
    ) -> None:
        self.config = config
        self.session = session
        self.correlator = correlator
        self.signer = signer
        self.identity_provider = identity_provider
        self.client = client
        self._id_factory = id_factory
        self._state = AuthState.UNAUTHENTICATED

        session.bind(self)

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def account(self) -> Account | None:
        return self.session.account

    @property
    def session_keys(self) -> SessionKeys | None:
        return self.session.session_keys

    def set_auth(self, credentials: Credentials) -> None:
        """Replace the active identity source.

        Static keys plus a signer discard any interactive provider.
        Otherwise the interactive provider takes over and the cached
        account is cleared.
        """
        if credentials.is_static:
            self.config = self.config.with_keys(credentials.static_keys)
            self.signer = credentials.signer
            self.identity_provider = None
            if credentials.client is not None:
                self.client = credentials.client
            log.info("Identity source set", source="static")
            return

        self.config = self.config.with_keys(None)
        self.identity_provider = credentials.identity_provider
        if credentials.signer is not None:
            self.signer = credentials.signer
        if credentials.client is not None:
            self.client = credentials.client
        self.session.clear_account(self)
        log.info("Identity source set", source="interactive")

    async def auth(self, credentials: Credentials | None = None) -> Account:
        """Run the full handshake and return the authenticated account.

        Raises:
            AuthenticationError: If the venue rejects the validation.
            RequestTimeoutError: If the venue does not answer in time.
            Exception: Signer or identity provider failures, unchanged.
        """
        self._transition(AuthState.UNAUTHENTICATED)
        self.session.clear_account(self)

        if credentials is not None:
            self.set_auth(credentials)

        try:
            self._transition(AuthState.RESOLVING_IDENTITY)
            account = await self.get_auth()

            self._transition(AuthState.AWAITING_CHALLENGE_RESPONSE)
            signed = await self.get_signed_tx(account)
            await self.send_auth(account, signed)
        except Exception as exc:
            self._transition(AuthState.AUTH_FAILED, error=str(exc))
            raise

        self._transition(AuthState.AUTHENTICATED, account=account.account)
        return account

    async def get_auth(self) -> Account:
        """Return the cached account, resolving it on first use."""
        cached = self.session.account
        if cached is not None:
            return cached

        keys = self.config.eos.auth.keys
        if keys is not None:
            account = Account.from_keys(keys.account, keys.permission)
        else:
            if self.identity_provider is None:
                msg = "No identity source configured (static keys or identity provider)"
                raise RuntimeError(msg)
            network = await self.get_network(PRIVATE_ROLE)
            account = coerce_account(
                await self.identity_provider.auth(self.client, {"network": network.as_wire()})
            )

        self.session.set_account(self, account)
        return account

    async def get_signed_tx(self, account: Account | None = None) -> Any:
        """Sign the validation action for ``account``."""
        account = account or await self.get_auth()
        signer = self._require_signer()

        meta = await self.get_chain_meta(PRIVATE_ROLE)
        return await signer.sign_tx(
            {"account": account.account},
            account,
            VALIDATE_INTENT,
            meta,
            self.config.exchange_contract,
        )

    async def send_auth(self, account: Account, signed: Any) -> Account:
        """Send the signed validation and store the issued session keys."""
        payload = {
            "event": "auth",
            "account": account.account,
            "meta": signed,
        }
        reply = await self.correlator.send_request(
            PRIVATE_ROLE,
            self._id_factory(),
            self.config.request_timeout,
            payload,
            AUTH_NAMESPACE,
        )

        if not isinstance(reply, dict) or "key1" not in reply or "key2" not in reply:
            msg = "session keys missing"
            raise AuthenticationError(msg)

        self.session.set_keys(self, SessionKeys(key1=str(reply["key1"]), key2=str(reply["key2"])))
        return account

    async def request_chain_meta(self, role: str) -> Any:
        """Ask the venue for chain metadata on ``role``."""
        return await self.correlator.send_request(
            role,
            self._id_factory(),
            self.config.request_timeout,
            {"event": "chain"},
            CHAIN_NAMESPACE,
        )

    async def get_chain_meta(self, role: str = PRIVATE_ROLE) -> Any:
        """Chain metadata, fetched once and cached for the process lifetime."""
        cached = self.session.chain_meta
        if cached is not None:
            return cached

        meta = await self.request_chain_meta(role)
        self.session.set_chain_meta(self, meta)
        return self.session.chain_meta

    async def get_chain_id(self, role: str = PRIVATE_ROLE) -> str:
        await self.get_chain_meta(role)
        return self.session.chain_id  # type: ignore[return-value]

    async def get_network(self, role: str = PRIVATE_ROLE) -> NetworkDescriptor:
        """Network descriptor for the interactive identity provider."""
        endpoint = self.config.eos.http_endpoint
        if not endpoint:
            msg = "eos.http_endpoint is required for interactive authentication"
            raise RuntimeError(msg)

        chain_id = await self.get_chain_id(role)
        return build_network(endpoint, chain_id)

    def _require_signer(self) -> TransactionSigner:
        if self.signer is None:
            msg = "No transaction signer configured"
            raise RuntimeError(msg)
        return self.signer

    def _transition(self, state: AuthState, **context: Any) -> None:
        previous = self._state
        self._state = state
        log.info("Auth state changed", previous=previous.value, state=state.value, **context)
