"""Session context: the active account, session keys and chain id.

The context has exactly one writer, bound once. Everything else reads.
"""

from __future__ import annotations

from typing import Any, Final

import structlog

from sunbeam_core.common.errors import SessionWriteError
from sunbeam_core.common.types import Account, SessionKeys

log = structlog.get_logger()

CHAIN_ID_INDEX: Final[int] = 2


class SessionContext:
    """Process-wide identity and session state with single-writer access.

    Attributes:
        account: Active identity, or None.
        session_keys: Keys issued by the last successful authentication.
        chain_meta: Cached chain metadata (write-once).
        chain_id: Network identifier carried by the chain metadata.
    """

    def __init__(self) -> None:
        self._owner: Any = None
        self._account: Account | None = None
        self._keys: SessionKeys | None = None
        self._chain_meta: Any = None

    def bind(self, owner: Any) -> None:
        """Make ``owner`` the only object allowed to write.

        Raises:
            SessionWriteError: If another owner is already bound.
        """
        if self._owner is not None and self._owner is not owner:
            msg = "Session context already has a writer"
            raise SessionWriteError(msg)
        self._owner = owner

    @property
    def account(self) -> Account | None:
        return self._account

    @property
    def session_keys(self) -> SessionKeys | None:
        return self._keys

    @property
    def chain_meta(self) -> Any:
        return self._chain_meta

    @property
    def chain_id(self) -> str | None:
        if self._chain_meta is None:
            return None
        return str(self._chain_meta[CHAIN_ID_INDEX])

    @property
    def authenticated(self) -> bool:
        return self._account is not None and self._keys is not None

    def set_account(self, writer: Any, account: Account) -> None:
        self._check(writer)
        self._account = account

    def clear_account(self, writer: Any) -> None:
        self._check(writer)
        self._account = None

    def set_keys(self, writer: Any, keys: SessionKeys) -> None:
        self._check(writer)
        self._keys = keys
        log.info("Session keys updated")

    def set_chain_meta(self, writer: Any, chain_meta: Any) -> None:
        """Cache chain metadata; later writes keep the first value."""
        self._check(writer)
        if self._chain_meta is None:
            self._chain_meta = chain_meta

    def _check(self, writer: Any) -> None:
        if self._owner is None or writer is not self._owner:
            msg = "Only the session owner may modify the session"
            raise SessionWriteError(msg)
