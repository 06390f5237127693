"""Error taxonomy for Sunbeam.

Every failure surfaced by the protocol layer derives from SunbeamError and
carries a stable ``code`` so callers can branch without string matching.
Failures raised by external collaborators (signer, identity provider,
transport) are propagated unchanged and are not wrapped.
"""

from __future__ import annotations

from typing import Final

# ==============================================================================
# Error Codes
# ==============================================================================
ERR_MISSING_TRANSPORT: Final[str] = "ERR_MISSING_TRANSPORT"
ERR_TIMEOUT: Final[str] = "ERR_TIMEOUT"
ERR_DUPLICATE_REQUEST: Final[str] = "ERR_DUPLICATE_REQUEST"
ERR_INVALID_REQUEST: Final[str] = "ERR_INVALID_REQUEST"
ERR_SESSION_WRITE: Final[str] = "ERR_SESSION_WRITE"


# ==============================================================================
# Custom Exceptions
# ==============================================================================
class SunbeamError(Exception):
    """Base exception for protocol layer errors."""

    code: str = "ERR_SUNBEAM"

    def __init__(self, message: str | None = None, code: str | int | None = None) -> None:
        if code is not None:
            self.code = code  # type: ignore[assignment]
        super().__init__(message or str(self.code))


class MissingTransportError(SunbeamError):
    """Raised when a send targets a channel role that was never configured."""

    code = ERR_MISSING_TRANSPORT

    def __init__(self, role: str) -> None:
        self.role = role
        super().__init__(ERR_MISSING_TRANSPORT)


class RequestTimeoutError(SunbeamError):
    """Raised when no reply arrived before the request deadline."""

    code = ERR_TIMEOUT

    def __init__(self, request_id: str | int, timeout_ms: float) -> None:
        self.request_id = request_id
        self.timeout_ms = timeout_ms
        super().__init__(ERR_TIMEOUT)


class AuthenticationError(SunbeamError):
    """Raised when the venue rejects an authentication exchange.

    The server supplied code is kept on ``code`` and the server message is
    the exception text.
    """

    code = "ERR_AUTH"


class DuplicateRequestError(SunbeamError):
    """Raised when a correlation id is reused while still in flight."""

    code = ERR_DUPLICATE_REQUEST

    def __init__(self, request_id: str | int) -> None:
        self.request_id = request_id
        super().__init__(f"Request {request_id!r} already in flight")


class InvalidRequestError(SunbeamError):
    """Raised for malformed calls rejected before any network interaction."""

    code = ERR_INVALID_REQUEST


class SessionWriteError(SunbeamError):
    """Raised when something other than the session owner mutates it."""

    code = ERR_SESSION_WRITE
