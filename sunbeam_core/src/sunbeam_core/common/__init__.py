"""Common domain types, errors and primitives for Sunbeam."""

from sunbeam_core.common.errors import (
    ERR_MISSING_TRANSPORT,
    ERR_TIMEOUT,
    AuthenticationError,
    DuplicateRequestError,
    InvalidRequestError,
    MissingTransportError,
    RequestTimeoutError,
    SessionWriteError,
    SunbeamError,
)
from sunbeam_core.common.events import EventEmitter
from sunbeam_core.common.types import (
    PROTOCOL_VERSION,
    Account,
    BookSide,
    ChannelRole,
    DomainModel,
    Envelope,
    NetworkDescriptor,
    OrderSide,
    SessionKeys,
)

__all__ = [
    "ERR_MISSING_TRANSPORT",
    "ERR_TIMEOUT",
    "PROTOCOL_VERSION",
    "Account",
    "AuthenticationError",
    "BookSide",
    "ChannelRole",
    "DomainModel",
    "DuplicateRequestError",
    "Envelope",
    "EventEmitter",
    "InvalidRequestError",
    "MissingTransportError",
    "NetworkDescriptor",
    "OrderSide",
    "RequestTimeoutError",
    "SessionKeys",
    "SessionWriteError",
    "SunbeamError",
]
