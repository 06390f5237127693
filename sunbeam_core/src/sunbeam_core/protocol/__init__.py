"""Request/response protocol layer for Sunbeam."""

from sunbeam_core.protocol.correlator import (
    PendingRequest,
    RequestCorrelator,
    RequestState,
    auth_error_from_reply,
    random_request_id,
)

__all__ = [
    "PendingRequest",
    "RequestCorrelator",
    "RequestState",
    "auth_error_from_reply",
    "random_request_id",
]
