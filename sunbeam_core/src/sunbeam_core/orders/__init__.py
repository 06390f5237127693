"""Order layer for Sunbeam: order model, wire helpers and submission pipeline."""

from sunbeam_core.orders.order import (
    Order,
    OrderParams,
    format_number,
    generate_client_id,
    get_scope,
    tx_to_arr,
)
from sunbeam_core.orders.pipeline import (
    CANCEL_OPCODE,
    PLACE_OPCODE,
    VERIFY_OPCODE,
    OrderPipeline,
    SignedOrder,
    Submission,
    verify_namespace,
)

__all__ = [
    "CANCEL_OPCODE",
    "PLACE_OPCODE",
    "VERIFY_OPCODE",
    "Order",
    "OrderParams",
    "OrderPipeline",
    "SignedOrder",
    "Submission",
    "format_number",
    "generate_client_id",
    "get_scope",
    "tx_to_arr",
    "verify_namespace",
]
