"""Sunbeam: client-side protocol layer for an authenticated trading venue.

Example:
    ```python
    from sunbeam_core import SunbeamClient

    client = SunbeamClient(
        {"urls": {"pub": "wss://...", "priv": "wss://...", "aux": "wss://..."}},
        signer=signer,
    )
    await client.open()
    await client.wait_ready(timeout=10)
    await client.auth({"keys": {"account": "alice", "permission": "active"}, "client": signer})
    result = await client.place({"side": "buy", "price": 1.0, "size": 10})
    ```
"""

from sunbeam_core.client import SunbeamClient
from sunbeam_core.config import ClientConfig

__version__ = "0.1.0"

__all__ = [
    "ClientConfig",
    "SunbeamClient",
    "__version__",
]
