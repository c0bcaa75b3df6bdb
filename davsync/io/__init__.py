"""
I/O layer for the DAV protocol.

The I/O layer is intentionally thin - it only handles HTTP transport.
All protocol logic (XML building/parsing) is in davsync.protocol.

Example:
    from davsync.protocol import DAVProtocol
    from davsync.io import SyncIO

    protocol = DAVProtocol("https://cloud.example.com", "alice", "secret")
    with SyncIO() as io:
        response = io.execute(protocol.collections_request("calendar"))
        calendars = protocol.parse_collections(response, "calendar")
"""

from .base import SyncIOProtocol
from .sync import SyncIO

__all__ = [
    "SyncIOProtocol",
    "SyncIO",
]
