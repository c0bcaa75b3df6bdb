"""
Abstract I/O protocol definition.

This module defines the interface that all I/O implementations must follow.
"""

from typing import Protocol, runtime_checkable

from davsync.protocol.types import DAVRequest, DAVResponse


@runtime_checkable
class SyncIOProtocol(Protocol):
    """
    Protocol defining the synchronous I/O interface.

    Implementations must provide a way to execute DAVRequest objects
    and return DAVResponse objects synchronously.  Tests substitute
    anything with these two methods.
    """

    def execute(self, request: DAVRequest) -> DAVResponse:
        """
        Execute a request and return the response.

        Args:
            request: The DAVRequest to execute

        Returns:
            DAVResponse with status, headers, and body

        Raises:
            TransportError: If the request could not be carried out
        """
        ...

    def close(self) -> None:
        """Close any resources (e.g., HTTP session)."""
        ...
