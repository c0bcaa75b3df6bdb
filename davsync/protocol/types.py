"""
Core protocol types for the sans-I/O DAV layer.

These dataclasses describe HTTP requests and responses and the records
decoded from multistatus bodies, independent of any I/O implementation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DAVMethod(Enum):
    """HTTP methods used against WebDAV, CalDAV and CardDAV servers."""

    GET = "GET"
    HEAD = "HEAD"
    PUT = "PUT"
    DELETE = "DELETE"
    PROPFIND = "PROPFIND"
    REPORT = "REPORT"


@dataclass(frozen=True)
class DAVRequest:
    """
    Represents an HTTP request to be made.

    This is a pure data structure with no I/O. It describes what request
    should be made, but does not make it.

    Attributes:
        method: HTTP method (GET, PUT, PROPFIND, etc.)
        url: Full URL for the request
        headers: HTTP headers as dict
        body: Request body as bytes (optional)
    """

    method: DAVMethod
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None

    def with_url(self, url: str) -> "DAVRequest":
        """Return new request aimed at another URL (used when redirected)."""
        return DAVRequest(
            method=self.method,
            url=url,
            headers=self.headers,
            body=self.body,
        )


@dataclass(frozen=True)
class DAVResponse:
    """
    Represents an HTTP response received.

    Attributes:
        status: HTTP status code
        headers: HTTP headers as dict
        body: Response body as bytes
    """

    status: int
    headers: dict[str, str]
    body: bytes

    @property
    def ok(self) -> bool:
        """True if status indicates success (2xx)."""
        return 200 <= self.status < 300

    @property
    def reason(self) -> str:
        """Return a reason phrase for the status code."""
        reasons = {
            200: "OK",
            201: "Created",
            204: "No Content",
            207: "Multi-Status",
            301: "Moved Permanently",
            302: "Found",
            303: "See Other",
            307: "Temporary Redirect",
            308: "Permanent Redirect",
            400: "Bad Request",
            401: "Unauthorized",
            403: "Forbidden",
            404: "Not Found",
            405: "Method Not Allowed",
            409: "Conflict",
            412: "Precondition Failed",
            415: "Unsupported Media Type",
            500: "Internal Server Error",
            501: "Not Implemented",
            502: "Bad Gateway",
            503: "Service Unavailable",
        }
        return reasons.get(self.status, "Unknown")

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace") if self.body else ""


@dataclass
class MultistatusEntry:
    """
    One DAV:response element of a multistatus body.

    Attributes:
        href: Path of the resource, URL-unquoted
        status: HTTP status for this resource (default 200)
        properties: Property values keyed by local name (namespace stripped)
        etag: Entity tag with surrounding quotes removed
        data: Embedded calendar-data or address-data text
    """

    href: str
    status: int = 200
    properties: dict[str, Any] = field(default_factory=dict)
    etag: str | None = None
    data: str | None = None


@dataclass
class CollectionInfo:
    """
    A calendar or address book found in an account's home collection.

    Attributes:
        name: Last path segment of the collection, used to address it
        href: Path of the collection
        display_name: Human readable name, falls back to ``name``
        ctag: Collection tag, changes whenever any member changes
        color: Calendar color as sent by the server
        order: Calendar order as sent by the server
        components: Supported calendar components (VEVENT, VTODO, ...)
        enabled: False only if the server explicitly disabled the collection
        description: Free text description
    """

    name: str
    href: str
    display_name: str
    ctag: str | None = None
    color: str | None = None
    order: int | None = None
    components: list[str] = field(default_factory=list)
    enabled: bool = True
    description: str | None = None
