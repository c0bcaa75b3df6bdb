"""
DAV protocol operations combining request building and response parsing.

This class provides a high-level interface to the requests the
synchronization engine needs while remaining completely I/O-free.
"""

import base64
from datetime import date
from typing import Dict, List, Optional, Union
from urllib.parse import quote, urljoin, urlparse

from davsync.lib import error
from davsync.lib.python_utilities import to_wire

from .types import (
    CollectionInfo,
    DAVMethod,
    DAVRequest,
    DAVResponse,
    MultistatusEntry,
)
from .xml_builders import (
    build_addressbook_query_body,
    build_calendar_query_body,
    build_propfind_body,
    collection_props,
)
from .xml_parsers import parse_collections, parse_multistatus

## Nextcloud's DAV layout, relative to the server root
DAV_ROOT = "remote.php/dav/"
CALENDAR_HOME = DAV_ROOT + "calendars/{user}/"
ADDRESSBOOK_HOME = DAV_ROOT + "addressbooks/users/{user}/"

## The outcome of a conditional PUT or DELETE
WRITE_OK = "ok"
WRITE_CONFLICT = "conflict"
WRITE_NOT_FOUND = "not_found"


def quote_etag(etag: str) -> str:
    """
    Format an entity tag for If-Match.  Tokens that already carry quotes,
    and weak tokens, are sent as given.
    """
    etag = etag.strip()
    if etag.startswith("W/") or (etag.startswith('"') and etag.endswith('"')):
        return etag
    return '"%s"' % etag


class DAVProtocol:
    """
    Sans-I/O DAV protocol handler.

    Builds requests and parses responses without doing any I/O.
    All HTTP communication is delegated to an external I/O implementation.

    Example:
        protocol = DAVProtocol("https://cloud.example.com", "alice", "secret")

        # Build request
        request = protocol.calendar_query_request(
            protocol.collection_path("calendar", "tasks"), "VTODO", uid="task-1"
        )

        # Execute with your I/O (not shown)
        response = io.execute(request)

        # Parse response
        entries = protocol.parse_report(response)
    """

    def __init__(
        self,
        base_url: str = "",
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        """
        Initialize the protocol handler.

        Args:
            base_url: Root URL of the Nextcloud server
            username: Account name, used both for the URL layout and
                      for Basic authentication
            password: Password (or app password) for Basic authentication
        """
        self.base_url = base_url.rstrip("/") if base_url else ""
        self.username = username
        self.password = password
        self._auth_header = self._build_auth_header(username, password)

    def _build_auth_header(
        self,
        username: Optional[str],
        password: Optional[str],
    ) -> Optional[str]:
        """Build Basic auth header if credentials provided."""
        if username and password:
            credentials = f"{username}:{password}"
            encoded = base64.b64encode(credentials.encode()).decode()
            return f"Basic {encoded}"
        return None

    def _base_headers(self) -> Dict[str, str]:
        """Return base headers for all requests."""
        headers = {
            "Content-Type": "application/xml; charset=utf-8",
        }
        if self._auth_header:
            headers["Authorization"] = self._auth_header
        return headers

    def _resolve_url(self, path: str) -> str:
        """
        Resolve a path to a full URL.

        Paths are taken in their decoded form, as multistatus hrefs are
        reported, and quoted here.  A name holding ``#``, ``?`` or ``%``
        thus stays part of the path.

        Args:
            path: Relative path, absolute path or full URL

        Returns:
            Full URL
        """
        if not path:
            return self.base_url or ""

        # Already a full URL
        if urlparse(path).scheme:
            return path

        path = quote(path, safe="/@")
        if self.base_url:
            ## relative paths are joined below the base URL, absolute
            ## paths (hrefs from a multistatus) replace its path
            return urljoin(self.base_url + "/", path)

        return path

    # =========================================================================
    # URL layout
    # =========================================================================

    def home_path(self, kind: str) -> str:
        """Path of the calendar home or address book home of the account"""
        if not self.username:
            raise error.ConfigurationError(reason="no username configured")
        user = self.username
        if kind == "calendar":
            return CALENDAR_HOME.format(user=user)
        if kind == "addressbook":
            return ADDRESSBOOK_HOME.format(user=user)
        raise ValueError("unknown collection kind %r" % kind)

    def collection_path(self, kind: str, name: str) -> str:
        """Path of the named calendar or address book"""
        return "%s%s/" % (self.home_path(kind), name.strip("/"))

    def resource_path(self, collection: str, uid: str, extension: str) -> str:
        """Path of a new resource named after its UID inside a collection"""
        if not collection.endswith("/"):
            collection += "/"
        return "%s%s.%s" % (collection, uid, extension)

    # =========================================================================
    # Request builders
    # =========================================================================

    def propfind_request(
        self,
        path: str,
        props=None,
        depth: int = 0,
    ) -> DAVRequest:
        """
        Build a PROPFIND request.

        Args:
            path: Resource path or URL
            props: Property elements to retrieve
            depth: Depth header value (0 or 1)

        Returns:
            DAVRequest ready for execution
        """
        headers = {
            **self._base_headers(),
            "Depth": str(depth),
        }
        return DAVRequest(
            method=DAVMethod.PROPFIND,
            url=self._resolve_url(path),
            headers=headers,
            body=build_propfind_body(props),
        )

    def collections_request(self, kind: str) -> DAVRequest:
        """Depth: 1 PROPFIND listing the calendars or address books"""
        return self.propfind_request(
            self.home_path(kind), props=collection_props(kind), depth=1
        )

    def calendar_query_request(
        self,
        path: str,
        component: str,
        uid: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> DAVRequest:
        """
        Build a calendar-query REPORT request.

        Args:
            path: Calendar collection path or URL
            component: VTODO or VEVENT
            uid: Only return the object with this UID
            start: Start of time range
            end: End of time range

        Returns:
            DAVRequest ready for execution
        """
        headers = {
            **self._base_headers(),
            "Depth": "1",
        }
        return DAVRequest(
            method=DAVMethod.REPORT,
            url=self._resolve_url(path),
            headers=headers,
            body=build_calendar_query_body(component, uid=uid, start=start, end=end),
        )

    def addressbook_query_request(
        self,
        path: str,
        uid: Optional[str] = None,
        search: Optional[str] = None,
    ) -> DAVRequest:
        """
        Build an addressbook-query REPORT request.

        Args:
            path: Address book collection path or URL
            uid: Only return the card with this UID
            search: Only return cards whose FN contains this text

        Returns:
            DAVRequest ready for execution
        """
        headers = {
            **self._base_headers(),
            "Depth": "1",
        }
        return DAVRequest(
            method=DAVMethod.REPORT,
            url=self._resolve_url(path),
            headers=headers,
            body=build_addressbook_query_body(uid=uid, search=search),
        )

    def put_request(
        self,
        path: str,
        data: Union[str, bytes],
        content_type: str = "text/calendar; charset=utf-8",
        etag: Optional[str] = None,
        create: bool = False,
    ) -> DAVRequest:
        """
        Build a PUT request to create or update a resource.

        Args:
            path: Resource path or URL
            data: Resource content
            content_type: Content-Type header
            etag: If-Match header for conditional update
            create: Send If-None-Match: * so an existing resource is
                    never overwritten

        Returns:
            DAVRequest ready for execution
        """
        headers = self._base_headers()
        headers["Content-Type"] = content_type
        if etag:
            headers["If-Match"] = quote_etag(etag)
        if create:
            headers["If-None-Match"] = "*"
        data = to_wire(data)

        return DAVRequest(
            method=DAVMethod.PUT,
            url=self._resolve_url(path),
            headers=headers,
            body=data,
        )

    def delete_request(
        self,
        path: str,
        etag: Optional[str] = None,
    ) -> DAVRequest:
        """
        Build a DELETE request.

        Args:
            path: Resource path to delete
            etag: If-Match header for conditional delete

        Returns:
            DAVRequest ready for execution
        """
        headers = self._base_headers()
        headers.pop("Content-Type", None)  # DELETE doesn't need Content-Type
        if etag:
            headers["If-Match"] = quote_etag(etag)

        return DAVRequest(
            method=DAVMethod.DELETE,
            url=self._resolve_url(path),
            headers=headers,
        )

    # =========================================================================
    # Response parsers
    # =========================================================================

    def parse_report(
        self,
        response: DAVResponse,
        url: Optional[str] = None,
        huge_tree: bool = False,
    ) -> List[MultistatusEntry]:
        """
        Parse a REPORT or PROPFIND response into multistatus entries.

        Raises:
            ServerError: If the status is not 200 or 207.  Callers that
                         treat 404 specially must check it first.
        """
        if response.status not in (200, 207):
            raise error.ServerError(
                url=url,
                reason=response.reason,
                status=response.status,
                body=response.text,
            )
        return parse_multistatus(response.body, huge_tree=huge_tree)

    def parse_collections(
        self,
        response: DAVResponse,
        kind: str,
        url: Optional[str] = None,
    ) -> List[CollectionInfo]:
        if response.status not in (200, 207):
            raise error.ServerError(
                url=url,
                reason=response.reason,
                status=response.status,
                body=response.text,
            )
        return parse_collections(response.body, kind)

    def classify_write(
        self,
        response: DAVResponse,
        url: Optional[str] = None,
    ) -> str:
        """
        Classify the response to a conditional PUT or DELETE.

        Returns:
            WRITE_OK on 2xx, WRITE_CONFLICT on 412, WRITE_NOT_FOUND on 404

        Raises:
            ServerError: For any other status
        """
        if response.ok:
            return WRITE_OK
        if response.status == 412:
            return WRITE_CONFLICT
        if response.status == 404:
            return WRITE_NOT_FOUND
        raise error.ServerError(
            url=url,
            reason=response.reason,
            status=response.status,
            body=response.text,
        )
