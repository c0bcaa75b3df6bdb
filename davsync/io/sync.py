"""
Synchronous I/O implementation using the requests library.
"""

import logging
import re
from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

import requests

from davsync.lib import error
from davsync.protocol.types import DAVMethod, DAVRequest, DAVResponse

log = logging.getLogger("davsync")

MAX_REDIRECTS = 5

## 307 and 308 keep method and body, the others may turn a PUT into a GET
PRESERVING_REDIRECTS = (307, 308)
REWRITING_REDIRECTS = (301, 302, 303)


def normalize_url(url: str) -> str:
    """Collapse duplicate slashes in the path of a URL"""
    parts = urlsplit(url)
    path = re.sub(r"//+", "/", parts.path)
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


class SyncIO:
    """
    Synchronous I/O shell using the requests library.

    This is a thin wrapper that executes DAVRequest objects via HTTP
    and returns DAVResponse objects.  Redirects are followed by hand so
    that a conditional PUT or DELETE is never silently turned into a GET.

    Example:
        io = SyncIO()
        request = protocol.collections_request("calendar")
        response = io.execute(request)
        calendars = protocol.parse_collections(response, "calendar")
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        verify: bool = True,
        max_redirects: int = MAX_REDIRECTS,
    ):
        """
        Initialize the sync I/O handler.

        Args:
            session: Existing requests Session to use (creates new if None)
            timeout: Request timeout in seconds
            verify: Verify SSL certificates
            max_redirects: Number of redirects followed before giving up
        """
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.timeout = timeout
        self.verify = verify
        self.max_redirects = max_redirects

    def execute(self, request: DAVRequest) -> DAVResponse:
        """
        Execute a DAVRequest and return DAVResponse.

        Args:
            request: The request to execute

        Returns:
            DAVResponse with status, headers, and body

        Raises:
            TransportError: On connection problems, timeouts and TLS errors
            RedirectError: On a redirect that can't be followed safely
        """
        request = request.with_url(normalize_url(request.url))
        for _ in range(self.max_redirects + 1):
            response = self._send(request)
            if not 300 <= response.status < 400 or response.status == 304:
                return response
            request = self._redirect(request, response)
        raise error.RedirectError(
            url=request.url,
            reason="more than %i redirects" % self.max_redirects,
        )

    def _send(self, request: DAVRequest) -> DAVResponse:
        log.debug("%s %s", request.method.value, request.url)
        if error.debug_dump_communication and request.body:
            log.debug("request body:\n%s", request.body.decode("utf-8", "replace"))
        try:
            response = self.session.request(
                method=request.method.value,
                url=request.url,
                headers=request.headers,
                data=request.body,
                timeout=self.timeout,
                verify=self.verify,
                allow_redirects=False,
            )
        except requests.RequestException as e:
            raise error.TransportError(url=request.url, reason=str(e)) from e

        log.debug("%s %s -> %i", request.method.value, request.url, response.status_code)
        if error.debug_dump_communication:
            log.debug("response body:\n%s", response.text)

        return DAVResponse(
            status=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )

    def _redirect(self, request: DAVRequest, response: DAVResponse) -> DAVRequest:
        location = _header(response, "Location")
        if not location:
            raise error.RedirectError(
                url=request.url,
                reason="redirect %i without Location header" % response.status,
            )
        target = normalize_url(urljoin(request.url, location))

        if response.status in PRESERVING_REDIRECTS:
            return request.with_url(target)

        if response.status in REWRITING_REDIRECTS and request.method in (
            DAVMethod.GET,
            DAVMethod.HEAD,
        ):
            return DAVRequest(
                method=request.method,
                url=target,
                headers=request.headers,
            )

        raise error.RedirectError(
            url=request.url,
            reason=(
                "redirect %i for %s would change the method or drop the body "
                "(target %s); check that the server URL is correct"
                % (response.status, request.method.value, target)
            ),
        )

    def close(self) -> None:
        """Close the session if we created it."""
        if self._owns_session and self.session:
            self.session.close()

    def __enter__(self) -> "SyncIO":
        """Context manager entry."""
        return self

    def __exit__(self, *args) -> None:
        """Context manager exit."""
        self.close()


def _header(response: DAVResponse, name: str) -> Optional[str]:
    for key, value in response.headers.items():
        if key.lower() == name.lower():
            return value
    return None
