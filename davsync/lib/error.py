#!/usr/bin/env python
import logging
import os
from typing import Optional

from davsync import __version__

## Environmental variables prepended with "PYTHON_DAVSYNC" are used for debug purposes,
## connection parameters are read by davsync.davclient.get_davclient
debug_dump_communication = bool(os.environ.get("PYTHON_DAVSYNC_COMMDUMP", False))
## one of DEBUG, DEVELOPMENT, PRODUCTION
debugmode = os.environ.get("PYTHON_DAVSYNC_DEBUGMODE")
if not debugmode:
    if "dev" in __version__:
        debugmode = "DEVELOPMENT"
    else:
        debugmode = "PRODUCTION"

log = logging.getLogger("davsync")
if debugmode.startswith("DEBUG"):
    log.setLevel(logging.DEBUG)


def weirdness(*reasons) -> None:
    from davsync.lib.debug import xmlstring

    reason = " : ".join([xmlstring(x) for x in reasons])
    log.warning(f"Deviation from expectations found: {reason}")


class DAVError(Exception):
    url: Optional[str] = None
    reason: str = "no reason"

    def __init__(self, url: Optional[str] = None, reason: Optional[str] = None) -> None:
        if url:
            self.url = url
        if reason:
            self.reason = reason

    def __str__(self) -> str:
        return "%s at '%s', reason %s" % (
            self.__class__.__name__,
            self.url,
            self.reason,
        )


class ParseError(DAVError):
    """
    The server sent XML or calendar/contact text that could not be
    parsed.  This indicates a server incompatibility, not a caller
    mistake.
    """

    pass


class TransportError(DAVError):
    """
    The HTTP layer failed (connection refused, timeout, TLS problems).
    The original exception is available as ``__cause__``.
    """

    pass


class RedirectError(TransportError):
    pass


class ServerError(DAVError):
    """
    The server answered with a status code that is neither success,
    precondition-failed nor not-found.  ``status`` and ``body`` are kept
    for diagnosis.
    """

    status: int = 0
    body: str = ""

    def __init__(
        self,
        url: Optional[str] = None,
        reason: Optional[str] = None,
        status: int = 0,
        body: str = "",
    ) -> None:
        super(ServerError, self).__init__(url=url, reason=reason)
        self.status = status
        self.body = body

    def __str__(self) -> str:
        return "%s at '%s', status %s, reason %s" % (
            self.__class__.__name__,
            self.url,
            self.status,
            self.reason,
        )


class ConfigurationError(DAVError):
    pass
