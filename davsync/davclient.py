#!/usr/bin/env python
"""
The client object tying transport, protocol and codecs together.

Typical use::

    from davsync import get_davclient

    with get_davclient() as client:
        for task in client.tasks.list("tasks", filter={"status": "NEEDS-ACTION"}):
            print(task.summary)
        result = client.tasks.complete("tasks", "task-1")
"""
import logging
import os
import sys
from types import TracebackType
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import Union

from davsync import config
from davsync.codec import EventCodec
from davsync.codec import TodoCodec
from davsync.codec import VCardCodec
from davsync.codec import complete_directives
from davsync.io import SyncIO
from davsync.io.base import SyncIOProtocol
from davsync.lib import error
from davsync.listing import ListingFormatter
from davsync.locator import Codec
from davsync.locator import ResourceLocator
from davsync.mutator import Mutator
from davsync.protocol.operations import DAVProtocol
from davsync.protocol.types import CollectionInfo
from davsync.protocol.xml_parsers import parse_bool

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self

log = logging.getLogger("davsync")

## environment variable -> DAVSyncClient parameter
ENVIRONMENT_KEYS = {
    "NEXTCLOUD_URL": "url",
    "NEXTCLOUD_USER": "username",
    "NEXTCLOUD_USERNAME": "username",
    "NEXTCLOUD_PASSWORD": "password",
    "DAVSYNC_URL": "url",
    "DAVSYNC_USERNAME": "username",
    "DAVSYNC_PASSWORD": "password",
    "DAVSYNC_TIMEOUT": "timeout",
    "DAVSYNC_SSL_VERIFY_CERT": "ssl_verify_cert",
}


class RecordKind:
    """
    Everything that can be done with one kind of record (to-dos, events
    or contacts): lookup, listing and concurrency controlled changes.
    """

    def __init__(self, protocol: DAVProtocol, io: SyncIOProtocol, codec: Codec) -> None:
        self.codec = codec
        self.locator = ResourceLocator(protocol, io, codec)
        self.mutator = Mutator(protocol, io, codec, locator=self.locator)
        self.listing = ListingFormatter(protocol, io, codec, locator=self.locator)

    def locate(self, collection: str, identifier: str):
        return self.locator.locate(collection, identifier)

    def get(self, collection: str, identifier: str):
        return self.locator.get(collection, identifier)

    def list(self, collection: str, filter: Optional[Dict[str, Any]] = None, **kwargs):
        return self.listing.list(collection, filter=filter, **kwargs)

    def create(self, collection: str, directives: Dict[str, Any]):
        return self.mutator.create(collection, directives)

    def mutate(self, collection: str, identifier: str, directives: Dict[str, Any]):
        return self.mutator.mutate(collection, identifier, directives)

    def delete(self, collection: str, identifier: str):
        return self.mutator.delete(collection, identifier)


class TaskKind(RecordKind):
    def complete(self, collection: str, identifier: str, done: bool = True):
        """
        Mark a to-do as completed (or reopen it).  Status, percentage and
        completion time change together in one conditional write.
        """
        return self.mutate(collection, identifier, complete_directives(done))


class DAVSyncClient:
    """
    Synchronous client for the calendars, task lists and address books of
    one Nextcloud account.

    Record operations are grouped per kind: ``client.tasks``,
    ``client.events`` and ``client.contacts``.
    """

    def __init__(
        self,
        url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: Optional[float] = None,
        ssl_verify_cert: Union[bool, str] = True,
        io: Optional[SyncIOProtocol] = None,
    ) -> None:
        """
        Args:
          url: Root URL of the server, i.e. ``https://cloud.example.com``
          username: Account name
          password: Password or app password
          timeout: Seconds before a request is given up, passed to requests
          ssl_verify_cert: False, or the path of a CA bundle
          io: Alternative request executor, mostly for tests
        """
        if not url:
            raise error.ConfigurationError(reason="no server url configured")
        log.debug("url: " + str(url))
        self.protocol = DAVProtocol(url, username, password)
        self.io = io or SyncIO(
            timeout=float(timeout) if timeout else 30.0,
            verify=ssl_verify_cert,
        )
        self.tasks = TaskKind(self.protocol, self.io, TodoCodec())
        self.events = RecordKind(self.protocol, self.io, EventCodec())
        self.contacts = RecordKind(self.protocol, self.io, VCardCodec())

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: Optional[BaseException] = None,
        exc_value: Optional[BaseException] = None,
        traceback: Optional[TracebackType] = None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """
        Closes the underlying HTTP session
        """
        self.io.close()

    def _collections(self, kind: str) -> List[CollectionInfo]:
        request = self.protocol.collections_request(kind)
        response = self.io.execute(request)
        return self.protocol.parse_collections(response, kind, url=request.url)

    def calendars(self) -> List[CollectionInfo]:
        """All calendars of the account, disabled ones included"""
        return self._collections("calendar")

    def task_lists(self) -> List[CollectionInfo]:
        """The calendars that can hold to-dos"""
        return [c for c in self.calendars() if "VTODO" in c.components]

    def address_books(self) -> List[CollectionInfo]:
        return self._collections("addressbook")


def _from_environment() -> Dict[str, Any]:
    conf = {}
    for key, param in ENVIRONMENT_KEYS.items():
        if os.environ.get(key):
            conf[param] = os.environ[key]
    return conf


def _normalize(conf: Dict[str, Any]) -> Dict[str, Any]:
    conf = dict(conf)
    if "ssl_verify_cert" in conf and isinstance(conf["ssl_verify_cert"], str):
        value = conf["ssl_verify_cert"]
        ## anything that doesn't look like a boolean is a CA bundle path
        if value.strip().lower() in ("0", "1", "true", "false", "yes", "no"):
            conf["ssl_verify_cert"] = parse_bool(value)
    if conf.get("timeout") is not None:
        try:
            conf["timeout"] = float(conf["timeout"])
        except ValueError as e:
            raise error.ConfigurationError(
                reason="timeout must be a number, got %r" % conf["timeout"]
            ) from e
    return conf


def get_davclient(
    check_config_file: bool = True,
    config_file: Optional[str] = None,
    config_section: Optional[str] = None,
    environment: bool = True,
    **config_data,
) -> DAVSyncClient:
    """
    This function will yield a DAVSyncClient object.  It will not
    connect to the server.  Configuration is read from the first of
    these sources that has any:

    * The keyword arguments given
    * Environment variables ``NEXTCLOUD_URL``, ``NEXTCLOUD_USER``,
      ``NEXTCLOUD_PASSWORD`` and ``DAVSYNC_*``, like ``DAVSYNC_URL``,
      ``DAVSYNC_USERNAME``, ``DAVSYNC_TIMEOUT``
    * A config file, see :mod:`davsync.config`.  ``DAVSYNC_CONFIG_FILE``
      and ``DAVSYNC_CONFIG_SECTION`` select the file and section.

    Raises:
        ConfigurationError: If no source gives both a url and a username
    """
    conf = dict(config_data)

    if not conf and environment:
        conf = _from_environment()
        if not config_file:
            config_file = os.environ.get("DAVSYNC_CONFIG_FILE")
        if not config_section:
            config_section = os.environ.get("DAVSYNC_CONFIG_SECTION")

    if not conf and check_config_file:
        cfg = config.read_config(config_file)
        if cfg:
            section = config.config_section(cfg, config_section or "default")
            conf = config.connection_params(section)

    if not conf.get("url") or not conf.get("username"):
        raise error.ConfigurationError(
            reason="no server url and username found in arguments, environment or config file"
        )
    return DAVSyncClient(**_normalize(conf))
