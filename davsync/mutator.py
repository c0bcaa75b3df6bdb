"""
Changing records under optimistic concurrency control.

Every update and delete is exactly two requests: a REPORT locating the
record and reading its etag, and a PUT or DELETE carrying that etag in
If-Match.  If another client changed the record in between, the server
answers 412 and the caller gets a Conflict.  There is no retry here;
the caller decides what to do with fresh data.
"""
import logging
import uuid
from typing import Any
from typing import Dict
from typing import Optional
from typing import Union
from urllib.parse import unquote
from urllib.parse import urlparse

from davsync.io.base import SyncIOProtocol
from davsync.lib import error
from davsync.locator import Codec
from davsync.locator import ResourceLocator
from davsync.outcomes import Conflict
from davsync.outcomes import Created
from davsync.outcomes import Deleted
from davsync.outcomes import Located
from davsync.outcomes import NotFound
from davsync.outcomes import Updated
from davsync.protocol.operations import DAVProtocol
from davsync.protocol.operations import WRITE_CONFLICT
from davsync.protocol.operations import WRITE_NOT_FOUND
from davsync.protocol.types import DAVResponse
from davsync.protocol.xml_parsers import strip_etag

log = logging.getLogger("davsync")


def _response_etag(response: DAVResponse) -> Optional[str]:
    for key, value in response.headers.items():
        if key.lower() == "etag":
            return strip_etag(value)
    return None


class Mutator:
    def __init__(
        self,
        protocol: DAVProtocol,
        io: SyncIOProtocol,
        codec: Codec,
        locator: Optional[ResourceLocator] = None,
    ) -> None:
        self.protocol = protocol
        self.io = io
        self.codec = codec
        self.locator = locator or ResourceLocator(protocol, io, codec)

    def mutate(
        self, collection: str, identifier: str, directives: Dict[str, Any]
    ) -> Union[Updated, NotFound, Conflict]:
        """
        Apply field directives to the record with UID ``identifier``.

        A field missing from ``directives`` is left as it is, a field set
        to None is removed, any other value replaces the field.

        Raises:
            ValueError: On directives the codec can't apply; nothing is
                        written in that case
            ServerError: On any status but 2xx, 404 and 412
        """
        located = self.locator.locate(collection, identifier)
        if isinstance(located, NotFound):
            return located
        self._check_etag(located)

        text = self.codec.encode(directives, original=located.representation)
        request = self.protocol.put_request(
            located.location,
            text,
            content_type=self.codec.content_type,
            etag=located.etag,
        )
        response = self.io.execute(request)
        outcome = self.protocol.classify_write(response, url=request.url)
        if outcome == WRITE_CONFLICT:
            return self._conflict(collection, identifier, located)
        if outcome == WRITE_NOT_FOUND:
            log.info("%s vanished from %s before it could be written", identifier, collection)
            return NotFound(collection, identifier)
        return Updated(identifier, located.location, _response_etag(response))

    def delete(
        self, collection: str, identifier: str
    ) -> Union[Deleted, NotFound, Conflict]:
        """
        Delete the record with UID ``identifier``, provided nobody changed
        it since it was located.
        """
        located = self.locator.locate(collection, identifier)
        if isinstance(located, NotFound):
            return located
        self._check_etag(located)

        request = self.protocol.delete_request(located.location, etag=located.etag)
        response = self.io.execute(request)
        outcome = self.protocol.classify_write(response, url=request.url)
        if outcome == WRITE_CONFLICT:
            return self._conflict(collection, identifier, located)
        if outcome == WRITE_NOT_FOUND:
            log.info("%s vanished from %s before it could be deleted", identifier, collection)
            return NotFound(collection, identifier)
        return Deleted(identifier, located.location)

    def create(
        self, collection: str, directives: Dict[str, Any]
    ) -> Union[Created, Conflict]:
        """
        Create a new record in one PUT.  The resource is named after the
        UID, which is generated unless given, and If-None-Match: * makes
        sure an existing resource is never overwritten.
        """
        directives = dict(directives)
        uid = directives.get("uid") or str(uuid.uuid4())
        directives["uid"] = uid

        text = self.codec.encode(directives)
        path = self.protocol.resource_path(
            self.locator.collection_path(collection), uid, self.codec.extension
        )
        request = self.protocol.put_request(
            path, text, content_type=self.codec.content_type, create=True
        )
        response = self.io.execute(request)
        if response.ok:
            location = unquote(urlparse(request.url).path)
            return Created(uid, location, _response_etag(response))
        if response.status == 412:
            log.info("%s already exists in %s", uid, collection)
            return Conflict(collection, uid)
        raise error.ServerError(
            url=request.url,
            reason=response.reason,
            status=response.status,
            body=response.text,
        )

    def _check_etag(self, located: Located) -> None:
        if not located.etag:
            ## without an etag the write can't be made conditional
            raise error.ParseError(
                url=located.location,
                reason="the server sent no getetag for the resource",
            )

    def _conflict(self, collection: str, identifier: str, located: Located) -> Conflict:
        log.info(
            "etag mismatch for %s in %s, it was modified after it was read",
            identifier,
            collection,
        )
        return Conflict(collection, identifier, located.etag)
