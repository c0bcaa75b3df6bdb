"""
Finding a record by UID inside a named collection.
"""
import logging
from datetime import date
from typing import Optional
from typing import Union

from davsync.codec import ICalendarCodec
from davsync.codec import VCardCodec
from davsync.io.base import SyncIOProtocol
from davsync.lib import error
from davsync.outcomes import Located
from davsync.outcomes import NotFound
from davsync.protocol.operations import DAVProtocol
from davsync.protocol.types import DAVRequest

log = logging.getLogger("davsync")

Codec = Union[ICalendarCodec, VCardCodec]


class ResourceLocator:
    """
    Looks records up with one REPORT per call.  Nothing is cached: the
    location and etag are always read fresh from the server.
    """

    def __init__(self, protocol: DAVProtocol, io: SyncIOProtocol, codec: Codec) -> None:
        self.protocol = protocol
        self.io = io
        self.codec = codec

    def collection_path(self, collection: str) -> str:
        return self.protocol.collection_path(self.codec.collection_kind, collection)

    def query_request(
        self,
        collection: str,
        uid: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        search: Optional[str] = None,
    ) -> DAVRequest:
        """
        The REPORT asking for the records of a collection, narrowed to a
        UID, a time range (calendars) or a name search (address books).
        """
        path = self.collection_path(collection)
        if self.codec.collection_kind == "addressbook":
            return self.protocol.addressbook_query_request(path, uid=uid, search=search)
        return self.protocol.calendar_query_request(
            path, self.codec.component, uid=uid, start=start, end=end
        )

    def locate(self, collection: str, identifier: str) -> Union[Located, NotFound]:
        """
        Find the record with UID ``identifier`` in ``collection``.

        Returns:
            Located with location, etag and text of the first exact match,
            or NotFound if the collection holds no such record (or doesn't
            exist)

        Raises:
            ServerError: If the server answers the query with an error
            ParseError: If the multistatus body is malformed
            TransportError: If the server can't be reached
        """
        request = self.query_request(collection, uid=identifier)
        response = self.io.execute(request)
        if response.status == 404:
            log.info("collection %s not found while looking for %s", collection, identifier)
            return NotFound(collection, identifier)

        for entry in self.protocol.parse_report(response, url=request.url):
            if entry.status == 404 or not entry.data:
                continue
            try:
                uid = self.codec.identifier(entry.data)
            except error.ParseError as e:
                ## one broken resource shouldn't hide the others
                error.weirdness("unparseable resource at %s: %s" % (entry.href, e.reason))
                continue
            if uid == identifier:
                return Located(
                    location=entry.href,
                    etag=entry.etag,
                    representation=entry.data,
                )

        log.info("%s not found in %s", identifier, collection)
        return NotFound(collection, identifier)

    def get(self, collection: str, identifier: str):
        """
        The decoded fields of the record with UID ``identifier``, or
        NotFound.
        """
        located = self.locate(collection, identifier)
        if isinstance(located, NotFound):
            return located
        return self.codec.decode(located.representation)
