"""
Results of locating and changing records.

NotFound and Conflict are expected outcomes when several clients edit
the same collection, so they are returned rather than raised.  Callers
branch on the type::

    result = client.tasks.mutate("tasks", "task-1", {"priority": 1})
    if isinstance(result, Conflict):
        ...  # fetch again and decide whether to retry
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Located:
    """
    A record found in a collection.

    Attributes:
        location: Path of the resource on the server
        etag: Entity tag read together with the representation
        representation: The full iCalendar or vCard text
    """

    location: str
    etag: str | None
    representation: str

    @property
    def message(self) -> str:
        return "Found %s (etag %s)" % (self.location, self.etag)


@dataclass(frozen=True)
class Updated:
    identifier: str
    location: str
    etag: str | None = None

    @property
    def message(self) -> str:
        return "Updated %s at %s" % (self.identifier, self.location)


@dataclass(frozen=True)
class Deleted:
    identifier: str
    location: str

    @property
    def message(self) -> str:
        return "Deleted %s from %s" % (self.identifier, self.location)


@dataclass(frozen=True)
class Created:
    identifier: str
    location: str
    etag: str | None = None

    @property
    def message(self) -> str:
        return "Created %s at %s" % (self.identifier, self.location)


@dataclass(frozen=True)
class NotFound:
    collection: str
    identifier: str

    @property
    def message(self) -> str:
        return "No record with UID %s in %s" % (self.identifier, self.collection)


@dataclass(frozen=True)
class Conflict:
    """
    The server refused a conditional write.  For updates and deletes the
    record changed since ``etag`` was read; for creations the UID is taken.
    """

    collection: str
    identifier: str
    etag: str | None = None

    @property
    def message(self) -> str:
        if self.etag is None:
            return "A record with UID %s already exists in %s" % (
                self.identifier,
                self.collection,
            )
        return (
            "ETag mismatch: %s in %s was modified by someone else since it "
            "was read (etag %s). Fetch it again and retry." % (
                self.identifier,
                self.collection,
                self.etag,
            )
        )
