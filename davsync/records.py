"""
Typed views of to-do, event and contact records.

The records are partial: they expose the fields the synchronization
engine works with, while the representation they were decoded from keeps
everything else.  Field names double as directive keys for the codecs.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta


@dataclass
class Attendee:
    """
    An ATTENDEE or ORGANIZER of an event.

    Attributes:
        email: Address without the ``mailto:`` prefix
        name: Display name (CN parameter)
        role: ROLE parameter, e.g. REQ-PARTICIPANT
        status: Participation status (PARTSTAT parameter)
        rsvp: RSVP parameter
    """

    email: str
    name: str | None = None
    role: str | None = None
    status: str | None = None
    rsvp: bool | None = None

    @property
    def display(self) -> str:
        if self.name:
            return "%s <%s>" % (self.name, self.email)
        return self.email


@dataclass
class Todo:
    uid: str | None = None
    summary: str | None = None
    description: str | None = None
    location: str | None = None
    status: str | None = None
    priority: int | None = None
    percent_complete: int | None = None
    start: date | datetime | None = None
    due: date | datetime | None = None
    completed: datetime | None = None
    categories: list[str] = field(default_factory=list)
    parent: str | None = None
    classification: str | None = None
    url: str | None = None

    @property
    def is_completed(self) -> bool:
        return (self.status or "").upper() == "COMPLETED"


@dataclass
class Event:
    uid: str | None = None
    summary: str | None = None
    description: str | None = None
    location: str | None = None
    status: str | None = None
    priority: int | None = None
    start: date | datetime | None = None
    end: date | datetime | None = None
    categories: list[str] = field(default_factory=list)
    parent: str | None = None
    classification: str | None = None
    url: str | None = None
    transparency: str | None = None
    organizer: Attendee | None = None
    attendees: list[Attendee] = field(default_factory=list)
    alarm: timedelta | None = None
    rrule: str | None = None

    @property
    def all_day(self) -> bool:
        """True when the event starts on a date rather than at a time"""
        return isinstance(self.start, date) and not isinstance(self.start, datetime)


@dataclass
class TypedValue:
    """An email address or phone number with its TYPE parameter"""

    value: str
    type: str | None = None


@dataclass
class Address:
    """
    A postal address (ADR).  The post office box and extended address
    parts of the vCard value are folded into ``street``.
    """

    street: str | None = None
    city: str | None = None
    region: str | None = None
    postal_code: str | None = None
    country: str | None = None
    type: str | None = None

    def one_line(self) -> str:
        return ", ".join(
            p
            for p in (self.street, self.city, self.region, self.postal_code, self.country)
            if p
        )


@dataclass
class StructuredName:
    """The five parts of the vCard N property, in N order"""

    family: str = ""
    given: str = ""
    additional: str = ""
    prefix: str = ""
    suffix: str = ""

    def formatted(self) -> str:
        """The parts joined into a display string, i.e. 'Dr. Jane Doe Jr.'"""
        return " ".join(
            p for p in (self.prefix, self.given, self.additional, self.family, self.suffix) if p
        )

    def is_empty(self) -> bool:
        return not any((self.family, self.given, self.additional, self.prefix, self.suffix))


@dataclass
class Contact:
    uid: str | None = None
    full_name: str | None = None
    name: StructuredName = field(default_factory=StructuredName)
    emails: list[TypedValue] = field(default_factory=list)
    phones: list[TypedValue] = field(default_factory=list)
    addresses: list[Address] = field(default_factory=list)
    organization: str | None = None
    title: str | None = None
    note: str | None = None
    birthday: date | str | None = None
    url: str | None = None
    categories: list[str] = field(default_factory=list)
    revision: str | None = None

    @property
    def display_name(self) -> str:
        """FN if present, else the name parts, else an empty string"""
        return self.full_name or self.name.formatted()
