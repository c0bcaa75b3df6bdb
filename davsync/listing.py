"""
Listing a whole collection, and rendering records as text.

``ListingFormatter.list`` returns decoded records in the order the server
sent them.  The ``format_*`` functions turn records into the compact
multi-line text an assistant shows to a user.
"""
import logging
from dataclasses import fields
from datetime import date
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional

from davsync.codec.ical import describe_recurrence
from davsync.codec.ical import format_date
from davsync.io.base import SyncIOProtocol
from davsync.lib import error
from davsync.locator import Codec
from davsync.locator import ResourceLocator
from davsync.protocol.operations import DAVProtocol
from davsync.protocol.types import CollectionInfo
from davsync.records import Contact
from davsync.records import Event
from davsync.records import Todo

log = logging.getLogger("davsync")

DESCRIPTION_LIMIT = 200
INDENT = "    "

COMPONENT_NAMES = {
    "VEVENT": "events",
    "VTODO": "tasks",
    "VJOURNAL": "journals",
}


def _fold(value: Any) -> Any:
    return value.casefold() if isinstance(value, str) else value


def matches(record: Any, filter: Optional[Dict[str, Any]]) -> bool:
    """
    True if every field named in ``filter`` equals the given value.

    Strings compare case-insensitively.  For list fields (categories,
    emails, ...) the value has to be one of the members.

    Raises:
        ValueError: If ``filter`` names a field the record doesn't have
    """
    if not filter:
        return True
    known = {f.name for f in fields(record)}
    for name, wanted in filter.items():
        if name not in known:
            raise ValueError(
                "cannot filter %s records on %r" % (type(record).__name__, name)
            )
        actual = getattr(record, name)
        if isinstance(actual, list):
            members = [getattr(m, "value", m) for m in actual]
            if _fold(wanted) not in [_fold(m) for m in members]:
                return False
        elif _fold(actual) != _fold(wanted):
            return False
    return True


class ListingFormatter:
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

    def list(
        self,
        collection: str,
        filter: Optional[Dict[str, Any]] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Any]:
        """
        Decode every record of ``collection``.

        Args:
            collection: Name of the calendar or address book
            filter: Field values a record must have, i.e. {"status": "COMPLETED"}
            start, end: Time range the server narrows calendar records to
            search: Substring of the contact name, matched by the server
            limit: Return at most this many records, counted after filtering

        Returns:
            The matching records in server order; may be empty

        Raises:
            ServerError: If the query fails, also when the collection doesn't exist
            ValueError: If ``filter`` names an unknown field
        """
        request = self.locator.query_request(
            collection, start=start, end=end, search=search
        )
        response = self.io.execute(request)
        records = []
        for entry in self.protocol.parse_report(response, url=request.url):
            if limit is not None and len(records) >= limit:
                break
            if entry.status == 404 or not entry.data:
                log.debug("skipping %s: no %s data", entry.href, self.codec.component)
                continue
            try:
                if not self.codec.contains(entry.data):
                    log.debug("skipping %s: no %s inside", entry.href, self.codec.component)
                    continue
                record = self.codec.decode(entry.data)
            except error.ParseError as e:
                error.weirdness("unparseable resource at %s: %s" % (entry.href, e.reason))
                continue
            if matches(record, filter):
                records.append(record)
        return records


# =========================================================================
# Text rendering
# =========================================================================


def _truncate(text: str, limit: int = DESCRIPTION_LIMIT) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def _detail(lines: List[str], label: Optional[str], value: Any) -> None:
    if value is None or value == "" or value == []:
        return
    if label is None:
        lines.append(INDENT + str(value))
    else:
        lines.append("%s%s: %s" % (INDENT, label, value))


def format_todo(todo: Todo) -> str:
    mark = "[x]" if todo.is_completed else "[ ]"
    head = "%s %s" % (mark, todo.summary or "(untitled)")
    if todo.priority:
        head += " (Priority: %i)" % todo.priority
    if todo.percent_complete and not todo.is_completed:
        head += " [%i%%]" % todo.percent_complete

    lines = [head]
    _detail(lines, "Due", format_date(todo.due))
    _detail(lines, "Location", todo.location)
    _detail(lines, "Completed", format_date(todo.completed))
    _detail(lines, "Parent", todo.parent)
    _detail(lines, "Tags", ", ".join(todo.categories))
    if todo.classification and todo.classification != "PUBLIC":
        _detail(lines, "Class", todo.classification)
    if todo.description:
        _detail(lines, None, _truncate(todo.description))
    _detail(lines, "UID", todo.uid)
    return "\n".join(lines)


def _attendee_text(attendee) -> str:
    extra = [p for p in (attendee.role, attendee.status) if p]
    if extra:
        return "%s (%s)" % (attendee.display, ", ".join(extra))
    return attendee.display


def format_event(event: Event) -> str:
    lines = [event.summary or "(untitled)"]

    when = format_date(event.start)
    if event.end is not None:
        when += " - " + format_date(event.end)
    if event.all_day:
        when += " (all day)"
    if event.status and event.status != "CONFIRMED":
        when += " [%s]" % event.status
    _detail(lines, "When", when.strip())
    _detail(lines, "Where", event.location)
    if event.organizer is not None:
        _detail(lines, "Organizer", event.organizer.display)
    _detail(lines, "Attendees", "; ".join(_attendee_text(a) for a in event.attendees))
    _detail(lines, "Recurrence", describe_recurrence(event.rrule))
    _detail(lines, "Tags", ", ".join(event.categories))
    if event.description:
        _detail(lines, None, _truncate(event.description))
    if event.classification and event.classification != "PUBLIC":
        _detail(lines, "Class", event.classification)
    _detail(lines, "UID", event.uid)
    return "\n".join(lines)


def _typed(values) -> str:
    return ", ".join(
        "%s (%s)" % (v.value, v.type) if v.type else v.value for v in values
    )


def format_contact(contact: Contact) -> str:
    """One contact as a short entry of a listing"""
    head = contact.display_name or "(no name)"
    extra = ", ".join(p for p in (contact.organization, contact.title) if p)
    if extra:
        head += " - " + extra
    lines = [head]
    _detail(lines, "Email", _typed(contact.emails))
    _detail(lines, "Phone", _typed(contact.phones))
    _detail(lines, "UID", contact.uid)
    return "\n".join(lines)


def format_contact_detail(contact: Contact) -> str:
    """Everything known about one contact, one field per line"""
    lines = []

    def add(label: str, value: Any) -> None:
        if value:
            lines.append("%s: %s" % (label, value))

    add("Name", contact.display_name)
    if not contact.name.is_empty():
        add("Structured name", contact.name.formatted())
    add("Organization", contact.organization)
    add("Title", contact.title)
    for email in contact.emails:
        add("Email (%s)" % email.type if email.type else "Email", email.value)
    for phone in contact.phones:
        add("Phone (%s)" % phone.type if phone.type else "Phone", phone.value)
    for address in contact.addresses:
        add("Address (%s)" % address.type if address.type else "Address", address.one_line())
    if contact.birthday:
        add("Birthday", format_date(contact.birthday))
    add("URL", contact.url)
    add("Groups", ", ".join(contact.categories))
    add("Note", contact.note)
    add("UID", contact.uid)
    return "\n".join(lines)


def format_collection(info: CollectionInfo) -> str:
    head = info.display_name or info.name
    if info.color:
        head += " [%s]" % info.color
    if not info.enabled:
        head += " (disabled)"
    lines = [head]
    supports = [COMPONENT_NAMES.get(c, c.lower()) for c in info.components]
    _detail(lines, "Supports", ", ".join(supports))
    _detail(lines, None, info.description)
    _detail(lines, "URL", info.href)
    return "\n".join(lines)


_RENDERERS = {
    Todo: ("tasks", format_todo),
    Event: ("events", format_event),
    Contact: ("contacts", format_contact),
}


def format_listing(
    records: Iterable[Any], collection: Optional[str] = None, noun: Optional[str] = None
) -> str:
    """
    Render a list of records under a header like ``Tasks in "tasks" (2 found):``,
    or ``No tasks found`` when there are none.

    ``noun`` is only needed for empty collection listings, where there is
    no record to take it from ("calendars" or "address books").
    """
    records = list(records)
    if not records:
        return "No %s found" % (noun or "records")
    kind, render = _RENDERERS.get(type(records[0]), ("calendars", format_collection))
    noun = noun or kind

    label = noun[0].upper() + noun[1:]
    if collection is not None:
        header = '%s in "%s" (%i found):' % (label, collection, len(records))
    else:
        header = "%s (%i found):" % (label, len(records))
    return "\n\n".join([header] + [render(r) for r in records])
