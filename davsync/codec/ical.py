"""
iCalendar codec for to-do items (VTODO) and events (VEVENT).

Decoding gives a typed, partial view of the first component of the
right kind.  Encoding applies field directives on top of the original
text: a field missing from the directives is left exactly as it was,
``None`` removes the property, and any other value replaces the lines
of the property in place (or adds a line after the last property when
the property is new).  Lines the codec doesn't model pass through unchanged.
"""
import re
import uuid
from datetime import date
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Any
from typing import ClassVar
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple
from typing import Union

from dateutil import parser as dateparser
from icalendar.parser import split_on_unescaped_comma
from icalendar.prop import vDate
from icalendar.prop import vDatetime
from icalendar.prop import vDDDTypes
from icalendar.prop import vDuration
from icalendar.prop import vRecur
from icalendar.prop import vText

from .contentline import Component
from .contentline import Document
from .contentline import Line
from davsync.lib import error
from davsync.records import Attendee
from davsync.records import Event
from davsync.records import Todo

PRODID = "-//python-davsync//davsync//EN"

utc = timezone.utc

_COMPACT_DATE = re.compile(r"^\d{8}$")
_COMPACT_DATETIME = re.compile(r"^\d{8}T\d{6}Z?$")

## Fields stored as plain TEXT values
TEXT_FIELDS = ("summary", "description", "location")
## Fields holding an upper case token
TOKEN_FIELDS = ("status", "classification", "transparency")
## Integer fields and their permitted range
INT_FIELDS = {"priority": (0, 9), "percent_complete": (0, 100)}
DATE_FIELDS = ("start", "due", "end", "completed")
## A to-do directive touching any of these is a completion transition
COMPLETION_FIELDS = {"status", "percent_complete", "completed"}


def utcnow() -> datetime:
    return datetime.now(utc).replace(microsecond=0)


def escape_text(value: Any) -> str:
    return vText(str(value)).to_ical().decode("utf-8")


def to_date_value(value: Union[str, date, datetime]) -> Union[date, datetime]:
    """
    Interpret a caller supplied date.  Accepts date and datetime objects,
    iCalendar strings (``20240401``, ``20240401T100000Z``) and ISO 8601
    strings (``2024-04-01``, ``2024-04-01T10:00:00+02:00``).
    """
    if isinstance(value, (date, datetime)):
        return value
    if not isinstance(value, str):
        raise ValueError("cannot interpret %r as a date" % (value,))
    text = value.strip()
    try:
        if _COMPACT_DATE.match(text):
            return vDate.from_ical(text)
        if _COMPACT_DATETIME.match(text):
            return vDatetime.from_ical(text)
        parsed = dateparser.isoparse(text)
    except ValueError as e:
        raise ValueError("cannot interpret %r as a date" % value) from e
    if len(text) == 10:
        return parsed.date()
    return parsed


def date_line(name: str, value: Union[str, date, datetime], timestamp: bool = False) -> Line:
    """
    Build a DATE or DATE-TIME line.  Aware timestamps are written in UTC,
    naive ones as floating time.  With ``timestamp`` a bare date is
    turned into midnight UTC, for properties that must be DATE-TIME.
    """
    value = to_date_value(value)
    if not isinstance(value, datetime) and timestamp:
        value = datetime(value.year, value.month, value.day, tzinfo=utc)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(utc)
        return Line.build(name, vDatetime(value).to_ical().decode("utf-8"))
    return Line.build(name, vDate(value).to_ical().decode("utf-8"), {"VALUE": "DATE"})


def parse_date_line(line: Line) -> Union[date, datetime]:
    value = line.value.strip()
    try:
        if (line.param("VALUE") or "").upper() == "DATE":
            return vDate.from_ical(value)
        return vDDDTypes.from_ical(value, timezone=line.param("TZID"))
    except (ValueError, TypeError) as e:
        raise error.ParseError(reason="bad date in %r" % line.text) from e


def _is_parent_relation(line: Line) -> bool:
    reltype = line.param("RELTYPE")
    return reltype is None or reltype.upper() == "PARENT"


def complete_directives(done: bool, when: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Directives marking a to-do complete (with ``when`` or the current
    time as completion timestamp), or reopening it.
    """
    if done:
        return {
            "status": "COMPLETED",
            "percent_complete": 100,
            "completed": when or utcnow(),
        }
    return {"status": "NEEDS-ACTION", "percent_complete": 0, "completed": None}


class ICalendarCodec:
    """
    Shared machinery of the to-do and event codecs.  Subclasses name the
    component, the record class and the fields with their properties.
    """

    component: ClassVar[str] = ""
    record_class: ClassVar[type] = Todo
    collection_kind: ClassVar[str] = "calendar"
    content_type: ClassVar[str] = "text/calendar; charset=utf-8"
    extension: ClassVar[str] = "ics"
    ## field name -> iCalendar property name
    properties: ClassVar[Dict[str, str]] = {
        "uid": "UID",
        "summary": "SUMMARY",
        "description": "DESCRIPTION",
        "location": "LOCATION",
        "status": "STATUS",
        "priority": "PRIORITY",
        "start": "DTSTART",
        "categories": "CATEGORIES",
        "parent": "RELATED-TO",
        "classification": "CLASS",
        "url": "URL",
    }

    # =========================================================================
    # Decoding
    # =========================================================================

    def decode(self, text: str):
        """
        Raises:
            ParseError: If the text is not iCalendar, lacks the component
                        or holds malformed lines or dates
        """
        component = self._find(Document.parse(text))
        return self.record_class(
            **{name: self._decode_field(component, name) for name in self.properties}
        )

    def identifier(self, text: str) -> Optional[str]:
        """The UID of the record in ``text``, None if it has none"""
        component = Document.parse(text).find(self.component)
        if component is None:
            return None
        line = component.first("UID")
        return line.value.strip() if line else None

    def contains(self, text: str) -> bool:
        return Document.parse(text).find(self.component) is not None

    def _find(self, doc: Document) -> Component:
        component = doc.find(self.component)
        if component is None:
            raise error.ParseError(reason="no %s component found" % self.component)
        return component

    def _decode_field(self, component: Component, name: str) -> Any:
        prop = self.properties[name]
        if name == "categories":
            categories: List[str] = []
            for line in component.lines(prop):
                categories.extend(
                    c.strip() for c in split_on_unescaped_comma(line.raw_value) if c.strip()
                )
            return categories
        if name == "parent":
            for line in component.lines(prop):
                if _is_parent_relation(line):
                    return line.value.strip()
            return None

        line = component.first(prop)
        if line is None:
            return None
        if name in DATE_FIELDS:
            return parse_date_line(line)
        if name in INT_FIELDS:
            try:
                return int(line.value.strip())
            except ValueError as e:
                raise error.ParseError(reason="bad integer in %r" % line.text) from e
        if name in TOKEN_FIELDS:
            return line.value.strip().upper()
        if name in TEXT_FIELDS:
            return line.value
        if name == "url":
            return line.raw_value.strip()
        return line.value.strip()

    # =========================================================================
    # Encoding
    # =========================================================================

    def encode(
        self,
        directives: Dict[str, Any],
        original: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Apply field directives to ``original``, or create a new calendar
        object when there is no original.

        Raises:
            ValueError: On unknown fields, out of range values, an attempt
                        to change the UID, or values that can't be encoded
            ParseError: If ``original`` can't be parsed
        """
        directives = dict(directives)
        unknown = set(directives) - set(self.properties)
        if unknown:
            raise ValueError(
                "unknown %s field(s): %s" % (self.component, ", ".join(sorted(unknown)))
            )
        now = now or utcnow()

        if original is None:
            doc, component = self._new_document(directives, now)
            creating = True
        else:
            doc = Document.parse(original)
            component = self._find(doc)
            if "uid" in directives:
                existing = component.first("UID")
                if existing is None or existing.value.strip() != directives["uid"]:
                    raise ValueError("the UID of an existing record can't be changed")
                del directives["uid"]
            creating = False

        directives = self._prepare(directives, component, creating, now)

        for name, value in directives.items():
            self._apply(component, name, value)

        if directives and not creating:
            stamp = vDatetime(now).to_ical().decode("utf-8")
            component.replace("DTSTAMP", [Line.build("DTSTAMP", stamp)])
            component.replace("LAST-MODIFIED", [Line.build("LAST-MODIFIED", stamp)])

        return doc.to_text()

    def _new_document(
        self, directives: Dict[str, Any], now: datetime
    ) -> Tuple[Document, Component]:
        calendar = Component("VCALENDAR")
        calendar.add(Line.build("VERSION", "2.0"))
        calendar.add(Line.build("PRODID", escape_text(PRODID)))

        component = Component(self.component)
        uid = directives.pop("uid", None) or str(uuid.uuid4())
        stamp = vDatetime(now).to_ical().decode("utf-8")
        component.add(Line.build("UID", escape_text(uid)))
        component.add(Line.build("DTSTAMP", stamp))
        component.add(Line.build("CREATED", stamp))
        component.add(Line.build("LAST-MODIFIED", stamp))
        calendar.add(component)

        return Document([calendar]), component

    def _prepare(
        self,
        directives: Dict[str, Any],
        component: Component,
        creating: bool,
        now: datetime,
    ) -> Dict[str, Any]:
        """Hook for directives implied by other directives"""
        return directives

    def _apply(self, component: Component, name: str, value: Any) -> None:
        prop = self.properties[name]
        if name == "parent":
            new = [] if value is None else [
                Line.build(prop, escape_text(value), {"RELTYPE": "PARENT"})
            ]
            component.replace(prop, new, where=_is_parent_relation)
        elif name == "categories":
            if isinstance(value, str):
                value = [value]
            new = [] if not value else [
                Line.build(prop, ",".join(escape_text(c) for c in value))
            ]
            component.replace(prop, new)
        elif value is None:
            component.remove(prop)
        else:
            component.replace(prop, self._lines(name, value))

    def _lines(self, name: str, value: Any) -> List[Line]:
        prop = self.properties[name]
        if name in DATE_FIELDS:
            try:
                return [date_line(prop, value, timestamp=(name == "completed"))]
            except ValueError as e:
                raise ValueError("%s: %s" % (name, e)) from e
        if name in INT_FIELDS:
            low, high = INT_FIELDS[name]
            number = int(value)
            if not low <= number <= high:
                raise ValueError("%s must be between %i and %i" % (name, low, high))
            return [Line.build(prop, str(number))]
        if name in TOKEN_FIELDS:
            return [Line.build(prop, escape_text(str(value).strip().upper()))]
        if name == "url":
            return [Line.build(prop, str(value).strip())]
        return [Line.build(prop, escape_text(value))]


class TodoCodec(ICalendarCodec):
    component = "VTODO"
    record_class = Todo
    properties = {
        **ICalendarCodec.properties,
        "percent_complete": "PERCENT-COMPLETE",
        "due": "DUE",
        "completed": "COMPLETED",
    }

    def _prepare(self, directives, component, creating, now):
        if COMPLETION_FIELDS & set(directives):
            self._completion(directives, component, now)
        if creating:
            directives.setdefault("status", "NEEDS-ACTION")
        return directives

    def _completion(self, directives, component, now):
        """
        Status, percent complete and completion time move together.  The
        transition is decided by ``status`` if given, else by
        ``completed``, else by ``percent_complete``.
        """
        old_line = component.first("STATUS")
        old = old_line.value.strip().upper() if old_line else None
        stamped = component.first("COMPLETED") is not None
        was_done = old == "COMPLETED" or stamped

        if "status" in directives:
            new = directives["status"]
            done = bool(new) and str(new).strip().upper() == "COMPLETED"
        elif "completed" in directives:
            done = directives["completed"] is not None
        else:
            percent = directives["percent_complete"]
            done = percent is not None and int(percent) == 100

        if done:
            directives["status"] = "COMPLETED"
            directives["percent_complete"] = 100
            if not directives.get("completed"):
                if old == "COMPLETED" and stamped:
                    ## already done, the recorded completion time stays
                    directives.pop("completed", None)
                else:
                    directives["completed"] = now
            return

        if "completed" in directives or stamped:
            directives["completed"] = None
        if not was_done:
            return
        if "status" in directives:
            directives["percent_complete"] = 0
        else:
            percent = directives.get("percent_complete") or 0
            directives["percent_complete"] = percent
            directives["status"] = "IN-PROCESS" if int(percent) else "NEEDS-ACTION"


class EventCodec(ICalendarCodec):
    component = "VEVENT"
    record_class = Event
    properties = {
        **ICalendarCodec.properties,
        "end": "DTEND",
        "transparency": "TRANSP",
        "organizer": "ORGANIZER",
        "attendees": "ATTENDEE",
        "alarm": "VALARM",
        "rrule": "RRULE",
    }

    def _decode_field(self, component, name):
        if name == "attendees":
            return [_parse_attendee(line) for line in component.lines("ATTENDEE")]
        if name == "organizer":
            line = component.first("ORGANIZER")
            return _parse_attendee(line) if line else None
        if name == "alarm":
            for alarm in component.components("VALARM"):
                trigger = alarm.first("TRIGGER")
                if trigger is None or (trigger.param("VALUE") or "").upper() == "DATE-TIME":
                    continue
                try:
                    return vDuration.from_ical(trigger.value.strip())
                except ValueError as e:
                    raise error.ParseError(reason="bad trigger %r" % trigger.text) from e
            return None
        if name == "rrule":
            line = component.first("RRULE")
            return line.raw_value.strip() if line else None
        return super(EventCodec, self)._decode_field(component, name)

    def _prepare(self, directives, component, creating, now):
        if not creating:
            return directives
        start = directives.get("start")
        if start is None:
            raise ValueError("an event needs a start")
        if directives.get("end") is None:
            start = to_date_value(start)
            if isinstance(start, datetime):
                directives["end"] = start + timedelta(hours=1)
            else:
                directives["end"] = start + timedelta(days=1)
        return directives

    def _apply(self, component, name, value):
        if name == "alarm":
            component.remove_components("VALARM")
            if value is not None:
                component.add(_alarm_component(value))
        elif name == "attendees":
            component.replace(
                "ATTENDEE", [_attendee_line("ATTENDEE", a) for a in (value or [])]
            )
        elif name == "organizer" and value is not None:
            component.replace("ORGANIZER", [_attendee_line("ORGANIZER", value)])
        elif name == "rrule" and value is not None:
            rule = str(value).strip()
            if rule.upper().startswith("RRULE:"):
                rule = rule[6:]
            component.replace("RRULE", [Line.build("RRULE", rule)])
        else:
            super(EventCodec, self)._apply(component, name, value)


def _to_attendee(value: Union[Attendee, str, Dict[str, Any]]) -> Attendee:
    if isinstance(value, Attendee):
        return value
    if isinstance(value, str):
        return Attendee(email=value)
    if isinstance(value, dict):
        return Attendee(**value)
    raise ValueError("cannot interpret %r as an attendee" % (value,))


def _parse_attendee(line: Line) -> Attendee:
    address = line.value.strip()
    if address.lower().startswith("mailto:"):
        address = address[7:]
    rsvp = line.param("RSVP")
    return Attendee(
        email=address,
        name=line.param("CN"),
        role=line.param("ROLE"),
        status=line.param("PARTSTAT"),
        rsvp=None if rsvp is None else rsvp.upper() == "TRUE",
    )


def _attendee_line(prop: str, value) -> Line:
    attendee = _to_attendee(value)
    params: Dict[str, str] = {}
    if attendee.name:
        params["CN"] = attendee.name
    if prop == "ATTENDEE":
        params["ROLE"] = attendee.role or "REQ-PARTICIPANT"
        params["PARTSTAT"] = attendee.status or "NEEDS-ACTION"
        if attendee.rsvp is not False:
            params["RSVP"] = "TRUE"
    return Line.build(prop, "mailto:" + attendee.email, params)


def _alarm_component(value: Union[timedelta, int, float, str]) -> Component:
    """A display alarm ``value`` before the start; numbers are minutes"""
    if isinstance(value, str):
        value = vDuration.from_ical(value.strip())
    elif isinstance(value, (int, float)):
        value = timedelta(minutes=value)
    if not isinstance(value, timedelta):
        raise ValueError("cannot interpret %r as a reminder offset" % (value,))
    alarm = Component("VALARM")
    alarm.add(Line.build("ACTION", "DISPLAY"))
    alarm.add(Line.build("DESCRIPTION", "Reminder"))
    alarm.add(Line.build("TRIGGER", vDuration(-abs(value)).to_ical().decode("utf-8")))
    return alarm


_FREQUENCIES = {
    "DAILY": ("day", "days"),
    "WEEKLY": ("week", "weeks"),
    "MONTHLY": ("month", "months"),
    "YEARLY": ("year", "years"),
}


def describe_recurrence(rule: Optional[str]) -> str:
    """
    A short English phrase for a recurrence rule, i.e.
    ``FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE`` gives "Every 2 weeks on MO,WE".
    Rules with an unknown frequency are returned as given.
    """
    if not rule:
        return ""
    rule = rule.strip()
    if rule.upper().startswith("RRULE:"):
        rule = rule[6:]
    try:
        recur = vRecur.from_ical(rule)
    except ValueError:
        return rule

    def values(key: str) -> List[Any]:
        value = recur.get(key)
        if value is None:
            return []
        return value if isinstance(value, list) else [value]

    def joined(key: str) -> str:
        return ",".join(str(v) for v in values(key))

    freq = joined("FREQ").upper()
    if freq not in _FREQUENCIES:
        return rule
    interval = int(values("INTERVAL")[0]) if values("INTERVAL") else 1
    singular, plural = _FREQUENCIES[freq]
    if interval == 1:
        text = "Every %s" % singular
    else:
        text = "Every %i %s" % (interval, plural)

    if values("BYDAY"):
        text += " on %s" % joined("BYDAY")
    if values("BYMONTHDAY"):
        text += " on day %s" % joined("BYMONTHDAY")
    if values("BYMONTH"):
        text += " in month %s" % joined("BYMONTH")
    if values("COUNT"):
        text += ", %s times" % joined("COUNT")
    if values("UNTIL"):
        text += ", until %s" % format_date(values("UNTIL")[0])
    return text


def format_date(value: Union[str, date, datetime, None]) -> str:
    """Render a date as 2024-04-01 and a timestamp as 2024-04-01 10:00"""
    if value is None:
        return ""
    if isinstance(value, str):
        try:
            value = vDDDTypes.from_ical(value.strip())
        except ValueError:
            return value
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    return str(value)
