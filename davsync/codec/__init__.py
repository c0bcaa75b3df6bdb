"""
Codecs for the text representations of records: iCalendar for to-do
items and events, vCard for contacts.
"""
from .ical import EventCodec
from .ical import ICalendarCodec
from .ical import TodoCodec
from .ical import complete_directives
from .ical import describe_recurrence
from .vcard import VCardCodec

__all__ = [
    "EventCodec",
    "ICalendarCodec",
    "TodoCodec",
    "VCardCodec",
    "complete_directives",
    "describe_recurrence",
]
