#!/usr/bin/env python
from datetime import date
from datetime import datetime
from datetime import timezone
from typing import ClassVar
from typing import Optional
from typing import Union

from .base import BaseElement
from .base import NamedBaseElement
from .base import ValuedBaseElement
from davsync.lib.namespace import ns

utc_tz = timezone.utc


def _to_utc_date_string(ts: Union[date, datetime]) -> str:
    """coerce datetimes to UTC (assume localtime if nothing is given)"""
    if isinstance(ts, datetime):
        ## a naive timestamp is taken as localtime by astimezone
        ts = ts.astimezone(utc_tz)
    return ts.strftime("%Y%m%dT%H%M%SZ")


# Operations
class CalendarQuery(BaseElement):
    tag: ClassVar[str] = ns("C", "calendar-query")


# Filters
class Filter(BaseElement):
    tag: ClassVar[str] = ns("C", "filter")


class CompFilter(NamedBaseElement):
    tag: ClassVar[str] = ns("C", "comp-filter")


class PropFilter(NamedBaseElement):
    tag: ClassVar[str] = ns("C", "prop-filter")


# Conditions
class TextMatch(ValuedBaseElement):
    tag: ClassVar[str] = ns("C", "text-match")

    def __init__(self, value, collation: str = "i;octet", negate: bool = False) -> None:
        super(TextMatch, self).__init__(value=value)
        self.attributes["collation"] = collation
        if negate:
            self.attributes["negate-condition"] = "yes"


class TimeRange(BaseElement):
    tag: ClassVar[str] = ns("C", "time-range")

    def __init__(
        self,
        start: Union[date, datetime, None] = None,
        end: Union[date, datetime, None] = None,
    ) -> None:
        ## start and end should be an icalendar "date with UTC time",
        ## ref https://tools.ietf.org/html/rfc4791#section-9.9
        super(TimeRange, self).__init__()
        if start is not None:
            self.attributes["start"] = _to_utc_date_string(start)
        if end is not None:
            self.attributes["end"] = _to_utc_date_string(end)


# Components / Data
class CalendarData(BaseElement):
    tag: ClassVar[str] = ns("C", "calendar-data")


# Properties
class CalendarDescription(ValuedBaseElement):
    tag: ClassVar[str] = ns("C", "calendar-description")


class SupportedCalendarComponentSet(ValuedBaseElement):
    tag: ClassVar[str] = ns("C", "supported-calendar-component-set")


class Comp(NamedBaseElement):
    tag: ClassVar[str] = ns("C", "comp")
