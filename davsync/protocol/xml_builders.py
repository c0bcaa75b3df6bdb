"""
Pure functions for building DAV XML request bodies.

All functions in this module are pure - they take data in and return XML out,
with no side effects or I/O.
"""
from datetime import date
from datetime import datetime
from typing import List
from typing import Optional
from typing import Union

from lxml import etree

from davsync.elements import carddav
from davsync.elements import cdav
from davsync.elements import dav
from davsync.elements.base import BaseElement


def _to_xml(root: BaseElement) -> bytes:
    return etree.tostring(root.xmlelement(), encoding="utf-8", xml_declaration=True)


def build_propfind_body(props: Optional[List[BaseElement]] = None) -> bytes:
    """
    Build PROPFIND request body XML.

    Args:
        props: Property elements to retrieve.  None gives an empty
               prop list (server decides).

    Returns:
        UTF-8 encoded XML bytes
    """
    return _to_xml(dav.Propfind() + (dav.Prop() + (props or [])))


def collection_props(kind: str) -> List[BaseElement]:
    """The properties asked for when listing calendars or address books"""
    props: List[BaseElement] = [
        dav.ResourceType(),
        dav.DisplayName(),
        dav.GetCTag(),
    ]
    if kind == "calendar":
        props += [
            cdav.CalendarDescription(),
            cdav.SupportedCalendarComponentSet(),
            dav.CalendarColor(),
            dav.CalendarOrder(),
            dav.CalendarEnabled(),
        ]
    else:
        props.append(carddav.AddressbookDescription())
    return props


def build_calendar_query_body(
    component: str,
    uid: Optional[str] = None,
    start: Union[date, datetime, None] = None,
    end: Union[date, datetime, None] = None,
) -> bytes:
    """
    Build calendar-query REPORT request body.

    Asks for the etag and the full calendar data of every object in the
    collection holding a ``component`` (VTODO or VEVENT), optionally
    narrowed to one UID and/or a time range.

    Args:
        component: Component type filter name (VEVENT, VTODO)
        uid: Only match objects with this UID (exact, case sensitive)
        start: Start of time range filter
        end: End of time range filter

    Returns:
        UTF-8 encoded XML bytes
    """
    prop = dav.Prop() + [dav.GetEtag(), cdav.CalendarData()]

    comp_filter = cdav.CompFilter(component)
    if start is not None or end is not None:
        comp_filter += cdav.TimeRange(start, end)
    if uid is not None:
        comp_filter += cdav.PropFilter("UID") + cdav.TextMatch(uid)

    query_filter = cdav.Filter() + (cdav.CompFilter("VCALENDAR") + comp_filter)
    return _to_xml(cdav.CalendarQuery() + [prop, query_filter])


def build_addressbook_query_body(
    uid: Optional[str] = None,
    search: Optional[str] = None,
) -> bytes:
    """
    Build addressbook-query REPORT request body.

    Args:
        uid: Only match the card with this UID
        search: Only match cards whose FN contains this text, case
                insensitively.  Ignored when ``uid`` is given.

    Returns:
        UTF-8 encoded XML bytes
    """
    prop = dav.Prop() + [dav.GetEtag(), carddav.AddressData()]

    query_filter = carddav.Filter()
    if uid is not None:
        query_filter += carddav.PropFilter("UID") + carddav.TextMatch(
            uid, collation="i;octet"
        )
    elif search:
        query_filter += carddav.PropFilter("FN") + carddav.TextMatch(
            search, match_type="contains"
        )

    return _to_xml(carddav.AddressbookQuery() + [prop, query_filter])
