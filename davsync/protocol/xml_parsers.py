"""
Pure functions for parsing DAV multistatus responses.

All functions in this module are pure - they take XML bytes in and return
structured data out, with no side effects or I/O.

Servers bind the DAV, CalDAV and CardDAV namespaces to whatever prefix
they like (``d:``, ``cal:``, ``c:`` or a default namespace).  Tags are
therefore always compared in Clark notation, ``{namespace-uri}local-name``,
which lxml gives us regardless of the prefix used on the wire.
"""

import logging
from typing import Any
from urllib.parse import unquote, urlparse

from lxml import etree
from lxml.etree import _Element

from davsync.elements import carddav, cdav, dav
from davsync.lib import error
from davsync.lib.namespace import localname

from .types import CollectionInfo, MultistatusEntry

log = logging.getLogger(__name__)

## Values a server may use to switch a boolean property off.  Anything
## else, including a missing property, counts as true.
_FALSE_VALUES = ("0", "false", "no", "off")
_TRUE_VALUES = ("1", "true", "yes", "on")

_DATA_TAGS = (cdav.CalendarData.tag, carddav.AddressData.tag)


def parse_multistatus(
    body: bytes | str | None,
    huge_tree: bool = False,
) -> list[MultistatusEntry]:
    """
    Parse a 207 Multi-Status response body.

    Args:
        body: Raw XML response
        huge_tree: Allow parsing very large XML documents

    Returns:
        One MultistatusEntry per DAV:response element, in document order.
        An empty body gives an empty list.

    Raises:
        ParseError: If body is not well-formed XML
    """
    tree = _parse_xml(body, huge_tree=huge_tree)
    if tree is None:
        return []

    entries: list[MultistatusEntry] = []
    for elem in _strip_to_multistatus(tree):
        if elem.tag != dav.Response.tag:
            continue

        href, propstats, status = _parse_response_element(elem)
        properties = _extract_properties(propstats)

        data: str | None = None
        etag: str | None = None
        for propstat in propstats:
            prop = propstat.find(dav.Prop.tag)
            if prop is None:
                continue
            for child in prop:
                if child.tag in _DATA_TAGS and child.text:
                    data = child.text
                elif child.tag == dav.GetEtag.tag and child.text:
                    etag = strip_etag(child.text)

        entries.append(
            MultistatusEntry(
                href=href,
                status=_status_to_code(status),
                properties=properties,
                etag=etag,
                data=data,
            )
        )

    return entries


def parse_collections(
    body: bytes | str | None,
    kind: str = "calendar",
    huge_tree: bool = False,
) -> list[CollectionInfo]:
    """
    Parse a Depth: 1 PROPFIND over a calendar or address book home.

    Args:
        body: Raw XML response
        kind: "calendar" or "addressbook", the resource type to keep
        huge_tree: Allow parsing very large XML documents

    Returns:
        List of CollectionInfo, one per matching collection.  The home
        collection itself and members of other types are skipped.
    """
    if kind not in ("calendar", "addressbook"):
        raise ValueError("unknown collection kind %r" % kind)

    collections: list[CollectionInfo] = []
    for entry in parse_multistatus(body, huge_tree=huge_tree):
        resource_types = entry.properties.get("resourcetype") or []
        if isinstance(resource_types, str):
            resource_types = [resource_types]
        if kind not in resource_types:
            continue

        name = entry.href.rstrip("/").rsplit("/", 1)[-1]
        props = entry.properties
        components = props.get("supported-calendar-component-set") or []
        if isinstance(components, str):
            components = [components]

        collections.append(
            CollectionInfo(
                name=name,
                href=entry.href,
                display_name=props.get("displayname") or name,
                ctag=props.get("getctag"),
                color=props.get("calendar-color"),
                order=_to_int(props.get("calendar-order")),
                components=list(components),
                enabled=parse_bool(props.get("calendar-enabled")),
                description=props.get("calendar-description")
                or props.get("addressbook-description"),
            )
        )

    return collections


def parse_bool(value: Any, default: bool = True) -> bool:
    """
    Interpret a boolean DAV property.

    Nextcloud omits ``calendar-enabled`` for enabled calendars and only
    sends it when it is ``0``, so a missing or unrecognized value gives
    ``default``.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _FALSE_VALUES:
        return False
    if text in _TRUE_VALUES:
        return True
    return default


def strip_etag(etag: str | None) -> str | None:
    """Remove the surrounding quotes (and whitespace) from an entity tag"""
    if etag is None:
        return None
    etag = etag.strip()
    if etag.startswith("W/"):
        return etag
    if len(etag) >= 2 and etag[0] == '"' and etag[-1] == '"':
        etag = etag[1:-1]
    return etag


# Helper functions


def _parse_xml(body: bytes | str | None, huge_tree: bool = False) -> _Element | None:
    if body is None:
        return None
    if isinstance(body, str):
        body = body.encode("utf-8")
    if not body.strip():
        return None
    parser = etree.XMLParser(huge_tree=huge_tree)
    try:
        return etree.fromstring(body, parser)
    except etree.XMLSyntaxError as e:
        raise error.ParseError(reason="malformed multistatus body: %s" % e) from e


def _strip_to_multistatus(tree: _Element) -> _Element | list[_Element]:
    """
    Strip outer elements to get to the multistatus content.

    The general format is:
        <xml><multistatus>
            <response>...</response>
            <response>...</response>
        </multistatus></xml>

    But sometimes multistatus and/or xml element is missing.
    Returns the element(s) containing responses.
    """
    if tree.tag == "xml" and len(tree) > 0 and tree[0].tag == dav.MultiStatus.tag:
        return tree[0]
    if tree.tag == dav.MultiStatus.tag:
        return tree
    return [tree]


def _parse_response_element(
    response: _Element,
) -> tuple[str, list[_Element], str | None]:
    """
    Parse a single DAV:response element.

    Returns:
        Tuple of (href, propstat elements list, status string)
    """
    status: str | None = None
    href: str | None = None
    propstats: list[_Element] = []

    for elem in response:
        if elem.tag == dav.Status.tag:
            status = elem.text
        elif elem.tag == dav.Href.tag:
            # Fix for double-encoded URLs
            text = (elem.text or "").strip()
            if "%2540" in text:
                text = text.replace("%2540", "%40")
            href = unquote(text)
            # Convert absolute URLs to paths
            if "://" in href:
                href = urlparse(href).path
        elif elem.tag == dav.PropStat.tag:
            propstats.append(elem)

    if href is None:
        error.weirdness("response element without href", response)

    return (href or "", propstats, status)


def _extract_properties(propstats: list[_Element]) -> dict[str, Any]:
    """
    Extract properties from propstat elements into a dict keyed by the
    local name of each property.  Properties reported with a 404 status
    are left out.
    """
    properties: dict[str, Any] = {}

    for propstat in propstats:
        status_elem = propstat.find(dav.Status.tag)
        if status_elem is not None and _status_to_code(status_elem.text) == 404:
            continue

        prop = propstat.find(dav.Prop.tag)
        if prop is None:
            continue

        for child in prop:
            if not isinstance(child.tag, str):
                ## comments and processing instructions
                continue
            properties[localname(child.tag)] = _element_to_value(child)

    return properties


def _element_to_value(elem: _Element) -> Any:
    """
    Convert an XML element to a Python value.

    For simple elements, returns text content.
    For complex elements with children, returns a list of local names,
    name attributes or texts.
    """
    if len(elem) == 0:
        return elem.text

    # supported-calendar-component-set: extract comp names
    if elem.tag == cdav.SupportedCalendarComponentSet.tag:
        return [
            child.get("name")
            for child in elem
            if child.tag == cdav.Comp.tag and child.get("name")
        ]

    # resourcetype: extract child tag names (e.g., collection, calendar)
    if elem.tag == dav.ResourceType.tag:
        return [localname(child.tag) for child in elem if isinstance(child.tag, str)]

    children_values = []
    for child in elem:
        if not isinstance(child.tag, str):
            continue
        if child.text and child.text.strip():
            children_values.append(child.text)
        elif child.get("name"):
            children_values.append(child.get("name"))
        elif len(child) == 0:
            children_values.append(localname(child.tag))

    if len(children_values) == 1:
        return children_values[0]
    return children_values


def _status_to_code(status: str | None) -> int:
    """
    Extract status code from status string like "HTTP/1.1 200 OK".

    Returns:
        Integer status code (defaults to 200 if parsing fails)
    """
    if not status:
        return 200

    parts = status.split()
    if len(parts) >= 2:
        try:
            return int(parts[1])
        except ValueError:
            pass

    return 200


def _to_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None
