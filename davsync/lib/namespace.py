#!/usr/bin/env python
from typing import Dict
from typing import Optional

nsmap: Dict[str, str] = {
    "D": "DAV:",
    "C": "urn:ietf:params:xml:ns:caldav",
    "CR": "urn:ietf:params:xml:ns:carddav",
}

## Vendor namespaces.  Nextcloud/ownCloud and Apple properties show up
## in collection listings, but we don't want to ship them in the
## namespace list of every request.
nsmap2: Dict[str, str] = nsmap.copy()
nsmap2["CS"] = "http://calendarserver.org/ns/"
nsmap2["I"] = "http://apple.com/ns/ical/"
nsmap2["OC"] = "http://owncloud.org/ns"


def ns(prefix: str, tag: Optional[str] = None) -> str:
    name = "{%s}" % nsmap2[prefix]
    if tag is not None:
        name = "%s%s" % (name, tag)
    return name


def localname(tag: str) -> str:
    """Strips the namespace part of a Clark notation tag"""
    if tag.startswith("{"):
        return tag.rsplit("}", 1)[1]
    return tag
