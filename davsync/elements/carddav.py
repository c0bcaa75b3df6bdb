#!/usr/bin/env python
"""
CardDAV request elements, ref https://tools.ietf.org/html/rfc6352
"""
from typing import ClassVar

from .base import BaseElement
from .base import NamedBaseElement
from .base import ValuedBaseElement
from davsync.lib.namespace import ns


# Operations
class AddressbookQuery(BaseElement):
    tag: ClassVar[str] = ns("CR", "addressbook-query")


# Filters
class Filter(BaseElement):
    tag: ClassVar[str] = ns("CR", "filter")


class PropFilter(NamedBaseElement):
    tag: ClassVar[str] = ns("CR", "prop-filter")


# Conditions
class TextMatch(ValuedBaseElement):
    tag: ClassVar[str] = ns("CR", "text-match")

    def __init__(
        self,
        value,
        collation: str = "i;unicode-casemap",
        match_type: str = "equals",
        negate: bool = False,
    ) -> None:
        super(TextMatch, self).__init__(value=value)
        self.attributes["collation"] = collation
        self.attributes["match-type"] = match_type
        if negate:
            self.attributes["negate-condition"] = "yes"


# Components / Data
class AddressData(BaseElement):
    tag: ClassVar[str] = ns("CR", "address-data")


# Properties
class AddressbookDescription(ValuedBaseElement):
    tag: ClassVar[str] = ns("CR", "addressbook-description")
