#!/usr/bin/env python
from typing import ClassVar

from .base import BaseElement
from .base import ValuedBaseElement
from davsync.lib.namespace import ns


# Operations
class Propfind(BaseElement):
    tag: ClassVar[str] = ns("D", "propfind")


# Components / Data
class Prop(BaseElement):
    tag: ClassVar[str] = ns("D", "prop")


# Properties
class ResourceType(BaseElement):
    tag: ClassVar[str] = ns("D", "resourcetype")


class DisplayName(ValuedBaseElement):
    tag: ClassVar[str] = ns("D", "displayname")


class GetEtag(ValuedBaseElement):
    tag: ClassVar[str] = ns("D", "getetag")


class Href(BaseElement):
    tag: ClassVar[str] = ns("D", "href")


class Response(BaseElement):
    tag: ClassVar[str] = ns("D", "response")


class Status(BaseElement):
    tag: ClassVar[str] = ns("D", "status")


class PropStat(BaseElement):
    tag: ClassVar[str] = ns("D", "propstat")


class MultiStatus(BaseElement):
    tag: ClassVar[str] = ns("D", "multistatus")


# Vendor properties seen in Nextcloud collection listings
class GetCTag(BaseElement):
    tag: ClassVar[str] = ns("CS", "getctag")


class CalendarColor(BaseElement):
    tag: ClassVar[str] = ns("I", "calendar-color")


class CalendarOrder(BaseElement):
    tag: ClassVar[str] = ns("I", "calendar-order")


class CalendarEnabled(BaseElement):
    tag: ClassVar[str] = ns("OC", "calendar-enabled")
