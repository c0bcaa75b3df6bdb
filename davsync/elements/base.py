#!/usr/bin/env python
import sys
from collections.abc import Iterable
from typing import ClassVar
from typing import Dict
from typing import List
from typing import Optional
from typing import Union

from lxml import etree
from lxml.etree import _Element

from davsync.lib.namespace import nsmap
from davsync.lib.python_utilities import to_unicode

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self


class BaseElement:
    """
    A node in a DAV request body.  Subclasses set ``tag`` to a Clark
    notation name; children are added with ``+``, i.e.
    ``Prop() + [GetEtag(), DisplayName()]``.
    """

    tag: ClassVar[Optional[str]] = None
    children: List["BaseElement"]
    attributes: Dict[str, str]
    value: Optional[str] = None

    def __init__(
        self, name: Optional[str] = None, value: Union[str, bytes, None] = None
    ) -> None:
        self.children = []
        self.attributes = {}
        self.value = to_unicode(value)
        if name is not None:
            self.attributes["name"] = name

    def __add__(
        self, other: Union["BaseElement", Iterable["BaseElement"]]
    ) -> "BaseElement":
        return self.append(other)

    def __str__(self) -> str:
        return etree.tostring(
            self.xmlelement(), encoding="utf-8", xml_declaration=True, pretty_print=True
        ).decode("utf-8")

    def xmlelement(self) -> _Element:
        if self.tag is None:
            raise ValueError("%s has no tag" % self.__class__.__name__)
        root = etree.Element(self.tag, nsmap=nsmap)
        if self.value is not None:
            root.text = self.value
        for key, val in self.attributes.items():
            root.set(key, val)
        for child in self.children:
            root.append(child.xmlelement())
        return root

    def append(self, element: Union["BaseElement", Iterable["BaseElement"]]) -> Self:
        if isinstance(element, Iterable):
            self.children.extend(element)
        else:
            self.children.append(element)
        return self


class NamedBaseElement(BaseElement):
    def __init__(self, name: Optional[str] = None) -> None:
        super(NamedBaseElement, self).__init__(name=name)

    def xmlelement(self) -> _Element:
        if self.attributes.get("name") is None:
            raise ValueError("name attribute must be defined")
        return super(NamedBaseElement, self).xmlelement()


class ValuedBaseElement(BaseElement):
    def __init__(self, value: Union[str, bytes, None] = None) -> None:
        super(ValuedBaseElement, self).__init__(value=value)
