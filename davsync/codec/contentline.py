"""
A line preserving model of iCalendar (RFC 5545) and vCard (RFC 2426,
RFC 6350) text.

The text is split into nested components (BEGIN/END blocks) holding
content lines.  Every line remembers the physical lines it was read
from, folding included, so a document where only a few properties are
replaced is written back with all other lines exactly as the server
sent them.  The grammar of a single line (name, parameters, value) is
left to :class:`icalendar.parser.Contentline`.
"""
import re
from typing import Callable
from typing import Dict
from typing import Iterator
from typing import List
from typing import Optional
from typing import Union

from icalendar.parser import Contentline
from icalendar.parser import Parameters
from icalendar.parser import q_split
from icalendar.parser import unescape_backslash

from davsync.lib import error

_NEWLINE_RE = re.compile(r"\r\n|\n|\r")
_NAME_RE = re.compile(r"^\s*([^;:]*)")


class Line:
    """One logical content line."""

    def __init__(self, physical: List[str]) -> None:
        self.physical = physical
        self._parts = None

    @classmethod
    def build(
        cls,
        name: str,
        value: str,
        params: Optional[Dict[str, Union[str, List[str]]]] = None,
    ) -> "Line":
        """
        Create a new line.  ``value`` must already be escaped for its
        value type, parameters are quoted as needed.
        """
        text = name.upper()
        if params:
            text += ";" + Parameters(params).to_ical(sorted=False).decode("utf-8")
        text += ":" + value
        folded = Contentline(text).to_ical().decode("utf-8")
        return cls(folded.split("\r\n"))

    @property
    def text(self) -> str:
        """The unfolded line"""
        return self.physical[0] + "".join(p[1:] for p in self.physical[1:])

    @property
    def name(self) -> str:
        """Upper cased property name, without any vCard group prefix"""
        name = _NAME_RE.match(self.text).group(1).strip().upper()
        return name.rsplit(".", 1)[-1]

    @property
    def params(self) -> Parameters:
        return self._split()[0]

    @property
    def raw_value(self) -> str:
        """The value exactly as written, escapes included"""
        return self._split()[1]

    @property
    def value(self) -> str:
        """The value with TEXT escapes resolved"""
        return unescape_backslash(self.raw_value)

    def param(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.params.get(key)
        if value is None:
            return default
        if isinstance(value, list):
            return ",".join(value)
        return value

    def _split(self):
        if self._parts is None:
            try:
                _, params, raw = Contentline(_type_bare_params(self.text)).raw_parts()
            except ValueError as e:
                raise error.ParseError(reason="bad content line %r: %s" % (self.text, e)) from e
            self._parts = (params, raw)
        return self._parts

    def __repr__(self) -> str:
        return "Line(%r)" % self.text


def _type_bare_params(text: str) -> str:
    ## vCard 2.1 writes TEL;WORK;VOICE:... where later versions say
    ## TEL;TYPE=WORK;TYPE=VOICE:...
    idx = Contentline(text).value_separator_index()
    if idx < 0:
        return text
    head, rest = text[:idx], text[idx:]
    segments = q_split(head, ";")
    if all("=" in s for s in segments[1:]):
        return text
    fixed = [segments[0]] + [s if "=" in s else "TYPE=" + s for s in segments[1:]]
    return ";".join(fixed) + rest


class Component:
    """A BEGIN/END block with its lines and sub components, in order."""

    def __init__(self, name: str, begin: Optional[Line] = None) -> None:
        self.name = name.upper()
        self.begin = begin or Line.build("BEGIN", self.name)
        self.end: Optional[Line] = None
        self.children: List[Union[Line, "Component"]] = []

    def lines(self, name: Optional[str] = None) -> List[Line]:
        """Direct content lines, optionally only those called ``name``"""
        return [
            c
            for c in self.children
            if isinstance(c, Line) and (name is None or c.name == name.upper())
        ]

    def first(self, name: str) -> Optional[Line]:
        found = self.lines(name)
        return found[0] if found else None

    def components(self, name: Optional[str] = None) -> List["Component"]:
        return [
            c
            for c in self.children
            if isinstance(c, Component) and (name is None or c.name == name.upper())
        ]

    def add(self, item: Union[Line, "Component"]) -> None:
        self.children.append(item)

    def replace(
        self,
        name: str,
        new: List[Line],
        where: Optional[Callable[[Line], bool]] = None,
    ) -> None:
        """
        Replace all lines called ``name`` (and accepted by ``where``)
        with ``new``.  The new lines take the place of the first old one,
        or follow the last property line (ahead of any sub components)
        if there were none.  An empty ``new`` removes the property.
        """
        name = name.upper()
        children: List[Union[Line, Component]] = []
        inserted = False
        for child in self.children:
            if (
                isinstance(child, Line)
                and child.name == name
                and (where is None or where(child))
            ):
                if not inserted:
                    children.extend(new)
                    inserted = True
                continue
            children.append(child)
        if not inserted:
            idx = len(children)
            while idx and isinstance(children[idx - 1], Component):
                idx -= 1
            children[idx:idx] = new
        self.children = children

    def remove(self, name: str, where: Optional[Callable[[Line], bool]] = None) -> None:
        self.replace(name, [], where=where)

    def remove_components(self, name: str) -> None:
        self.children = [
            c
            for c in self.children
            if not (isinstance(c, Component) and c.name == name.upper())
        ]

    def physical_lines(self) -> Iterator[str]:
        yield from self.begin.physical
        for child in self.children:
            if isinstance(child, Component):
                yield from child.physical_lines()
            else:
                yield from child.physical
        end = self.end or Line.build("END", self.name)
        yield from end.physical

    def __repr__(self) -> str:
        return "Component(%r, %i children)" % (self.name, len(self.children))


class Document:
    """A whole iCalendar or vCard text."""

    def __init__(self, items=None, newline: str = "\r\n") -> None:
        self.items: List[Union[Line, Component]] = items or []
        self.newline = newline

    @classmethod
    def parse(cls, text: str) -> "Document":
        """
        Raises:
            ParseError: On continuation lines without a line to continue,
                        and on BEGIN/END lines that don't pair up
        """
        if isinstance(text, bytes):
            text = text.decode("utf-8")
        newline = "\r\n" if "\r\n" in text else "\n"

        physical_groups: List[List[str]] = []
        for physical in _NEWLINE_RE.split(text):
            if not physical:
                continue
            if physical[0] in " \t":
                if not physical_groups:
                    if not physical.strip():
                        continue
                    raise error.ParseError(reason="text starts with a continuation line")
                physical_groups[-1].append(physical)
            elif physical.strip():
                physical_groups.append([physical])

        doc = cls(newline=newline)
        stack: List[Component] = []
        for group in physical_groups:
            line = Line(group)
            name = line.name
            if name == "BEGIN":
                component = Component(line.value.strip(), begin=line)
                (stack[-1].children if stack else doc.items).append(component)
                stack.append(component)
            elif name == "END":
                closing = line.value.strip().upper()
                if not stack or stack[-1].name != closing:
                    raise error.ParseError(reason="unexpected END:%s" % closing)
                stack.pop().end = line
            elif stack:
                stack[-1].add(line)
            else:
                doc.items.append(line)
        if stack:
            raise error.ParseError(reason="missing END:%s" % stack[-1].name)
        return doc

    def components(self, name: Optional[str] = None) -> List[Component]:
        return [
            c
            for c in self.items
            if isinstance(c, Component) and (name is None or c.name == name.upper())
        ]

    def find(self, name: str) -> Optional[Component]:
        """First component called ``name``, searching depth first"""
        name = name.upper()
        todo = list(self.components())
        while todo:
            component = todo.pop(0)
            if component.name == name:
                return component
            todo[:0] = component.components()
        return None

    def to_text(self) -> str:
        out: List[str] = []
        for item in self.items:
            if isinstance(item, Component):
                out.extend(item.physical_lines())
            else:
                out.extend(item.physical)
        return self.newline.join(out) + self.newline
