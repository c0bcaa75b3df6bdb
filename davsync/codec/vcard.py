"""
vCard codec for contacts.

Works like the iCalendar codec: directives are applied on top of the
original card and lines that aren't touched are written back unchanged.
Cards always end up with an FN and an N line, as vCard 3.0 requires
both; a card with no known name parts gets ``N:;;;;``.
"""
import uuid
from dataclasses import astuple
from datetime import date
from datetime import datetime
from typing import Any
from typing import ClassVar
from typing import Dict
from typing import List
from typing import Optional
from typing import Union

from icalendar.parser import split_on_unescaped_comma
from icalendar.parser import split_on_unescaped_semicolon
from icalendar.prop import vAdr
from icalendar.prop import vDatetime
from icalendar.prop import vN

from .contentline import Component
from .contentline import Document
from .contentline import Line
from .ical import PRODID
from .ical import escape_text
from .ical import to_date_value
from .ical import utcnow
from davsync.lib import error
from davsync.records import Address
from davsync.records import Contact
from davsync.records import StructuredName
from davsync.records import TypedValue

## TYPE values that say nothing useful about an address or number
_NOISE_TYPES = ("INTERNET", "PREF", "X400")

## directive -> position in the N value
NAME_PARTS = {
    "family_name": 0,
    "given_name": 1,
    "name_prefix": 3,
    "name_suffix": 4,
}

TEXT_PROPERTIES = {
    "full_name": "FN",
    "organization": "ORG",
    "title": "TITLE",
    "note": "NOTE",
}


def _type_of(line: Line) -> Optional[str]:
    types = line.params.get("TYPE")
    if types is None:
        return None
    if isinstance(types, str):
        types = types.split(",")
    types = [t.strip().lower() for t in types if t.strip().upper() not in _NOISE_TYPES]
    return ",".join(t for t in types if t) or None


def _to_typed_value(value: Union[TypedValue, str, Dict[str, Any]]) -> TypedValue:
    if isinstance(value, TypedValue):
        return value
    if isinstance(value, str):
        return TypedValue(value=value)
    if isinstance(value, dict):
        return TypedValue(**value)
    raise ValueError("cannot interpret %r as an email address or phone number" % (value,))


def _to_address(value: Union[Address, Dict[str, Any]]) -> Address:
    if isinstance(value, Address):
        return value
    if isinstance(value, dict):
        return Address(**value)
    raise ValueError("cannot interpret %r as an address" % (value,))


def _padded(parts: List[str], length: int) -> List[str]:
    return (parts + [""] * length)[:length]


class VCardCodec:
    component: ClassVar[str] = "VCARD"
    collection_kind: ClassVar[str] = "addressbook"
    content_type: ClassVar[str] = "text/vcard; charset=utf-8"
    extension: ClassVar[str] = "vcf"
    directives: ClassVar[tuple] = (
        "uid",
        "full_name",
        "name",
        *NAME_PARTS,
        "emails",
        "phones",
        "addresses",
        "categories",
        "organization",
        "title",
        "note",
        "birthday",
        "url",
    )

    # =========================================================================
    # Decoding
    # =========================================================================

    def decode(self, text: str) -> Contact:
        """
        Raises:
            ParseError: If the text holds no VCARD or malformed lines
        """
        card = self._find(Document.parse(text))

        def first_value(prop: str) -> Optional[str]:
            line = card.first(prop)
            return line.value if line else None

        org = card.first("ORG")
        uid = first_value("UID")
        rev = first_value("REV")
        url = card.first("URL")
        return Contact(
            uid=uid.strip() if uid else None,
            full_name=first_value("FN"),
            name=self._decode_name(card),
            emails=[TypedValue(l.value.strip(), _type_of(l)) for l in card.lines("EMAIL")],
            phones=[TypedValue(l.value.strip(), _type_of(l)) for l in card.lines("TEL")],
            addresses=[self._decode_address(l) for l in card.lines("ADR")],
            organization=split_on_unescaped_semicolon(org.raw_value)[0] if org else None,
            title=first_value("TITLE"),
            note=first_value("NOTE"),
            birthday=self._decode_birthday(card.first("BDAY")),
            url=url.raw_value.strip() if url else None,
            categories=self._decode_categories(card),
            revision=rev.strip() if rev else None,
        )

    def identifier(self, text: str) -> Optional[str]:
        card = Document.parse(text).find(self.component)
        if card is None:
            return None
        line = card.first("UID")
        return line.value.strip() if line else None

    def contains(self, text: str) -> bool:
        return Document.parse(text).find(self.component) is not None

    def _find(self, doc: Document) -> Component:
        card = doc.find(self.component)
        if card is None:
            raise error.ParseError(reason="no VCARD found")
        return card

    def _decode_name(self, card: Component) -> StructuredName:
        line = card.first("N")
        if line is None:
            return StructuredName()
        return StructuredName(*_padded(split_on_unescaped_semicolon(line.raw_value), 5))

    def _decode_address(self, line: Line) -> Address:
        po_box, extended, street, city, region, postal_code, country = _padded(
            split_on_unescaped_semicolon(line.raw_value), 7
        )
        street = ", ".join(p for p in (po_box, extended, street) if p)
        return Address(
            street=street or None,
            city=city or None,
            region=region or None,
            postal_code=postal_code or None,
            country=country or None,
            type=_type_of(line),
        )

    def _decode_birthday(self, line: Optional[Line]) -> Union[date, str, None]:
        if line is None:
            return None
        value = line.value.strip()
        try:
            parsed = to_date_value(value)
        except ValueError:
            ## partial dates like --0315 are kept as written
            return value
        if isinstance(parsed, datetime):
            return parsed.date()
        return parsed

    def _decode_categories(self, card: Component) -> List[str]:
        categories: List[str] = []
        for line in card.lines("CATEGORIES"):
            categories.extend(
                c.strip() for c in split_on_unescaped_comma(line.raw_value) if c.strip()
            )
        return categories

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
        Apply contact directives to ``original``, or create a new card.

        Raises:
            ValueError: On unknown directives, an attempt to change the
                        UID or values that can't be encoded
            ParseError: If ``original`` can't be parsed
        """
        directives = dict(directives)
        unknown = set(directives) - set(self.directives)
        if unknown:
            raise ValueError("unknown contact field(s): %s" % ", ".join(sorted(unknown)))
        now = now or utcnow()
        rev = vDatetime(now).to_ical().decode("utf-8")

        if original is None:
            doc, card = self._new_document(directives.pop("uid", None), rev)
            creating = True
        else:
            doc = Document.parse(original)
            card = self._find(doc)
            if "uid" in directives:
                existing = card.first("UID")
                if existing is None or existing.value.strip() != directives["uid"]:
                    raise ValueError("the UID of an existing contact can't be changed")
                del directives["uid"]
            creating = False

        name_changes = {k: directives.pop(k) for k in list(directives) if k in NAME_PARTS}
        if "name" in directives:
            self._apply_name(card, directives.pop("name"), name_changes)
        elif name_changes:
            self._apply_name(card, None, name_changes)

        for key, value in directives.items():
            self._apply(card, key, value)

        self._ensure_names(card)
        if not creating and (directives or name_changes):
            card.replace("REV", [Line.build("REV", rev)])

        return doc.to_text()

    def _new_document(self, uid: Optional[str], rev: str):
        card = Component("VCARD")
        card.add(Line.build("VERSION", "3.0"))
        card.add(Line.build("PRODID", escape_text(PRODID)))
        card.add(Line.build("UID", escape_text(uid or str(uuid.uuid4()))))
        card.add(Line.build("REV", rev))
        return Document([card]), card

    def _apply_name(
        self,
        card: Component,
        name: Union[StructuredName, Dict[str, str], None],
        changes: Dict[str, Optional[str]],
    ) -> None:
        if isinstance(name, dict):
            name = StructuredName(**name)
        parts = list(astuple(name if name is not None else self._decode_name(card)))
        for key, value in changes.items():
            parts[NAME_PARTS[key]] = value or ""
        card.replace("N", [Line.build("N", vN(tuple(parts)).to_ical().decode("utf-8"))])

    def _ensure_names(self, card: Component) -> None:
        if card.first("N") is None:
            fn = card.first("FN")
            empty = vN(("",) * 5).to_ical().decode("utf-8")
            new = Line.build("N", empty)
            if fn is not None:
                ## keep N right after FN, where readers expect it
                card.replace("FN", [fn, new])
            else:
                card.add(new)
        if card.first("FN") is None:
            derived = self._decode_name(card).formatted()
            card.replace("FN", [Line.build("FN", escape_text(derived))])

    def _apply(self, card: Component, key: str, value: Any) -> None:
        if key in TEXT_PROPERTIES:
            prop = TEXT_PROPERTIES[key]
            if value is None:
                card.remove(prop)
            else:
                card.replace(prop, [Line.build(prop, escape_text(value))])
        elif key in ("emails", "phones"):
            prop = "EMAIL" if key == "emails" else "TEL"
            new = []
            for item in value or []:
                typed = _to_typed_value(item)
                params = {"TYPE": typed.type} if typed.type else None
                new.append(Line.build(prop, escape_text(typed.value), params))
            card.replace(prop, new)
        elif key == "addresses":
            new = []
            for item in value or []:
                address = _to_address(item)
                fields = (
                    "",
                    "",
                    address.street or "",
                    address.city or "",
                    address.region or "",
                    address.postal_code or "",
                    address.country or "",
                )
                params = {"TYPE": address.type} if address.type else None
                new.append(Line.build("ADR", vAdr(fields).to_ical().decode("utf-8"), params))
            card.replace("ADR", new)
        elif key == "categories":
            if isinstance(value, str):
                value = [value]
            new = [] if not value else [
                Line.build("CATEGORIES", ",".join(escape_text(c) for c in value))
            ]
            card.replace("CATEGORIES", new)
        elif key == "birthday":
            card.replace("BDAY", [] if value is None else [Line.build("BDAY", self._birthday(value))])
        elif key == "url":
            card.replace("URL", [] if value is None else [Line.build("URL", str(value).strip())])

    def _birthday(self, value: Union[date, datetime, str]) -> str:
        if isinstance(value, str) and value.strip().startswith("--"):
            return value.strip()
        parsed = to_date_value(value)
        if isinstance(parsed, datetime):
            parsed = parsed.date()
        return parsed.isoformat()
