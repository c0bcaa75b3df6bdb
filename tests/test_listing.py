"""
Tests for listing collections and for the text renderers.
"""
from datetime import date
from datetime import datetime
from datetime import timezone

import pytest
from mocked_server import CONTACTS_PATH
from mocked_server import TASKS_PATH
from mocked_server import MockedIO
from mocked_server import contacts_multistatus
from mocked_server import event_ics
from mocked_server import multistatus
from mocked_server import protocol
from mocked_server import response
from mocked_server import sent
from mocked_server import todo_ics
from mocked_server import vcard

from davsync.codec import EventCodec
from davsync.codec import TodoCodec
from davsync.codec import VCardCodec
from davsync.lib import error
from davsync.listing import ListingFormatter
from davsync.listing import format_collection
from davsync.listing import format_contact
from davsync.listing import format_contact_detail
from davsync.listing import format_event
from davsync.listing import format_listing
from davsync.listing import format_todo
from davsync.listing import matches
from davsync.protocol import CollectionInfo
from davsync.records import Address
from davsync.records import Attendee
from davsync.records import Contact
from davsync.records import Event
from davsync.records import StructuredName
from davsync.records import Todo
from davsync.records import TypedValue

utc = timezone.utc

COMPLETED = "STATUS:COMPLETED\r\nPERCENT-COMPLETE:100\r\nCOMPLETED:20240310T150000Z\r\n"


def three_tasks():
    return response(
        207,
        multistatus(
            (TASKS_PATH + "c.ics", "e3", todo_ics("task-3", "Call mom", COMPLETED)),
            (TASKS_PATH + "a.ics", "e1", todo_ics("task-1", "Buy groceries", "CATEGORIES:shopping\r\n")),
            (TASKS_PATH + "b.ics", "e2", todo_ics("task-2", "File taxes", COMPLETED)),
        ),
    )


def listing(io, codec=None):
    return ListingFormatter(protocol(), io, codec or TodoCodec())


class TestList:
    def test_server_order(self):
        io = MockedIO(three_tasks())
        tasks = listing(io).list("tasks")
        assert [t.uid for t in tasks] == ["task-3", "task-1", "task-2"]
        assert io.execute.call_count == 1
        request = sent(io)
        assert request.url == "https://cloud.example.com" + TASKS_PATH
        assert b"VTODO" in request.body
        assert b"prop-filter" not in request.body

    def test_filter(self):
        tasks = listing(MockedIO(three_tasks())).list("tasks", filter={"status": "COMPLETED"})
        assert [t.uid for t in tasks] == ["task-3", "task-2"]
        assert all(t.is_completed for t in tasks)

    def test_filter_case_insensitive(self):
        tasks = listing(MockedIO(three_tasks())).list("tasks", filter={"status": "completed"})
        assert len(tasks) == 2

    def test_filter_list_membership(self):
        tasks = listing(MockedIO(three_tasks())).list("tasks", filter={"categories": "Shopping"})
        assert [t.uid for t in tasks] == ["task-1"]

    def test_filter_no_match(self):
        tasks = listing(MockedIO(three_tasks())).list("tasks", filter={"status": "CANCELLED"})
        assert tasks == []

    def test_filter_unknown_field(self):
        with pytest.raises(ValueError):
            listing(MockedIO(three_tasks())).list("tasks", filter={"colour": "red"})

    def test_limit_after_filter(self):
        tasks = listing(MockedIO(three_tasks())).list(
            "tasks", filter={"status": "COMPLETED"}, limit=1
        )
        assert [t.uid for t in tasks] == ["task-3"]

    def test_empty(self):
        assert listing(MockedIO(response(207, multistatus()))).list("tasks") == []

    def test_missing_collection(self):
        with pytest.raises(error.ServerError):
            listing(MockedIO(response(404))).list("nope")

    def test_other_components_skipped(self):
        io = MockedIO(
            response(
                207,
                multistatus(
                    (TASKS_PATH + "e.ics", "e0", event_ics("event-1")),
                    (TASKS_PATH + "t.ics", "e1", todo_ics("task-1")),
                    (TASKS_PATH + "x.ics", "e2", "BEGIN:VCALENDAR\nBROKEN"),
                ),
            )
        )
        assert [t.uid for t in listing(io).list("tasks")] == ["task-1"]

    def test_time_range(self):
        io = MockedIO(response(207, multistatus()))
        listing(io, EventCodec()).list(
            "personal", start=date(2024, 4, 1), end=date(2024, 5, 1)
        )
        body = sent(io).body
        assert b"time-range" in body
        assert b'start="20240401T000000Z"' in body
        assert b"VEVENT" in body

    def test_contacts_search(self):
        io = MockedIO(
            response(
                207,
                contacts_multistatus(
                    (CONTACTS_PATH + "j.vcf", "v1", vcard("c-1", "Jane Doe")),
                ),
            )
        )
        contacts = listing(io, VCardCodec()).list("contacts", search="jane")
        assert [c.full_name for c in contacts] == ["Jane Doe"]
        body = sent(io).body
        assert b'name="FN"' in body
        assert b"contains" in body


class TestMatches:
    def test_typed_values(self):
        contact = Contact(emails=[TypedValue("jane@example.com", "work")])
        assert matches(contact, {"emails": "JANE@example.com"})
        assert not matches(contact, {"emails": "joe@example.com"})

    def test_no_filter(self):
        assert matches(Todo(), None)
        assert matches(Todo(), {})

    def test_all_fields_must_match(self):
        todo = Todo(status="NEEDS-ACTION", priority=1)
        assert matches(todo, {"status": "NEEDS-ACTION", "priority": 1})
        assert not matches(todo, {"status": "NEEDS-ACTION", "priority": 2})


class TestFormatTodo:
    def test_full(self):
        todo = Todo(
            uid="task-1",
            summary="Buy groceries",
            priority=1,
            percent_complete=50,
            due=date(2024, 3, 15),
            location="Store",
            parent="parent-uid-123",
            categories=["shopping", "errands"],
            classification="PRIVATE",
            description="x" * 250,
        )
        assert format_todo(todo) == "\n".join(
            [
                "[ ] Buy groceries (Priority: 1) [50%]",
                "    Due: 2024-03-15",
                "    Location: Store",
                "    Parent: parent-uid-123",
                "    Tags: shopping, errands",
                "    Class: PRIVATE",
                "    " + "x" * 200 + "...",
                "    UID: task-1",
            ]
        )

    def test_completed(self):
        todo = Todo(
            uid="task-2",
            summary="File taxes",
            status="COMPLETED",
            percent_complete=100,
            completed=datetime(2024, 3, 10, 15, 0, tzinfo=utc),
            classification="PUBLIC",
        )
        assert format_todo(todo) == (
            "[x] File taxes\n    Completed: 2024-03-10 15:00\n    UID: task-2"
        )


class TestFormatEvent:
    def test_all_day(self):
        event = Event(uid="e1", summary="Holiday", start=date(2024, 4, 1), end=date(2024, 4, 2))
        assert format_event(event) == (
            "Holiday\n    When: 2024-04-01 - 2024-04-02 (all day)\n    UID: e1"
        )

    def test_details(self):
        event = Event(
            uid="e2",
            summary="Planning",
            start=datetime(2024, 4, 1, 10, 0, tzinfo=utc),
            end=datetime(2024, 4, 1, 11, 0, tzinfo=utc),
            status="TENTATIVE",
            location="Room 1",
            organizer=Attendee("alice@example.com", "Alice"),
            attendees=[
                Attendee("bob@example.com", "Bob", "REQ-PARTICIPANT", "ACCEPTED"),
                Attendee("carol@example.com"),
            ],
            rrule="FREQ=WEEKLY",
            classification="CONFIDENTIAL",
        )
        assert format_event(event) == "\n".join(
            [
                "Planning",
                "    When: 2024-04-01 10:00 - 2024-04-01 11:00 [TENTATIVE]",
                "    Where: Room 1",
                "    Organizer: Alice <alice@example.com>",
                "    Attendees: Bob <bob@example.com> (REQ-PARTICIPANT, ACCEPTED); carol@example.com",
                "    Recurrence: Every week",
                "    Class: CONFIDENTIAL",
                "    UID: e2",
            ]
        )

    def test_confirmed_not_shown(self):
        event = Event(uid="e3", summary="x", start=date(2024, 4, 1), status="CONFIRMED")
        assert "CONFIRMED" not in format_event(event)


class TestFormatContact:
    def setup_method(self):
        self.contact = Contact(
            uid="c-1",
            full_name="Jane Doe",
            name=StructuredName("Doe", "Jane"),
            organization="Acme",
            title="Engineer",
            emails=[TypedValue("jane@acme.example", "work")],
            phones=[TypedValue("+1 555 0100", "cell"), TypedValue("+1 555 0101")],
            addresses=[Address(street="1 Main St", city="Springfield", type="home")],
            birthday=date(1990, 5, 17),
            categories=["friends", "work"],
            note="Met in 2023",
        )

    def test_entry(self):
        assert format_contact(self.contact) == "\n".join(
            [
                "Jane Doe - Acme, Engineer",
                "    Email: jane@acme.example (work)",
                "    Phone: +1 555 0100 (cell), +1 555 0101",
                "    UID: c-1",
            ]
        )

    def test_detail(self):
        assert format_contact_detail(self.contact) == "\n".join(
            [
                "Name: Jane Doe",
                "Structured name: Jane Doe",
                "Organization: Acme",
                "Title: Engineer",
                "Email (work): jane@acme.example",
                "Phone (cell): +1 555 0100",
                "Phone: +1 555 0101",
                "Address (home): 1 Main St, Springfield",
                "Birthday: 1990-05-17",
                "Groups: friends, work",
                "Note: Met in 2023",
                "UID: c-1",
            ]
        )

    def test_nameless(self):
        assert format_contact(Contact(uid="c-2")) == "(no name)\n    UID: c-2"


class TestFormatCollection:
    def test_calendar(self):
        info = CollectionInfo(
            name="personal",
            href="/remote.php/dav/calendars/alice/personal/",
            display_name="Personal",
            color="#0082c9",
            components=["VEVENT", "VTODO"],
        )
        assert format_collection(info) == "\n".join(
            [
                "Personal [#0082c9]",
                "    Supports: events, tasks",
                "    URL: /remote.php/dav/calendars/alice/personal/",
            ]
        )

    def test_disabled(self):
        info = CollectionInfo(name="old", href="/old/", display_name="Old", enabled=False)
        assert format_collection(info).splitlines()[0] == "Old (disabled)"


class TestFormatListing:
    def test_tasks(self):
        tasks = [Todo(uid="t1", summary="A"), Todo(uid="t2", summary="B")]
        text = format_listing(tasks, "tasks")
        assert text.startswith('Tasks in "tasks" (2 found):\n\n[ ] A')
        assert "\n\n[ ] B" in text

    def test_collections(self):
        info = CollectionInfo(name="p", href="/p/", display_name="P")
        assert format_listing([info]).startswith("Calendars (1 found):\n\nP")
        assert format_listing([info], noun="address books").startswith("Address books (1 found):")

    @pytest.mark.parametrize(
        "noun", ["tasks", "events", "contacts", "calendars", "address books"]
    )
    def test_empty(self, noun):
        assert format_listing([], noun=noun) == "No %s found" % noun
