"""
Unit tests for the Sans-I/O protocol layer.

These tests verify request building and response classification without
any HTTP mocking required.
"""
import base64
from datetime import date
from datetime import datetime
from datetime import timezone

import pytest
from lxml import etree

from davsync.lib import error
from davsync.protocol import DAVMethod
from davsync.protocol import DAVProtocol
from davsync.protocol import DAVRequest
from davsync.protocol import DAVResponse
from davsync.protocol import build_addressbook_query_body
from davsync.protocol import build_calendar_query_body
from davsync.protocol import build_propfind_body
from davsync.protocol.operations import WRITE_CONFLICT
from davsync.protocol.operations import WRITE_NOT_FOUND
from davsync.protocol.operations import WRITE_OK
from davsync.protocol.operations import quote_etag

NS = {
    "D": "DAV:",
    "C": "urn:ietf:params:xml:ns:caldav",
    "CR": "urn:ietf:params:xml:ns:carddav",
}


def xml(body: bytes):
    return etree.fromstring(body)


class TestDAVTypes:
    def test_dav_request_immutable(self):
        request = DAVRequest(method=DAVMethod.GET, url="https://example.com/")
        with pytest.raises(AttributeError):
            request.url = "https://other.com/"

    def test_with_url(self):
        request = DAVRequest(
            method=DAVMethod.PUT,
            url="https://example.com/a",
            headers={"If-Match": '"1"'},
            body=b"x",
        )
        other = request.with_url("https://example.com/b")
        assert request.url == "https://example.com/a"
        assert other.headers == {"If-Match": '"1"'}
        assert other.url == "https://example.com/b"
        assert other.body == b"x"

    def test_dav_response(self):
        assert DAVResponse(status=204, headers={}, body=b"").ok
        assert not DAVResponse(status=412, headers={}, body=b"").ok
        assert DAVResponse(status=412, headers={}, body=b"").reason == "Precondition Failed"
        assert DAVResponse(status=500, headers={}, body=b"boom").text == "boom"


class TestXMLBuilders:
    def test_propfind_body(self):
        root = xml(build_propfind_body())
        assert root.tag == "{DAV:}propfind"
        assert root.find("D:prop", NS) is not None

    def test_calendar_query_by_uid(self):
        root = xml(build_calendar_query_body("VTODO", uid="task-1"))
        assert root.tag == "{urn:ietf:params:xml:ns:caldav}calendar-query"
        assert root.find("D:prop/D:getetag", NS) is not None
        assert root.find("D:prop/C:calendar-data", NS) is not None

        outer = root.find("C:filter/C:comp-filter", NS)
        assert outer.get("name") == "VCALENDAR"
        inner = outer.find("C:comp-filter", NS)
        assert inner.get("name") == "VTODO"
        prop_filter = inner.find("C:prop-filter", NS)
        assert prop_filter.get("name") == "UID"
        text_match = prop_filter.find("C:text-match", NS)
        assert text_match.text == "task-1"
        assert text_match.get("collation") == "i;octet"

    def test_calendar_query_time_range(self):
        root = xml(
            build_calendar_query_body(
                "VEVENT",
                start=datetime(2024, 4, 1, tzinfo=timezone.utc),
                end=date(2024, 5, 1),
            )
        )
        time_range = root.find(".//C:time-range", NS)
        assert time_range.get("start") == "20240401T000000Z"
        assert time_range.get("end") == "20240501T000000Z"
        assert root.find(".//C:prop-filter", NS) is None

    def test_addressbook_query_by_uid(self):
        root = xml(build_addressbook_query_body(uid="contact-1"))
        assert root.tag == "{urn:ietf:params:xml:ns:carddav}addressbook-query"
        assert root.find("D:prop/CR:address-data", NS) is not None
        prop_filter = root.find("CR:filter/CR:prop-filter", NS)
        assert prop_filter.get("name") == "UID"
        text_match = prop_filter.find("CR:text-match", NS)
        assert text_match.text == "contact-1"
        assert text_match.get("match-type") == "equals"

    def test_addressbook_query_search(self):
        root = xml(build_addressbook_query_body(search="jane"))
        prop_filter = root.find("CR:filter/CR:prop-filter", NS)
        assert prop_filter.get("name") == "FN"
        text_match = prop_filter.find("CR:text-match", NS)
        assert text_match.get("match-type") == "contains"
        assert text_match.get("collation") == "i;unicode-casemap"

    def test_addressbook_query_everything(self):
        root = xml(build_addressbook_query_body())
        assert root.find("CR:filter/CR:prop-filter", NS) is None


class TestDAVProtocol:
    def setup_method(self):
        self.protocol = DAVProtocol("https://cloud.example.com/", "alice", "secret")

    def test_auth_header(self):
        request = self.protocol.delete_request("/x")
        expected = base64.b64encode(b"alice:secret").decode()
        assert request.headers["Authorization"] == "Basic " + expected
        assert "Content-Type" not in request.headers

    def test_no_auth_without_password(self):
        protocol = DAVProtocol("https://cloud.example.com", "alice")
        assert "Authorization" not in protocol.delete_request("/x").headers

    def test_url_layout(self):
        assert self.protocol.home_path("calendar") == "remote.php/dav/calendars/alice/"
        assert (
            self.protocol.home_path("addressbook")
            == "remote.php/dav/addressbooks/users/alice/"
        )
        assert (
            self.protocol.collection_path("calendar", "tasks")
            == "remote.php/dav/calendars/alice/tasks/"
        )
        assert (
            self.protocol.resource_path("/cal/tasks", "task 1", "ics")
            == "/cal/tasks/task 1.ics"
        )

    def test_home_path_needs_username(self):
        with pytest.raises(error.ConfigurationError):
            DAVProtocol("https://cloud.example.com").home_path("calendar")

    def test_resolve_url(self):
        assert (
            self.protocol.delete_request("remote.php/dav/").url
            == "https://cloud.example.com/remote.php/dav/"
        )
        assert (
            self.protocol.delete_request("/remote.php/dav/x.ics").url
            == "https://cloud.example.com/remote.php/dav/x.ics"
        )
        assert self.protocol.delete_request("https://other/x").url == "https://other/x"

    def test_resolve_url_quotes_path(self):
        ## hrefs are reported decoded, the request url must encode them again
        request = self.protocol.put_request(
            "/remote.php/dav/calendars/alice/tasks/a#b?c 50%.ics",
            "BEGIN:VCALENDAR",
            etag="e1",
        )
        assert request.url == (
            "https://cloud.example.com/remote.php/dav/calendars/alice/tasks/"
            "a%23b%3Fc%2050%25.ics"
        )

    def test_names_quoted_once(self):
        protocol = DAVProtocol("https://cloud.example.com", "alice@example.com")
        request = protocol.propfind_request(
            protocol.collection_path("calendar", "my tasks"), depth=1
        )
        assert request.url == (
            "https://cloud.example.com/remote.php/dav/calendars/alice@example.com/my%20tasks/"
        )

    def test_calendar_query_request(self):
        request = self.protocol.calendar_query_request(
            self.protocol.collection_path("calendar", "tasks"), "VTODO", uid="task-1"
        )
        assert request.method == DAVMethod.REPORT
        assert request.headers["Depth"] == "1"
        assert request.url == "https://cloud.example.com/remote.php/dav/calendars/alice/tasks/"
        assert b"task-1" in request.body

    def test_collections_request(self):
        request = self.protocol.collections_request("calendar")
        assert request.method == DAVMethod.PROPFIND
        assert request.headers["Depth"] == "1"
        root = xml(request.body)
        assert root.find("D:prop/D:resourcetype", NS) is not None
        assert root.find("D:prop/C:supported-calendar-component-set", NS) is not None

    def test_put_request_if_match(self):
        request = self.protocol.put_request("/cal/t.ics", "BEGIN:VCALENDAR", etag="etag-abc")
        assert request.method == DAVMethod.PUT
        assert request.headers["If-Match"] == '"etag-abc"'
        assert request.headers["Content-Type"] == "text/calendar; charset=utf-8"
        assert request.body == b"BEGIN:VCALENDAR"
        assert "If-None-Match" not in request.headers

    def test_put_request_create(self):
        request = self.protocol.put_request(
            "/ab/c.vcf", "BEGIN:VCARD", content_type="text/vcard; charset=utf-8", create=True
        )
        assert request.headers["If-None-Match"] == "*"
        assert "If-Match" not in request.headers

    def test_delete_request(self):
        request = self.protocol.delete_request("/cal/t.ics", etag='W/"weak"')
        assert request.method == DAVMethod.DELETE
        assert request.headers["If-Match"] == 'W/"weak"'

    def test_quote_etag(self):
        assert quote_etag("abc") == '"abc"'
        assert quote_etag('"abc"') == '"abc"'
        assert quote_etag('W/"abc"') == 'W/"abc"'

    @pytest.mark.parametrize(
        "status,expected",
        [(200, WRITE_OK), (201, WRITE_OK), (204, WRITE_OK), (412, WRITE_CONFLICT), (404, WRITE_NOT_FOUND)],
    )
    def test_classify_write(self, status, expected):
        response = DAVResponse(status=status, headers={}, body=b"")
        assert self.protocol.classify_write(response) == expected

    def test_classify_write_other_status(self):
        response = DAVResponse(status=500, headers={}, body=b"Internal trouble")
        with pytest.raises(error.ServerError) as excinfo:
            self.protocol.classify_write(response, url="https://cloud.example.com/x")
        assert excinfo.value.status == 500
        assert excinfo.value.body == "Internal trouble"

    def test_parse_report_error(self):
        with pytest.raises(error.ServerError):
            self.protocol.parse_report(DAVResponse(status=403, headers={}, body=b""))

    def test_parse_report(self):
        body = (
            b'<d:multistatus xmlns:d="DAV:"><d:response><d:href>/c/a.ics</d:href>'
            b"</d:response></d:multistatus>"
        )
        entries = self.protocol.parse_report(DAVResponse(status=207, headers={}, body=body))
        assert [e.href for e in entries] == ["/c/a.ics"]
