"""
Tests for the client facade and get_davclient.
"""
import json
from unittest import mock

import pytest
from mocked_server import TASKS_PATH
from mocked_server import MockedIO
from mocked_server import multistatus
from mocked_server import response
from mocked_server import sent
from mocked_server import todo_ics

from davsync import DAVSyncClient
from davsync import get_davclient
from davsync.davclient import ENVIRONMENT_KEYS
from davsync.lib import error
from davsync.outcomes import Updated
from davsync.protocol import DAVMethod

HOME = """<?xml version="1.0"?>
<d:multistatus xmlns:d="DAV:" xmlns:cal="urn:ietf:params:xml:ns:caldav"
    xmlns:card="urn:ietf:params:xml:ns:carddav">
 <d:response>
  <d:href>/remote.php/dav/calendars/alice/</d:href>
  <d:propstat><d:prop><d:resourcetype><d:collection/></d:resourcetype></d:prop>
   <d:status>HTTP/1.1 200 OK</d:status></d:propstat>
 </d:response>
 <d:response>
  <d:href>/remote.php/dav/calendars/alice/personal/</d:href>
  <d:propstat><d:prop>
   <d:resourcetype><d:collection/><cal:calendar/></d:resourcetype>
   <d:displayname>Personal</d:displayname>
   <cal:supported-calendar-component-set><cal:comp name="VEVENT"/></cal:supported-calendar-component-set>
  </d:prop><d:status>HTTP/1.1 200 OK</d:status></d:propstat>
 </d:response>
 <d:response>
  <d:href>/remote.php/dav/calendars/alice/tasks/</d:href>
  <d:propstat><d:prop>
   <d:resourcetype><d:collection/><cal:calendar/></d:resourcetype>
   <d:displayname>Tasks</d:displayname>
   <cal:supported-calendar-component-set><cal:comp name="VTODO"/></cal:supported-calendar-component-set>
  </d:prop><d:status>HTTP/1.1 200 OK</d:status></d:propstat>
 </d:response>
</d:multistatus>
"""

ADDRESSBOOKS = """<?xml version="1.0"?>
<d:multistatus xmlns:d="DAV:" xmlns:card="urn:ietf:params:xml:ns:carddav">
 <d:response>
  <d:href>/remote.php/dav/addressbooks/users/alice/contacts/</d:href>
  <d:propstat><d:prop>
   <d:resourcetype><d:collection/><card:addressbook/></d:resourcetype>
   <d:displayname>Contacts</d:displayname>
  </d:prop><d:status>HTTP/1.1 200 OK</d:status></d:propstat>
 </d:response>
</d:multistatus>
"""


def client(*responses):
    return DAVSyncClient(
        "https://cloud.example.com", "alice", "secret", io=MockedIO(*responses)
    )


@pytest.fixture
def clean_environment(monkeypatch, tmp_path):
    for key in list(ENVIRONMENT_KEYS) + ["DAVSYNC_CONFIG_FILE", "DAVSYNC_CONFIG_SECTION"]:
        monkeypatch.delenv(key, raising=False)
    ## no config file from the user running the tests
    monkeypatch.setenv("HOME", str(tmp_path))
    return monkeypatch


class TestDAVSyncClient:
    def test_calendars(self):
        c = client(response(207, HOME.encode()))
        calendars = c.calendars()
        assert [cal.name for cal in calendars] == ["personal", "tasks"]
        request = sent(c.io)
        assert request.method == DAVMethod.PROPFIND
        assert request.headers["Depth"] == "1"
        assert request.url == "https://cloud.example.com/remote.php/dav/calendars/alice/"

    def test_task_lists(self):
        c = client(response(207, HOME.encode()))
        assert [cal.display_name for cal in c.task_lists()] == ["Tasks"]

    def test_address_books(self):
        c = client(response(207, ADDRESSBOOKS.encode()))
        books = c.address_books()
        assert [b.name for b in books] == ["contacts"]
        assert sent(c.io).url == (
            "https://cloud.example.com/remote.php/dav/addressbooks/users/alice/"
        )

    def test_calendars_error(self):
        c = client(response(401))
        with pytest.raises(error.ServerError):
            c.calendars()

    def test_kinds_share_io(self):
        c = client()
        assert c.tasks.locator.io is c.io
        assert c.events.codec.component == "VEVENT"
        assert c.contacts.codec.component == "VCARD"

    def test_complete_task(self):
        c = client(
            response(207, multistatus((TASKS_PATH + "t.ics", "e1", todo_ics("task-1")))),
            response(204),
        )
        result = c.tasks.complete("tasks", "task-1")
        assert isinstance(result, Updated)
        body = sent(c.io, 1).body.decode("utf-8")
        assert "STATUS:COMPLETED" in body
        assert "PERCENT-COMPLETE:100" in body

    def test_list(self):
        c = client(response(207, multistatus((TASKS_PATH + "t.ics", "e1", todo_ics("task-1")))))
        assert [t.uid for t in c.tasks.list("tasks")] == ["task-1"]

    def test_context_manager(self):
        c = client()
        with c as entered:
            assert entered is c
        c.io.close.assert_called_once_with()

    def test_no_url(self):
        with pytest.raises(error.ConfigurationError):
            DAVSyncClient("", "alice")

    def test_transport_settings(self):
        with mock.patch("davsync.io.sync.requests.Session"):
            c = DAVSyncClient("https://cloud.example.com", "alice", timeout=12, ssl_verify_cert=False)
        assert c.io.timeout == 12.0
        assert c.io.verify is False


class TestGetDAVClient:
    def test_arguments(self, clean_environment):
        c = get_davclient(url="https://cloud.example.com", username="alice", password="x")
        assert c.protocol.base_url == "https://cloud.example.com"
        assert c.protocol.username == "alice"

    def test_nextcloud_environment(self, clean_environment):
        clean_environment.setenv("NEXTCLOUD_URL", "https://nc.example.com")
        clean_environment.setenv("NEXTCLOUD_USER", "bob")
        clean_environment.setenv("NEXTCLOUD_PASSWORD", "pw")
        c = get_davclient()
        assert c.protocol.base_url == "https://nc.example.com"
        assert c.protocol.username == "bob"
        assert c.protocol.password == "pw"

    def test_davsync_environment(self, clean_environment):
        clean_environment.setenv("DAVSYNC_URL", "https://nc.example.com")
        clean_environment.setenv("DAVSYNC_USERNAME", "bob")
        clean_environment.setenv("DAVSYNC_TIMEOUT", "7.5")
        clean_environment.setenv("DAVSYNC_SSL_VERIFY_CERT", "false")
        c = get_davclient()
        assert c.io.timeout == 7.5
        assert c.io.verify is False

    def test_ca_bundle(self, clean_environment):
        c = get_davclient(
            url="https://nc.example.com", username="bob", ssl_verify_cert="/etc/ssl/ca.pem"
        )
        assert c.io.verify == "/etc/ssl/ca.pem"

    def test_bad_timeout(self, clean_environment):
        with pytest.raises(error.ConfigurationError):
            get_davclient(url="https://nc.example.com", username="bob", timeout="soon")

    def test_config_file(self, clean_environment, tmp_path):
        config_file = tmp_path / "davsync.json"
        config_file.write_text(
            json.dumps(
                {
                    "default": {"davsync_url": "https://nc.example.com", "davsync_user": "carol"},
                    "work": {"inherits": "default", "davsync_user": "carol.work"},
                }
            )
        )
        clean_environment.setenv("DAVSYNC_CONFIG_FILE", str(config_file))
        assert get_davclient().protocol.username == "carol"
        c = get_davclient(config_section="work")
        assert c.protocol.username == "carol.work"
        assert c.protocol.base_url == "https://nc.example.com"

    def test_nothing_configured(self, clean_environment):
        with pytest.raises(error.ConfigurationError):
            get_davclient()

    def test_username_required(self, clean_environment):
        clean_environment.setenv("NEXTCLOUD_URL", "https://nc.example.com")
        with pytest.raises(error.ConfigurationError):
            get_davclient()
