"""
Tests for GlobalDiscoveryServerClient connection management and directory
operations.
"""

from types import SimpleNamespace

import pytest
from asyncua import ua
from hypothesis import given, settings
from hypothesis import strategies as st

from gds_client.client import GlobalDiscoveryServerClient, validate_endpoint_url
from gds_client.config import DEFAULT_ENDPOINT_URL, ClientConfig, CredentialsConfig
from gds_client.enums import ApplicationType, ErrorCode
from gds_client.exceptions import GDSConnectionError
from gds_client.models import ApplicationRecord
from gds_client.node_ids import DirectoryIds

from fakes import SessionRecorder, run_async

APPLICATION_ID = ua.NodeId(1001, 2)
ADMIN_CONFIG = ClientConfig(credentials=CredentialsConfig(admin_username="admin", admin_password="pw"))


def ua_record(uri: str, application_id=APPLICATION_ID):
    return SimpleNamespace(
        ApplicationId=application_id,
        ApplicationUri=uri,
        ApplicationType=ua.ApplicationType.Server,
        ApplicationNames=[ua.LocalizedText(Text="Test Server", Locale="en")],
        ProductUri="urn:product",
        DiscoveryUrls=["opc.tcp://host:4840"],
        ServerCapabilities=["DA"],
    )


class TestEndpointValidationProperty:
    """
    **Feature: gds-client, Property 12: Only absolute endpoint URLs are accepted**
    """

    @given(
        host=st.from_regex(r"[a-z][a-z0-9\-]{0,20}", fullmatch=True),
        port=st.integers(min_value=1, max_value=65535),
    )
    @settings(max_examples=100)
    def test_absolute_urls_accepted(self, host: str, port: int) -> None:
        url = f"opc.tcp://{host}:{port}/GDS"
        assert validate_endpoint_url(url) == url

    @pytest.mark.parametrize("url", ["", None, "localhost:4840", "/GlobalDiscoveryServer", "not a url"])
    def test_invalid_urls_rejected(self, url) -> None:
        with pytest.raises(GDSConnectionError) as exc_info:
            validate_endpoint_url(url)
        assert exc_info.value.code == ErrorCode.INVALID_ENDPOINT.value

    def test_invalid_url_rejected_before_session_is_created(self) -> None:
        recorder = SessionRecorder()
        client = GlobalDiscoveryServerClient(session_factory=recorder)

        with pytest.raises(GDSConnectionError):
            run_async(client.connect("no-scheme"))

        assert recorder.sessions == []


class TestConnectionManagement:

    def test_operations_connect_on_demand(self) -> None:
        recorder = SessionRecorder({DirectoryIds.FIND_APPLICATIONS: lambda uri: [None]})
        client = GlobalDiscoveryServerClient(session_factory=recorder)

        assert not client.is_connected
        assert run_async(client.find_applications("urn:missing")) == []

        assert len(recorder.sessions) == 1
        assert recorder.last.connected_url == DEFAULT_ENDPOINT_URL
        assert client.is_connected

    def test_connect_replaces_existing_session(self) -> None:
        recorder = SessionRecorder()
        client = GlobalDiscoveryServerClient(session_factory=recorder)

        run_async(client.connect())
        run_async(client.connect("opc.tcp://other:4840"))

        first, second = recorder.sessions
        assert first.disconnect_count == 1
        assert not first.is_connected
        assert second.connected_url == "opc.tcp://other:4840"
        assert client.endpoint_url == "opc.tcp://other:4840"

    def test_bad_keep_alive_drops_session_and_next_call_reconnects(self) -> None:
        recorder = SessionRecorder({DirectoryIds.FIND_APPLICATIONS: lambda uri: [None]})
        client = GlobalDiscoveryServerClient(session_factory=recorder)

        run_async(client.connect())
        run_async(client.handle_keep_alive(ua.StatusCodes.Good))
        assert client.is_connected

        run_async(client.handle_keep_alive(ua.StatusCodes.BadConnectionClosed))
        assert not client.is_connected
        assert client.session is None

        run_async(client.find_applications("urn:x"))
        assert len(recorder.sessions) == 2

    def test_disconnected_session_is_replaced_on_next_call(self) -> None:
        recorder = SessionRecorder({DirectoryIds.FIND_APPLICATIONS: lambda uri: [None]})
        client = GlobalDiscoveryServerClient(session_factory=recorder)

        run_async(client.connect())
        recorder.last.drop()
        run_async(client.find_applications("urn:x"))

        first, second = recorder.sessions
        assert first.disconnect_count == 1
        assert client.session is second
        assert [call.method_id for call in second.calls] == [DirectoryIds.FIND_APPLICATIONS]

    def test_session_closing_drops_session(self) -> None:
        recorder = SessionRecorder()
        client = GlobalDiscoveryServerClient(session_factory=recorder)

        run_async(client.connect())
        run_async(client.handle_session_closing())

        assert client.session is None
        assert recorder.last.disconnect_count == 1

    def test_context_manager_disconnects(self) -> None:
        recorder = SessionRecorder()

        async def scenario():
            async with GlobalDiscoveryServerClient(session_factory=recorder) as client:
                await client.connect()

        run_async(scenario())
        assert recorder.last.disconnect_count == 1

    def test_configured_user_identity_is_used(self) -> None:
        recorder = SessionRecorder()
        config = ClientConfig(credentials=CredentialsConfig(username="operator", password="pw"))
        client = GlobalDiscoveryServerClient(config, session_factory=recorder)

        run_async(client.connect())

        assert recorder.last.identity.username == "operator"


class TestApplicationDirectory:

    def test_find_applications(self) -> None:
        recorder = SessionRecorder({
            DirectoryIds.FIND_APPLICATIONS: lambda uri: [[ua_record(uri), ua_record(uri, ua.NodeId(1002, 2))]],
        })
        client = GlobalDiscoveryServerClient(session_factory=recorder)

        records = run_async(client.find_applications("urn:test"))

        assert [r.application_id for r in records] == [APPLICATION_ID, ua.NodeId(1002, 2)]
        assert records[0].application_uri == "urn:test"
        assert records[0].application_type is ApplicationType.SERVER
        assert records[0].application_names == ["Test Server"]
        # directory lookups need no elevation
        assert recorder.last.identity_updates == []

    def test_get_application(self) -> None:
        recorder = SessionRecorder({DirectoryIds.GET_APPLICATION: lambda app_id: [ua_record("urn:a", app_id)]})
        client = GlobalDiscoveryServerClient(session_factory=recorder)

        record = run_async(client.get_application(APPLICATION_ID))

        assert record is not None
        assert record.application_id == APPLICATION_ID

    def test_get_unknown_application(self) -> None:
        recorder = SessionRecorder({DirectoryIds.GET_APPLICATION: lambda app_id: [None]})
        client = GlobalDiscoveryServerClient(session_factory=recorder)

        assert run_async(client.get_application(APPLICATION_ID)) is None

    def test_register_application_runs_elevated(self) -> None:
        registered = []

        def register(structure):
            registered.append(structure)
            return [APPLICATION_ID]

        recorder = SessionRecorder({DirectoryIds.REGISTER_APPLICATION: register})
        client = GlobalDiscoveryServerClient(ADMIN_CONFIG, session_factory=recorder)
        record = ApplicationRecord(
            application_uri="urn:new",
            application_type=ApplicationType.CLIENT_AND_SERVER,
            application_names=["New App"],
            discovery_urls=["opc.tcp://new:4840"],
        )

        application_id = run_async(client.register_application(record))

        assert application_id == APPLICATION_ID
        structure = registered[0]
        assert structure.type_name == "ApplicationRecordDataType"
        assert structure.ApplicationUri == "urn:new"
        assert structure.ApplicationType == ua.ApplicationType.ClientAndServer
        assert [n.Text for n in structure.ApplicationNames] == ["New App"]
        assert structure.ApplicationId.is_null()

        call = recorder.last.calls_to(DirectoryIds.REGISTER_APPLICATION)[0]
        assert call.identity.username == "admin"
        assert recorder.last.identity.is_anonymous

    def test_unregister_application_runs_elevated(self) -> None:
        recorder = SessionRecorder({DirectoryIds.UNREGISTER_APPLICATION: lambda app_id: []})
        client = GlobalDiscoveryServerClient(ADMIN_CONFIG, session_factory=recorder)

        run_async(client.unregister_application(APPLICATION_ID))

        call = recorder.last.calls_to(DirectoryIds.UNREGISTER_APPLICATION)[0]
        assert call.args == [APPLICATION_ID]
        assert call.identity.username == "admin"
