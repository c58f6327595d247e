"""
Tests for UaSession error translation and session-loss notifications.

The asyncua client is replaced by a stub so no server is needed.
"""

from types import SimpleNamespace

import pytest
from asyncua import ua

from gds_client import session as session_module
from gds_client.client import GlobalDiscoveryServerClient
from gds_client.config import ConnectionConfig
from gds_client.enums import ErrorCode
from gds_client.exceptions import GDSConnectionError, RemoteInvocationFault
from gds_client.models import UserIdentity
from gds_client.session import UaSession

from fakes import run_async

OBJECT_ID = ua.NodeId(1, 2)
METHOD_ID = ua.NodeId(2, 2)

SESSION_LOST_STATUSES = [
    "BadSessionClosed",
    "BadSessionIdInvalid",
    "BadConnectionClosed",
    "BadSecureChannelClosed",
]


class Notifications:
    def __init__(self) -> None:
        self.closing = 0
        self.keep_alive: list[int] = []

    async def on_closing(self) -> None:
        self.closing += 1

    async def on_keep_alive(self, status_code: int) -> None:
        self.keep_alive.append(status_code)


def stub_client(activate_error=None):
    async def activate_session(username=None, password=None, certificate=None):
        if activate_error is not None:
            raise activate_error

    return SimpleNamespace(
        get_node=lambda node_id: node_id,
        set_locale=lambda locales: None,
        activate_session=activate_session,
    )


def attached_session(notifications: Notifications, client=None) -> UaSession:
    session = UaSession(
        ConnectionConfig(),
        on_closing=notifications.on_closing,
        on_keep_alive=notifications.on_keep_alive,
    )
    session._client = client or stub_client()
    session._connected = True
    return session


def failing_call(status_name: str):
    async def call_method_full(parent, method_id, *args):
        raise ua.UaStatusCodeError(getattr(ua.StatusCodes, status_name))
    return call_method_full


class TestCallMethodErrors:

    @pytest.mark.parametrize("status", SESSION_LOST_STATUSES)
    def test_closed_session_is_dropped(self, monkeypatch, status: str) -> None:
        monkeypatch.setattr(session_module, "call_method_full", failing_call(status))
        notifications = Notifications()
        session = attached_session(notifications)

        with pytest.raises(GDSConnectionError) as exc_info:
            run_async(session.call_method(OBJECT_ID, METHOD_ID))

        assert exc_info.value.code == ErrorCode.SESSION_CLOSED.value
        assert exc_info.value.details["status"] == status
        assert not session.is_connected
        assert notifications.closing == 1

    def test_other_bad_status_keeps_session(self, monkeypatch) -> None:
        monkeypatch.setattr(session_module, "call_method_full", failing_call("BadNotFound"))
        notifications = Notifications()
        session = attached_session(notifications)

        with pytest.raises(RemoteInvocationFault) as exc_info:
            run_async(session.call_method(OBJECT_ID, METHOD_ID))

        assert exc_info.value.status_code == ua.StatusCodes.BadNotFound
        assert session.is_connected
        assert notifications.closing == 0

    def test_transport_failure_is_dropped(self, monkeypatch) -> None:
        async def reset(parent, method_id, *args):
            raise ConnectionResetError("reset by peer")

        monkeypatch.setattr(session_module, "call_method_full", reset)
        notifications = Notifications()
        session = attached_session(notifications)

        with pytest.raises(GDSConnectionError):
            run_async(session.call_method(OBJECT_ID, METHOD_ID))

        assert not session.is_connected
        assert notifications.closing == 1

    def test_call_without_connection(self) -> None:
        session = UaSession(ConnectionConfig())

        with pytest.raises(GDSConnectionError) as exc_info:
            run_async(session.call_method(OBJECT_ID, METHOD_ID))

        assert exc_info.value.code == ErrorCode.NOT_CONNECTED.value


class TestUpdateIdentityErrors:

    def test_closed_session_is_dropped(self) -> None:
        notifications = Notifications()
        error = ua.UaStatusCodeError(ua.StatusCodes.BadSessionIdInvalid)
        session = attached_session(notifications, stub_client(activate_error=error))

        with pytest.raises(GDSConnectionError):
            run_async(session.update_identity(UserIdentity("admin", "pw"), []))

        assert not session.is_connected
        assert notifications.closing == 1
        assert session.identity is None

    def test_rejected_identity_keeps_session(self) -> None:
        notifications = Notifications()
        error = ua.UaStatusCodeError(ua.StatusCodes.BadUserAccessDenied)
        session = attached_session(notifications, stub_client(activate_error=error))

        with pytest.raises(RemoteInvocationFault):
            run_async(session.update_identity(UserIdentity("admin", "wrong"), []))

        assert session.is_connected
        assert notifications.closing == 0

    def test_accepted_identity_is_recorded(self) -> None:
        session = attached_session(Notifications())
        admin = UserIdentity("admin", "pw")

        run_async(session.update_identity(admin, ["en"]))

        assert session.identity is admin


class TestKeepAlive:

    def test_watchdog_status_is_reported(self) -> None:
        notifications = Notifications()
        session = attached_session(notifications)

        async def scenario():
            await session._connection_lost(ua.UaStatusCodeError(ua.StatusCodes.BadTimeout))
            await session._keep_alive_task

        run_async(scenario())

        assert notifications.keep_alive == [ua.StatusCodes.BadTimeout]
        assert not session.is_connected

    def test_transport_loss_reported_as_connection_closed(self) -> None:
        notifications = Notifications()
        session = attached_session(notifications)

        async def scenario():
            await session._connection_lost(ConnectionResetError("reset"))
            await session._keep_alive_task

        run_async(scenario())

        assert notifications.keep_alive == [ua.StatusCodes.BadConnectionClosed]

    def test_client_wires_session_notifications(self) -> None:
        client = GlobalDiscoveryServerClient()
        session = client._create_ua_session()

        assert session._on_closing == client.handle_session_closing
        assert session._on_keep_alive == client.handle_keep_alive
