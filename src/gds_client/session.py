"""
Session facade for the GDS client.

The protocols in this package only need a connected session that can invoke
methods by node id and swap its user identity. ``Session`` describes that
surface; ``UaSession`` implements it on top of the asyncua client.

asyncua errors are translated here:
- ua.UaStatusCodeError from a method call → RemoteInvocationFault
- session or channel closed status codes → GDSConnectionError
- transport failures (OSError, timeouts, ua.UaError) → GDSConnectionError

A lost session is reported through the ``on_closing`` callback; failures of
asyncua's connection watchdog are reported through ``on_keep_alive`` with
the status code of the failed health check.
"""

from __future__ import annotations

import asyncio
from abc import abstractmethod
from typing import Any, Awaitable, Callable, Optional, Protocol, Union, runtime_checkable

from asyncua import Client, ua
from asyncua.common.methods import call_method_full
from asyncua.crypto import security_policies

from .audit_logger import AuditLogger
from .config import ConnectionConfig
from .enums import ErrorCode, LogLevel
from .exceptions import GDSConnectionError, RemoteInvocationFault
from .models import UserIdentity
from .node_ids import NodeReference

NodeLike = Union[ua.NodeId, NodeReference]

_TRANSPORT_ERRORS = (OSError, asyncio.TimeoutError)

# status codes meaning the session or its secure channel is gone
_SESSION_LOST_STATUSES = frozenset({
    ua.StatusCodes.BadSessionClosed,
    ua.StatusCodes.BadSessionIdInvalid,
    ua.StatusCodes.BadConnectionClosed,
    ua.StatusCodes.BadSecureChannelClosed,
})


def status_name(status_code: int) -> str:
    """Symbolic name of an OPC UA status code."""
    name, _ = ua.status_codes.get_name_and_doc(status_code)
    return name


def is_bad_status(status_code: int) -> bool:
    """True when the severity bits of a status code say Bad."""
    return bool(status_code & 0x80000000)


@runtime_checkable
class Session(Protocol):
    """Protocol for a connected session able to invoke remote methods."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @property
    @abstractmethod
    def identity(self) -> Optional[UserIdentity]:
        ...

    @abstractmethod
    async def connect(self, endpoint_url: str, identity: UserIdentity) -> str:
        """Establish the session; returns the effective endpoint URL."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        ...

    @abstractmethod
    async def call_method(self, object_id: NodeLike, method_id: NodeLike, *args: Any) -> list[Any]:
        """Invoke a method and return its output arguments in order."""
        ...

    @abstractmethod
    async def update_identity(self, identity: UserIdentity, preferred_locales: list[str]) -> None:
        ...

    @abstractmethod
    def new_structure(self, type_name: str) -> Any:
        """Create an empty instance of a server structure type."""
        ...


class UaSession:
    """
    Session backed by an asyncua Client.

    On connect the server's data type definitions are loaded so that GDS
    structures such as ApplicationRecordDataType decode into objects, and
    namespace URIs are resolved to indexes on first use.
    """

    COMPONENT = "UaSession"

    def __init__(
        self,
        config: ConnectionConfig,
        logger: Optional[AuditLogger] = None,
        on_closing: Optional[Callable[[], Awaitable[None]]] = None,
        on_keep_alive: Optional[Callable[[int], Awaitable[None]]] = None,
    ) -> None:
        """
        Initialize the session.

        Args:
            config: Endpoint, security and session settings
            logger: Optional audit logger
            on_closing: Awaited when the session is found to be closed
            on_keep_alive: Awaited with the status code of a failed keep-alive
        """
        self._config = config
        self._logger = logger
        self._on_closing = on_closing
        self._on_keep_alive = on_keep_alive
        self._keep_alive_task: Optional[asyncio.Task] = None
        self._client: Optional[Client] = None
        self._connected = False
        self._identity: Optional[UserIdentity] = None
        self._namespace_indexes: dict[str, int] = {}
        self._structures: dict[str, Any] = {}

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._connected

    @property
    def identity(self) -> Optional[UserIdentity]:
        return self._identity

    def set_closing_callback(self, callback: Optional[Callable[[], Awaitable[None]]]) -> None:
        self._on_closing = callback

    async def connect(self, endpoint_url: str, identity: UserIdentity) -> str:
        client = Client(endpoint_url)
        client.application_uri = self._config.application_uri
        client.name = self._config.application_name
        client.description = self._config.application_name
        client.session_timeout = self._config.session_timeout_ms
        if self._config.preferred_locales:
            client.set_locale(self._config.preferred_locales)
        if identity.username:
            client.set_user(identity.username)
            if identity.password:
                client.set_password(identity.password)

        try:
            await self._apply_security(client)
            await client.connect()
        except (ua.UaError, *_TRANSPORT_ERRORS) as e:
            raise GDSConnectionError(
                code=ErrorCode.CONNECT_FAILED.value,
                message=f"Could not connect to {endpoint_url}: {e}",
                details={"endpoint_url": endpoint_url},
            ) from e

        client.connection_lost_callback = self._connection_lost
        self._client = client
        self._connected = True
        self._identity = identity
        self._namespace_indexes.clear()

        try:
            self._structures = dict(await client.load_data_type_definitions() or {})
        except (ua.UaError, *_TRANSPORT_ERRORS) as e:
            self._log(LogLevel.WARN, "Could not load server data type definitions", {"error": str(e)})
            self._structures = {}

        self._log(LogLevel.INFO, "Session established", {"endpoint_url": endpoint_url})
        return endpoint_url

    async def _apply_security(self, client: Client) -> None:
        security = self._config.security
        if not security.policy or security.policy == "None":
            return

        policy = getattr(security_policies, f"SecurityPolicy{security.policy}", None)
        if policy is None:
            raise GDSConnectionError(
                code=ErrorCode.CONNECT_FAILED.value,
                message=f"Unknown security policy: {security.policy}",
            )
        try:
            mode = ua.MessageSecurityMode[security.mode]
        except KeyError as e:
            raise GDSConnectionError(
                code=ErrorCode.CONNECT_FAILED.value,
                message=f"Unknown security mode: {security.mode}",
            ) from e

        await client.set_security(
            policy,
            certificate=security.certificate_path,
            private_key=security.private_key_path,
            server_certificate=security.server_certificate_path,
            mode=mode,
        )

    async def disconnect(self) -> None:
        client, self._client = self._client, None
        self._connected = False
        if client is None:
            return
        try:
            await client.disconnect()
        except (ua.UaError, *_TRANSPORT_ERRORS) as e:
            self._log(LogLevel.WARN, "Error while disconnecting", {"error": str(e)})

    async def call_method(self, object_id: NodeLike, method_id: NodeLike, *args: Any) -> list[Any]:
        client = self._require_client()
        try:
            parent = client.get_node(await self._resolve(object_id))
            result = await call_method_full(parent, await self._resolve(method_id), *args)
        except ua.UaStatusCodeError as e:
            if e.code in _SESSION_LOST_STATUSES:
                await self._handle_lost_connection(e)
                raise GDSConnectionError(
                    code=ErrorCode.SESSION_CLOSED.value,
                    message=f"Session lost during call: {e}",
                    details={"status": status_name(e.code), "method": str(method_id)},
                ) from e
            raise RemoteInvocationFault(
                code=ErrorCode.BAD_STATUS.value,
                message=str(e),
                details={"status": status_name(e.code), "method": str(method_id)},
                status_code=e.code,
            ) from e
        except _TRANSPORT_ERRORS as e:
            await self._handle_lost_connection(e)
            raise GDSConnectionError(
                code=ErrorCode.SESSION_CLOSED.value,
                message=f"Session lost during call: {e}",
            ) from e
        return list(result.OutputArguments or [])

    async def update_identity(self, identity: UserIdentity, preferred_locales: list[str]) -> None:
        client = self._require_client()
        if preferred_locales:
            client.set_locale(preferred_locales)
        try:
            await client.activate_session(username=identity.username, password=identity.password)
        except ua.UaStatusCodeError as e:
            if e.code in _SESSION_LOST_STATUSES:
                await self._handle_lost_connection(e)
                raise GDSConnectionError(
                    code=ErrorCode.SESSION_CLOSED.value,
                    message=f"Session lost while changing identity: {e}",
                    details={"status": status_name(e.code)},
                ) from e
            raise RemoteInvocationFault(
                code=ErrorCode.BAD_STATUS.value,
                message=str(e),
                details={"status": status_name(e.code)},
                status_code=e.code,
            ) from e
        except _TRANSPORT_ERRORS as e:
            await self._handle_lost_connection(e)
            raise GDSConnectionError(
                code=ErrorCode.SESSION_CLOSED.value,
                message=f"Session lost while changing identity: {e}",
            ) from e
        self._identity = identity

    def new_structure(self, type_name: str) -> Any:
        cls = self._structures.get(type_name) or getattr(ua, type_name, None)
        if cls is None:
            raise RemoteInvocationFault(
                code=ErrorCode.UNKNOWN_TYPE.value,
                message=f"Structure type not known to the session: {type_name}",
            )
        return cls()

    async def _resolve(self, node: NodeLike) -> ua.NodeId:
        if not isinstance(node, NodeReference):
            return node
        index = self._namespace_indexes.get(node.namespace_uri)
        if index is None:
            try:
                index = await self._require_client().get_namespace_index(node.namespace_uri)
            except ValueError as e:
                raise RemoteInvocationFault(
                    code=ErrorCode.BAD_STATUS.value,
                    message=f"Namespace not available on server: {node.namespace_uri}",
                    status_code=ua.StatusCodes.BadNodeIdUnknown,
                ) from e
            self._namespace_indexes[node.namespace_uri] = index
        return node.to_node_id(index)

    def _require_client(self) -> Client:
        if self._client is None or not self._connected:
            raise GDSConnectionError(
                code=ErrorCode.NOT_CONNECTED.value,
                message="Session is not connected",
            )
        return self._client

    async def _handle_lost_connection(self, error: Exception) -> None:
        self._connected = False
        self._log(LogLevel.WARN, "Session closed", {"error": str(error)})
        if self._on_closing is not None:
            await self._on_closing()

    async def _connection_lost(self, error: Exception) -> None:
        """
        asyncua connection_lost_callback.

        Runs inside asyncua's supervisor task, which disconnect() stops, so
        the keep-alive notification is handed to a task of its own.
        """
        if isinstance(error, ua.UaStatusCodeError):
            status_code = error.code
        else:
            status_code = ua.StatusCodes.BadConnectionClosed
        self._connected = False
        self._log(LogLevel.WARN, "Keep-alive failed", {
            "error": str(error),
            "status": status_name(status_code),
        })
        if self._on_keep_alive is not None:
            self._keep_alive_task = asyncio.ensure_future(self._on_keep_alive(status_code))

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, self.COMPONENT, message, data)
