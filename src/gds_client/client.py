"""
Global Discovery Server client.

This module provides the client that callers work with. It owns one session
and coordinates the protocols layered on it:
- application directory lookups and registration
- paginated server queries with index reset detection
- the certificate request / finish workflow
- trust list lookup and chunked transfer
- privilege elevation around administrative calls

Every operation connects on demand using the current endpoint URL. A
session that reports closing, or a bad keep-alive status, is discarded so the
next call reconnects.
"""

from datetime import datetime
from typing import Any, AsyncIterator, Callable, Optional
from urllib.parse import urlparse

from asyncua import ua

from .audit_logger import AuditLogger
from .certificate_requests import (
    finish_arguments,
    key_pair_arguments,
    parse_certificate_groups,
    parse_finish_result,
    parse_node_id,
    parse_trust_list_handle,
    signing_arguments,
)
from .config import ClientConfig
from .elevation import CredentialProvider, ElevationController, StaticCredentialProvider
from .enums import ErrorCode, LogLevel, PrivateKeyFormat
from .exceptions import GDSConnectionError
from .models import (
    ApplicationRecord,
    CertificateBundle,
    KeyPairRequest,
    QueryCursor,
    ServerOnNetworkEntry,
    ServerQuery,
    SigningRequest,
    TrustList,
    TrustListHandle,
    UserIdentity,
)
from .node_ids import DirectoryIds, NodeReference
from .server_query import iterate_servers
from .session import Session, UaSession, is_bad_status
from .trust_list import TrustListTransfer

SessionFactory = Callable[[], Session]


def validate_endpoint_url(endpoint_url: Optional[str]) -> str:
    """
    Check that an endpoint URL is present and absolute.

    Raises:
        GDSConnectionError: The URL is empty or not well formed
    """
    if not endpoint_url:
        raise GDSConnectionError(
            code=ErrorCode.INVALID_ENDPOINT.value,
            message="An endpoint URL is required",
        )
    parsed = urlparse(endpoint_url)
    if not parsed.scheme or not parsed.netloc:
        raise GDSConnectionError(
            code=ErrorCode.INVALID_ENDPOINT.value,
            message=f"{endpoint_url} is not a valid URL.",
            details={"endpoint_url": endpoint_url},
        )
    return endpoint_url


class GlobalDiscoveryServerClient:
    """
    Client for one Global Discovery Server.

    Not safe for concurrent use: callers serialize access to an instance,
    since elevation captures and restores the session identity.
    """

    COMPONENT = "GlobalDiscoveryServerClient"

    async def __aenter__(self) -> "GlobalDiscoveryServerClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        credential_provider: Optional[CredentialProvider] = None,
        session_factory: Optional[SessionFactory] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: Client configuration (defaults apply when omitted)
            credential_provider: Source of admin credentials; when omitted and
                the configuration holds admin credentials, those are used
            session_factory: Creates unconnected sessions (defaults to UaSession)
            logger: Optional audit logger
        """
        self._config = config or ClientConfig()
        self._logger = logger
        self._endpoint_url = self._config.connection.endpoint_url
        self._preferred_locales = list(self._config.connection.preferred_locales)
        self._session_factory = session_factory or self._create_ua_session
        self._session: Optional[Session] = None

        credentials = self._config.credentials
        if credential_provider is None and credentials.admin_username:
            credential_provider = StaticCredentialProvider(
                UserIdentity(credentials.admin_username, credentials.admin_password),
                cache=credentials.cache_admin_credentials,
            )

        self._elevation = ElevationController(
            credential_provider=credential_provider,
            preferred_locales=self._preferred_locales,
            logger=logger,
        )

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def endpoint_url(self) -> str:
        return self._endpoint_url

    @endpoint_url.setter
    def endpoint_url(self, value: str) -> None:
        self._endpoint_url = value

    @property
    def preferred_locales(self) -> list[str]:
        return list(self._preferred_locales)

    @property
    def elevation(self) -> ElevationController:
        return self._elevation

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def is_connected(self) -> bool:
        return self._session is not None and self._session.is_connected

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    def _create_ua_session(self) -> Session:
        return UaSession(
            self._config.connection,
            logger=self._logger,
            on_closing=self.handle_session_closing,
            on_keep_alive=self.handle_keep_alive,
        )

    def _user_identity(self) -> UserIdentity:
        credentials = self._config.credentials
        if credentials.username:
            return UserIdentity(credentials.username, credentials.password)
        return UserIdentity.anonymous()

    async def connect(self, endpoint_url: Optional[str] = None) -> None:
        """
        Connect to the GDS, replacing any existing session.

        Args:
            endpoint_url: Endpoint to use; None means the current default

        Raises:
            GDSConnectionError: The URL is invalid or the session failed
        """
        await self._open_session(endpoint_url if endpoint_url is not None else self._endpoint_url)

    async def _open_session(self, endpoint_url: str) -> Session:
        url = validate_endpoint_url(endpoint_url)

        if self._session is not None:
            await self._discard_session()

        session = self._session_factory()
        self._endpoint_url = await session.connect(url, self._user_identity()) or url
        self._session = session
        self._log_info("Connected", {"endpoint_url": self._endpoint_url})
        return session

    async def disconnect(self) -> None:
        if self._session is not None:
            await self._discard_session()

    async def handle_session_closing(self) -> None:
        """Drop the session after the server announced it is closing."""
        if self._session is not None:
            self._log_info("Session closing, dropping session", {})
            await self._discard_session()

    async def handle_keep_alive(self, status_code: int) -> None:
        """Drop the session when a keep-alive reports a bad status."""
        if self._session is not None and is_bad_status(status_code):
            self._log_info("Keep-alive failed, dropping session", {"status_code": f"0x{status_code:08X}"})
            await self._discard_session()

    async def _discard_session(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            await session.disconnect()

    async def _ensure_connected(self) -> Session:
        session = self._session
        if session is None or not session.is_connected:
            session = await self._open_session(self._endpoint_url)
        return session

    async def _call_directory(
        self,
        method: NodeReference,
        *args: Any,
        privileged: bool = False,
    ) -> list[Any]:
        session = await self._ensure_connected()
        if not privileged:
            return await session.call_method(DirectoryIds.DIRECTORY, method, *args)
        async with self._elevation.elevated(session):
            return await session.call_method(DirectoryIds.DIRECTORY, method, *args)

    # ------------------------------------------------------------------
    # Application directory
    # ------------------------------------------------------------------

    async def find_applications(self, application_uri: str) -> list[ApplicationRecord]:
        """Find the applications registered with ``application_uri``."""
        outputs = await self._call_directory(
            DirectoryIds.FIND_APPLICATIONS,
            ua.Variant(application_uri, ua.VariantType.String),
        )
        if not outputs or outputs[0] is None:
            return []
        return [ApplicationRecord.from_ua(record) for record in outputs[0]]

    async def get_application(self, application_id: ua.NodeId) -> Optional[ApplicationRecord]:
        """Get the application record for ``application_id``."""
        outputs = await self._call_directory(
            DirectoryIds.GET_APPLICATION,
            ua.Variant(application_id, ua.VariantType.NodeId),
        )
        if not outputs or outputs[0] is None:
            return None
        return ApplicationRecord.from_ua(outputs[0])

    async def register_application(self, record: ApplicationRecord) -> ua.NodeId:
        """Register an application and return the id assigned by the server."""
        session = await self._ensure_connected()
        structure = session.new_structure("ApplicationRecordDataType")
        structure.ApplicationId = record.application_id or ua.NodeId()
        structure.ApplicationUri = record.application_uri
        structure.ApplicationType = ua.ApplicationType(int(record.application_type))
        structure.ApplicationNames = [ua.LocalizedText(Text=name) for name in record.application_names]
        structure.ProductUri = record.product_uri
        structure.DiscoveryUrls = list(record.discovery_urls)
        structure.ServerCapabilities = list(record.server_capabilities)

        outputs = await self._call_directory(
            DirectoryIds.REGISTER_APPLICATION,
            structure,
            privileged=True,
        )
        application_id = parse_node_id(outputs, "RegisterApplication")
        self._log_info("Registered application", {
            "application_uri": record.application_uri,
            "application_id": str(application_id),
        })
        return application_id

    async def unregister_application(self, application_id: ua.NodeId) -> None:
        await self._call_directory(
            DirectoryIds.UNREGISTER_APPLICATION,
            ua.Variant(application_id, ua.VariantType.NodeId),
            privileged=True,
        )
        self._log_info("Unregistered application", {"application_id": str(application_id)})

    # ------------------------------------------------------------------
    # Server queries
    # ------------------------------------------------------------------

    def query_servers(
        self,
        max_records_to_return: Optional[int] = None,
        application_name: Optional[str] = None,
        application_uri: Optional[str] = None,
        product_uri: Optional[str] = None,
        server_capabilities: Optional[list[str]] = None,
    ) -> AsyncIterator[ServerOnNetworkEntry]:
        """
        Enumerate the servers matching the filters, one page at a time.

        The returned async iterator is single-use. It raises
        EnumerationInvalidated if the server resets its index midway.
        """
        if max_records_to_return is None:
            max_records_to_return = self._config.query.max_records_to_return
        query = ServerQuery(
            max_records_to_return=max_records_to_return,
            application_name=application_name,
            application_uri=application_uri,
            product_uri=product_uri,
            server_capabilities=list(server_capabilities or []),
        )
        return iterate_servers(self._fetch_servers_page, query)

    async def _fetch_servers_page(
        self,
        cursor: QueryCursor,
        query: ServerQuery,
    ) -> tuple[Optional[datetime], list[ServerOnNetworkEntry]]:
        outputs = await self._call_directory(
            DirectoryIds.QUERY_SERVERS,
            ua.Variant(cursor.starting_record_id, ua.VariantType.UInt32),
            ua.Variant(query.max_records_to_return, ua.VariantType.UInt32),
            ua.Variant(query.application_name, ua.VariantType.String),
            ua.Variant(query.application_uri, ua.VariantType.String),
            ua.Variant(query.product_uri, ua.VariantType.String),
            ua.Variant(list(query.server_capabilities), ua.VariantType.String),
        )

        reset_time = outputs[0] if len(outputs) > 0 else None
        servers = outputs[1] if len(outputs) > 1 and outputs[1] is not None else []
        entries = [ServerOnNetworkEntry.from_ua(server) for server in servers]

        self._log(LogLevel.DEBUG, "Fetched server page", {
            "starting_record_id": cursor.starting_record_id,
            "count": len(entries),
        })
        return reset_time, entries

    # ------------------------------------------------------------------
    # Certificate requests
    # ------------------------------------------------------------------

    async def start_new_key_pair_request(
        self,
        application_id: ua.NodeId,
        certificate_group_id: Optional[ua.NodeId],
        certificate_type_id: Optional[ua.NodeId],
        subject_name: str,
        domain_names: list[str],
        private_key_format: PrivateKeyFormat = PrivateKeyFormat.PEM,
        private_key_password: Optional[str] = None,
    ) -> ua.NodeId:
        """
        Ask the server to generate a key pair and certificate.

        Returns:
            The request id to pass to finish_request()
        """
        request = KeyPairRequest(
            application_id=application_id,
            certificate_group_id=certificate_group_id,
            certificate_type_id=certificate_type_id,
            subject_name=subject_name,
            domain_names=list(domain_names),
            private_key_format=private_key_format,
            private_key_password=private_key_password,
        )
        outputs = await self._call_directory(
            DirectoryIds.START_NEW_KEY_PAIR_REQUEST,
            *key_pair_arguments(request),
            privileged=True,
        )
        request_id = parse_node_id(outputs, "StartNewKeyPairRequest")
        self._log_info("Started key pair request", {
            "application_id": str(application_id),
            "request_id": str(request_id),
            "subject_name": subject_name,
        })
        return request_id

    async def start_signing_request(
        self,
        application_id: ua.NodeId,
        certificate_group_id: Optional[ua.NodeId],
        certificate_type_id: Optional[ua.NodeId],
        certificate_request: bytes,
    ) -> ua.NodeId:
        """
        Submit a certificate signing request.

        Returns:
            The request id to pass to finish_request()
        """
        request = SigningRequest(
            application_id=application_id,
            certificate_group_id=certificate_group_id,
            certificate_type_id=certificate_type_id,
            certificate_request=certificate_request,
        )
        outputs = await self._call_directory(
            DirectoryIds.START_SIGNING_REQUEST,
            *signing_arguments(request),
            privileged=True,
        )
        request_id = parse_node_id(outputs, "StartSigningRequest")
        self._log_info("Started signing request", {
            "application_id": str(application_id),
            "request_id": str(request_id),
        })
        return request_id

    async def finish_request(self, application_id: ua.NodeId, request_id: ua.NodeId) -> CertificateBundle:
        """
        Check whether a request has completed.

        Returns an empty bundle while the request is pending. Does not wait
        or retry; see RequestPoller for a caller-side loop.
        """
        outputs = await self._call_directory(
            DirectoryIds.FINISH_REQUEST,
            *finish_arguments(application_id, request_id),
            privileged=True,
        )
        bundle = parse_finish_result(outputs)
        self._log(LogLevel.DEBUG, "Finish request polled", {
            "request_id": str(request_id),
            "complete": bundle.is_complete,
        })
        return bundle

    async def get_certificate_groups(self, application_id: ua.NodeId) -> list[ua.NodeId]:
        outputs = await self._call_directory(
            DirectoryIds.GET_CERTIFICATE_GROUPS,
            ua.Variant(application_id, ua.VariantType.NodeId),
            privileged=True,
        )
        return parse_certificate_groups(outputs)

    # ------------------------------------------------------------------
    # Trust lists
    # ------------------------------------------------------------------

    async def get_trust_list(
        self,
        application_id: ua.NodeId,
        certificate_group_id: Optional[ua.NodeId],
    ) -> TrustListHandle:
        outputs = await self._call_directory(
            DirectoryIds.GET_TRUST_LIST,
            ua.Variant(application_id, ua.VariantType.NodeId),
            ua.Variant(certificate_group_id or ua.NodeId(), ua.VariantType.NodeId),
            privileged=True,
        )
        return parse_trust_list_handle(outputs)

    async def read_trust_list(self, handle: TrustListHandle) -> TrustList:
        """Transfer and decode the trust list file behind ``handle``."""
        session = await self._ensure_connected()
        transfer = TrustListTransfer(session, logger=self._logger)
        async with self._elevation.elevated(session):
            trust_list = await transfer.read(handle)
        self._log_info("Read trust list", {
            "node_id": str(handle.node_id),
            "trusted_certificates": len(trust_list.trusted_certificates),
            "issuer_certificates": len(trust_list.issuer_certificates),
        })
        return trust_list

    # ------------------------------------------------------------------
    # Logging helpers
    # ------------------------------------------------------------------

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, self.COMPONENT, message, data)

    def _log_info(self, message: str, data: dict) -> None:
        self._log(LogLevel.INFO, message, data)
