"""
GDS Client - Client for OPC UA Global Discovery Servers.

This package provides an asynchronous client for the GDS Directory: application
registration and lookup, paginated server queries, the certificate request
workflow and trust list transfer, with privilege elevation for administrative
calls.
"""

__version__ = "0.1.0"
__author__ = "GDS Client Team"

from gds_client.exceptions import (
    GDSClientError,
    GDSConnectionError,
    RemoteInvocationFault,
    EnumerationInvalidated,
    PrivilegedOperationUnavailable,
    TransferDecodeError,
)
from gds_client.enums import (
    LogLevel,
    ErrorCode,
    ApplicationType,
    FileOpenMode,
    TrustListMask,
    PrivateKeyFormat,
    ServerCapability,
)
from gds_client.config import (
    DEFAULT_ENDPOINT_URL,
    GDS_NAMESPACE_URI,
    SecurityConfig,
    ConnectionConfig,
    CredentialsConfig,
    QueryConfig,
    PollConfig,
    LoggingConfig,
    ClientConfig,
)
from gds_client.models import (
    EPOCH_ZERO,
    UserIdentity,
    CredentialGrant,
    ApplicationRecord,
    ServerOnNetworkEntry,
    QueryCursor,
    ServerQuery,
    KeyPairRequest,
    SigningRequest,
    CertificateBundle,
    TrustListHandle,
    TrustList,
)
from gds_client.audit_logger import (
    AuditLogger,
    LogEntry,
)
from gds_client.session import (
    Session,
    UaSession,
)
from gds_client.elevation import (
    CredentialProvider,
    StaticCredentialProvider,
    ElevationController,
)
from gds_client.server_query import (
    advance_cursor,
    iterate_servers,
)
from gds_client.trust_list import (
    TrustListTransfer,
    decode_trust_list,
)
from gds_client.client import (
    GlobalDiscoveryServerClient,
    validate_endpoint_url,
)
from gds_client.polling import (
    RequestPoller,
    PollResult,
)
from gds_client.lds import (
    find_servers_on_network,
    find_global_discovery_servers,
)
from gds_client.cli import (
    main as cli_main,
    create_parser,
    create_default_config,
    load_config_from_file,
    save_config_to_file,
)
from gds_client.self_test import (
    SelfTest,
    SelfTestResult,
    ConnectivityResult,
    ConfigValidationResult,
    run_self_test,
)

__all__ = [
    # Exceptions
    "GDSClientError",
    "GDSConnectionError",
    "RemoteInvocationFault",
    "EnumerationInvalidated",
    "PrivilegedOperationUnavailable",
    "TransferDecodeError",
    # Enums
    "LogLevel",
    "ErrorCode",
    "ApplicationType",
    "FileOpenMode",
    "TrustListMask",
    "PrivateKeyFormat",
    "ServerCapability",
    # Configuration
    "DEFAULT_ENDPOINT_URL",
    "GDS_NAMESPACE_URI",
    "SecurityConfig",
    "ConnectionConfig",
    "CredentialsConfig",
    "QueryConfig",
    "PollConfig",
    "LoggingConfig",
    "ClientConfig",
    # Models
    "EPOCH_ZERO",
    "UserIdentity",
    "CredentialGrant",
    "ApplicationRecord",
    "ServerOnNetworkEntry",
    "QueryCursor",
    "ServerQuery",
    "KeyPairRequest",
    "SigningRequest",
    "CertificateBundle",
    "TrustListHandle",
    "TrustList",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # Session
    "Session",
    "UaSession",
    # Elevation
    "CredentialProvider",
    "StaticCredentialProvider",
    "ElevationController",
    # Server Query
    "advance_cursor",
    "iterate_servers",
    # Trust List
    "TrustListTransfer",
    "decode_trust_list",
    # Client
    "GlobalDiscoveryServerClient",
    "validate_endpoint_url",
    # Polling
    "RequestPoller",
    "PollResult",
    # Local Discovery
    "find_servers_on_network",
    "find_global_discovery_servers",
    # CLI
    "cli_main",
    "create_parser",
    "create_default_config",
    "load_config_from_file",
    "save_config_to_file",
    # Self-Test
    "SelfTest",
    "SelfTestResult",
    "ConnectivityResult",
    "ConfigValidationResult",
    "run_self_test",
]
