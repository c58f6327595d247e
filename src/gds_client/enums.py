"""
Enumeration types for the GDS client.

These enums provide type-safe constants for error codes, wire-level
flags and configuration options throughout the client.
"""

from enum import Enum, IntEnum


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class ErrorCode(Enum):
    """Error codes carried by GDSClientError subclasses."""

    INVALID_ENDPOINT = "invalid_endpoint"
    CONNECT_FAILED = "connect_failed"
    NOT_CONNECTED = "not_connected"
    SESSION_CLOSED = "session_closed"
    BAD_STATUS = "bad_status"
    MISSING_OUTPUT = "missing_output"
    INDEX_RESET = "index_reset"
    NO_CREDENTIAL_PROVIDER = "no_credential_provider"
    CREDENTIALS_REJECTED = "credentials_rejected"
    DECODE_FAILED = "decode_failed"
    UNKNOWN_TYPE = "unknown_type"


class ApplicationType(IntEnum):
    """OPC UA ApplicationType values."""

    SERVER = 0
    CLIENT = 1
    CLIENT_AND_SERVER = 2
    DISCOVERY_SERVER = 3


class FileOpenMode(IntEnum):
    """Mode bits of the FileType Open method."""

    READ = 1
    WRITE = 2
    ERASE_EXISTING = 4
    APPEND = 8


class TrustListMask(IntEnum):
    """Bits of TrustListDataType.SpecifiedLists."""

    NONE = 0
    TRUSTED_CERTIFICATES = 1
    TRUSTED_CRLS = 2
    ISSUER_CERTIFICATES = 4
    ISSUER_CRLS = 8
    ALL = 15


class PrivateKeyFormat(Enum):
    """Private key container formats accepted by StartNewKeyPairRequest."""

    PEM = "PEM"
    PFX = "PFX"


class ServerCapability(Enum):
    """Well-known server capability identifiers."""

    NO_INFORMATION = "NA"
    LIVE_DATA = "DA"
    ALARMS_AND_CONDITIONS = "AC"
    HISTORICAL_DATA = "HD"
    HISTORICAL_EVENTS = "HE"
    GLOBAL_DISCOVERY_SERVER = "GDS"
    LOCAL_DISCOVERY_SERVER = "LDS"
    DEVICE_INTEGRATION = "DI"
