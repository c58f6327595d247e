"""
Data models for the GDS client.

This module defines the client-side snapshots of directory records,
network discovery rows, certificate requests and trust lists, plus the
user identity objects exchanged with the session.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from asyncua import ua

from .enums import ApplicationType, PrivateKeyFormat, TrustListMask

# Null OPC UA DateTime; anything at or before it counts as "no reset seen yet"
EPOCH_ZERO = datetime(1601, 1, 1, tzinfo=timezone.utc)


def _localized_text(value: Any) -> str:
    text = getattr(value, "Text", value)
    return text or ""


@dataclass(eq=False)
class UserIdentity:
    """
    A user identity presented to the server.

    Compared by object identity only: the elevation controller relies on
    ``is`` to tell whether the session still runs under the identity it
    applied.
    """

    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)

    @property
    def is_anonymous(self) -> bool:
        return not self.username

    @classmethod
    def anonymous(cls) -> "UserIdentity":
        return cls()


@dataclass(frozen=True)
class CredentialGrant:
    """Credentials handed out by a credential provider."""

    identity: UserIdentity
    cache: bool = False


@dataclass(frozen=True)
class ApplicationRecord:
    """Snapshot of one registered application."""

    application_uri: str
    application_type: ApplicationType
    application_names: list[str]
    product_uri: str = ""
    discovery_urls: list[str] = field(default_factory=list)
    server_capabilities: list[str] = field(default_factory=list)
    application_id: Optional[ua.NodeId] = None

    @classmethod
    def from_ua(cls, record: Any) -> "ApplicationRecord":
        """Build a snapshot from a decoded ApplicationRecordDataType."""
        return cls(
            application_id=record.ApplicationId,
            application_uri=record.ApplicationUri or "",
            application_type=ApplicationType(int(record.ApplicationType)),
            application_names=[
                _localized_text(name) for name in (record.ApplicationNames or [])
            ],
            product_uri=record.ProductUri or "",
            discovery_urls=list(record.DiscoveryUrls or []),
            server_capabilities=list(record.ServerCapabilities or []),
        )


@dataclass(frozen=True)
class ServerOnNetworkEntry:
    """One row of a QueryServers result, valid within one index epoch."""

    record_id: int
    server_name: str
    discovery_url: str
    server_capabilities: list[str] = field(default_factory=list)

    @classmethod
    def from_ua(cls, server: Any) -> "ServerOnNetworkEntry":
        """Build an entry from a decoded ServerOnNetwork structure."""
        return cls(
            record_id=int(server.RecordId),
            server_name=server.ServerName or "",
            discovery_url=server.DiscoveryUrl or "",
            server_capabilities=list(server.ServerCapabilities or []),
        )


@dataclass(frozen=True)
class QueryCursor:
    """Position of an enumeration within the server's discovery index."""

    last_reset_time: datetime = EPOCH_ZERO
    starting_record_id: int = 0


@dataclass(frozen=True)
class ServerQuery:
    """Filters for a QueryServers enumeration; empty means unfiltered."""

    max_records_to_return: int = 0
    application_name: Optional[str] = None
    application_uri: Optional[str] = None
    product_uri: Optional[str] = None
    server_capabilities: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class KeyPairRequest:
    """A request for a server-generated key pair and certificate."""

    application_id: ua.NodeId
    certificate_group_id: Optional[ua.NodeId]
    certificate_type_id: Optional[ua.NodeId]
    subject_name: str
    domain_names: list[str] = field(default_factory=list)
    private_key_format: PrivateKeyFormat = PrivateKeyFormat.PEM
    private_key_password: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class SigningRequest:
    """A request to sign an externally generated certificate request."""

    application_id: ua.NodeId
    certificate_group_id: Optional[ua.NodeId]
    certificate_type_id: Optional[ua.NodeId]
    certificate_request: bytes


@dataclass(frozen=True)
class CertificateBundle:
    """
    Outcome of a FinishRequest call.

    ``certificate`` is empty while the request is still pending; issuer
    certificates are kept in the order the server returned them.
    """

    certificate: bytes = b""
    private_key: Optional[bytes] = field(default=None, repr=False)
    issuer_certificates: Optional[list[bytes]] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.certificate)


@dataclass(frozen=True)
class TrustListHandle:
    """Node id of a remote trust list file object."""

    node_id: ua.NodeId


@dataclass(frozen=True)
class TrustList:
    """Decoded trust list contents."""

    specified_lists: int = TrustListMask.NONE
    trusted_certificates: list[bytes] = field(default_factory=list)
    trusted_crls: list[bytes] = field(default_factory=list)
    issuer_certificates: list[bytes] = field(default_factory=list)
    issuer_crls: list[bytes] = field(default_factory=list)

    @classmethod
    def from_ua(cls, trust_list: ua.TrustListDataType) -> "TrustList":
        return cls(
            specified_lists=int(trust_list.SpecifiedLists or 0),
            trusted_certificates=list(trust_list.TrustedCertificates or []),
            trusted_crls=list(trust_list.TrustedCrls or []),
            issuer_certificates=list(trust_list.IssuerCertificates or []),
            issuer_crls=list(trust_list.IssuerCrls or []),
        )
