"""
Configuration dataclasses for the GDS client.

This module defines all configuration structures used throughout the client,
including the endpoint and session settings, transport security, credentials,
server query defaults and logging configuration.
"""

from dataclasses import dataclass, field
from typing import Optional

DEFAULT_ENDPOINT_URL = "opc.tcp://localhost:58810/GlobalDiscoveryServer"
GDS_NAMESPACE_URI = "http://opcfoundation.org/UA/GDS/"


@dataclass
class SecurityConfig:
    """Transport security settings for the secure channel."""

    policy: str = "None"  # asyncua policy suffix, e.g. 'Basic256Sha256'
    mode: str = "SignAndEncrypt"  # 'Sign' or 'SignAndEncrypt'
    certificate_path: Optional[str] = None
    private_key_path: Optional[str] = None
    server_certificate_path: Optional[str] = None


@dataclass
class ConnectionConfig:
    """Endpoint and session settings."""

    endpoint_url: str = DEFAULT_ENDPOINT_URL
    application_uri: str = "urn:localhost:gds-client"
    application_name: str = "GDS Client"
    session_timeout_ms: int = 60000
    preferred_locales: list[str] = field(default_factory=list)
    security: SecurityConfig = field(default_factory=SecurityConfig)


@dataclass
class CredentialsConfig:
    """User and administrator credentials."""

    username: Optional[str] = None
    password: Optional[str] = None
    admin_username: Optional[str] = None
    admin_password: Optional[str] = None
    cache_admin_credentials: bool = True


@dataclass
class QueryConfig:
    """Defaults for server queries."""

    max_records_to_return: int = 100


@dataclass
class PollConfig:
    """Backoff settings for callers polling FinishRequest."""

    max_attempts: int = 10
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class ClientConfig:
    """Main client configuration combining all sub-configurations."""

    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    polling: PollConfig = field(default_factory=PollConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
