"""
Command-line interface for the GDS client.

This module provides the main CLI entry point with commands for:
- servers: Enumerate servers registered with the GDS
- applications: Find, get, register and unregister applications
- certificates: Certificate groups and the request / finish workflow
- trust-list: Read the trust list of a certificate group
- discover: Find GDS endpoints through a Local Discovery Server
- config: Configuration management
- self-test: Validate configuration and connectivity
"""

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from asyncua import ua
from cryptography import x509
from cryptography.hazmat.primitives import serialization

from . import __version__
from .audit_logger import AuditLogger
from .client import GlobalDiscoveryServerClient
from .config import (
    ClientConfig,
    ConnectionConfig,
    CredentialsConfig,
    LoggingConfig,
    PollConfig,
    QueryConfig,
    SecurityConfig,
)
from .enums import ApplicationType, PrivateKeyFormat
from .exceptions import GDSClientError
from .lds import DEFAULT_LDS_URL, find_global_discovery_servers
from .models import ApplicationRecord, CertificateBundle, TrustList
from .node_ids import CertificateTypes
from .polling import RequestPoller
from .self_test import run_self_test

DEFAULT_CONFIG_PATH = Path.home() / ".gds_client" / "config.json"


def create_default_config(endpoint_url: Optional[str] = None) -> ClientConfig:
    """
    Create a default client configuration.

    Args:
        endpoint_url: GDS endpoint; the built-in default when omitted

    Returns:
        ClientConfig with default settings
    """
    config = ClientConfig()
    if endpoint_url:
        config.connection.endpoint_url = endpoint_url
    return config


def load_config_from_file(config_path: Path) -> Optional[ClientConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        ClientConfig if successful, None otherwise
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        connection_data = data.get("connection", {})
        security_data = connection_data.get("security", {})
        security = SecurityConfig(
            policy=security_data.get("policy", "None"),
            mode=security_data.get("mode", "SignAndEncrypt"),
            certificate_path=security_data.get("certificate_path"),
            private_key_path=security_data.get("private_key_path"),
            server_certificate_path=security_data.get("server_certificate_path"),
        )
        defaults = ConnectionConfig()
        connection = ConnectionConfig(
            endpoint_url=connection_data.get("endpoint_url", defaults.endpoint_url),
            application_uri=connection_data.get("application_uri", defaults.application_uri),
            application_name=connection_data.get("application_name", defaults.application_name),
            session_timeout_ms=connection_data.get("session_timeout_ms", defaults.session_timeout_ms),
            preferred_locales=list(connection_data.get("preferred_locales", [])),
            security=security,
        )

        credentials_data = data.get("credentials", {})
        credentials = CredentialsConfig(
            username=credentials_data.get("username"),
            password=credentials_data.get("password"),
            admin_username=credentials_data.get("admin_username"),
            admin_password=credentials_data.get("admin_password"),
            cache_admin_credentials=credentials_data.get("cache_admin_credentials", True),
        )

        query_data = data.get("query", {})
        query = QueryConfig(
            max_records_to_return=query_data.get("max_records_to_return", 100),
        )

        polling_data = data.get("polling", {})
        polling = PollConfig(
            max_attempts=polling_data.get("max_attempts", 10),
            base_delay_seconds=polling_data.get("base_delay_seconds", 1.0),
            max_delay_seconds=polling_data.get("max_delay_seconds", 30.0),
        )

        logging_data = data.get("logging", {})
        logging_config = LoggingConfig(
            level=logging_data.get("level", "info"),
            output_format=logging_data.get("output_format", "text"),
        )

        return ClientConfig(
            connection=connection,
            credentials=credentials,
            query=query,
            polling=polling,
            logging=logging_config,
        )

    except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None
    except FileNotFoundError:
        return None


def save_config_to_file(config: ClientConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Args:
        config: ClientConfig to save
        config_path: Path to save the configuration

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(asdict(config), f, indent=2, ensure_ascii=False)
        return True
    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def _resolve_config(args: argparse.Namespace) -> Optional[ClientConfig]:
    """Load the configuration named on the command line and apply overrides."""
    config_arg = getattr(args, "config", None)
    if config_arg:
        config = load_config_from_file(Path(config_arg))
        if config is None:
            print(f"Error: Could not load config from {config_arg}", file=sys.stderr)
            return None
    else:
        config = load_config_from_file(DEFAULT_CONFIG_PATH) or create_default_config()

    if getattr(args, "endpoint", None):
        config.connection.endpoint_url = args.endpoint
    if getattr(args, "admin_user", None):
        config.credentials.admin_username = args.admin_user
        config.credentials.admin_password = args.admin_password
    if getattr(args, "verbose", False):
        config.logging.level = "debug"
    return config


def _create_client(config: ClientConfig) -> GlobalDiscoveryServerClient:
    logger = AuditLogger.from_config(config.logging.level, config.logging.output_format)
    return GlobalDiscoveryServerClient(config, logger=logger)


def _parse_node_id(value: Optional[str]) -> Optional[ua.NodeId]:
    if not value:
        return None
    return ua.NodeId.from_string(value)


def describe_certificate(der: bytes) -> str:
    """One-line summary of a DER certificate."""
    try:
        cert = x509.load_der_x509_certificate(der)
    except ValueError:
        return f"<unparseable certificate, {len(der)} bytes>"
    return (
        f"{cert.subject.rfc4514_string()} "
        f"(issuer: {cert.issuer.rfc4514_string()}, "
        f"valid until {cert.not_valid_after_utc.isoformat()})"
    )


def write_bundle(bundle: CertificateBundle, out_dir: Path, key_format: PrivateKeyFormat) -> list[Path]:
    """Write certificate (PEM), private key (as received) and issuer chain (PEM)."""
    out_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []

    def _pem(der: bytes) -> bytes:
        try:
            return x509.load_der_x509_certificate(der).public_bytes(serialization.Encoding.PEM)
        except ValueError:
            return der

    cert_path = out_dir / "certificate.pem"
    cert_path.write_bytes(_pem(bundle.certificate))
    written.append(cert_path)

    if bundle.private_key:
        suffix = "pfx" if key_format is PrivateKeyFormat.PFX else "pem"
        key_path = out_dir / f"private_key.{suffix}"
        key_path.write_bytes(bundle.private_key)
        key_path.chmod(0o600)
        written.append(key_path)

    for index, issuer in enumerate(bundle.issuer_certificates or []):
        issuer_path = out_dir / f"issuer_{index}.pem"
        issuer_path.write_bytes(_pem(issuer))
        written.append(issuer_path)

    return written


def _print_application(record: ApplicationRecord) -> None:
    names = ", ".join(record.application_names) or "-"
    print(f"{record.application_id.to_string() if record.application_id else '-'}  {record.application_uri}")
    print(f"    names: {names}")
    print(f"    type: {record.application_type.name}  product: {record.product_uri or '-'}")
    if record.discovery_urls:
        print(f"    discovery: {', '.join(record.discovery_urls)}")
    if record.server_capabilities:
        print(f"    capabilities: {', '.join(record.server_capabilities)}")


def _print_bundle(bundle: CertificateBundle) -> None:
    if not bundle.is_complete:
        print("Request is still pending.")
        return
    print(f"Certificate: {describe_certificate(bundle.certificate)}")
    print(f"Private key: {'yes' if bundle.private_key else 'no'}")
    for issuer in bundle.issuer_certificates or []:
        print(f"Issuer: {describe_certificate(issuer)}")


def _print_trust_list(trust_list: TrustList) -> None:
    sections = (
        ("Trusted certificates", trust_list.trusted_certificates, True),
        ("Trusted CRLs", trust_list.trusted_crls, False),
        ("Issuer certificates", trust_list.issuer_certificates, True),
        ("Issuer CRLs", trust_list.issuer_crls, False),
    )
    print(f"Specified lists: 0x{trust_list.specified_lists:02X}")
    for title, items, are_certificates in sections:
        print(f"{title}: {len(items)}")
        for item in items:
            print(f"  - {describe_certificate(item) if are_certificates else f'{len(item)} bytes'}")


def _run(args: argparse.Namespace, command: Callable[[GlobalDiscoveryServerClient, ClientConfig], Awaitable[int]]) -> int:
    config = _resolve_config(args)
    if config is None:
        return 1

    async def _main() -> int:
        async with _create_client(config) as client:
            return await command(client, config)

    try:
        return asyncio.run(_main())
    except GDSClientError as e:
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        return 1
    except ua.UaStringParsingError as e:
        print(f"Error: invalid node id: {e}", file=sys.stderr)
        return 2


def cmd_servers(args: argparse.Namespace) -> int:
    """Handle the 'servers' command."""

    async def _command(client: GlobalDiscoveryServerClient, config: ClientConfig) -> int:
        results: list[dict[str, Any]] = []
        async for server in client.query_servers(
            max_records_to_return=args.max_records,
            application_name=args.application_name,
            application_uri=args.application_uri,
            product_uri=args.product_uri,
            server_capabilities=args.capability,
        ):
            if args.json:
                results.append(asdict(server))
            else:
                capabilities = ",".join(server.server_capabilities) or "-"
                print(f"{server.record_id:>6}  {server.server_name}  {server.discovery_url}  [{capabilities}]")
        if args.json:
            print(json.dumps(results, indent=2, ensure_ascii=False))
        return 0

    return _run(args, _command)


def cmd_applications(args: argparse.Namespace) -> int:
    """Handle the 'applications' command."""

    async def _command(client: GlobalDiscoveryServerClient, config: ClientConfig) -> int:
        if args.action == "find":
            records = await client.find_applications(args.target)
            if not records:
                print("No applications found.")
                return 1
            for record in records:
                _print_application(record)
            return 0

        if args.action == "get":
            record = await client.get_application(_parse_node_id(args.target))
            if record is None:
                print("Application not found.")
                return 1
            _print_application(record)
            return 0

        if args.action == "register":
            record = ApplicationRecord(
                application_uri=args.target,
                application_type=ApplicationType[args.type.upper()],
                application_names=args.name or [args.target],
                product_uri=args.product_uri or "",
                discovery_urls=args.discovery_url or [],
                server_capabilities=args.capability or [],
            )
            application_id = await client.register_application(record)
            print(f"Registered: {application_id.to_string()}")
            return 0

        await client.unregister_application(_parse_node_id(args.target))
        print(f"Unregistered: {args.target}")
        return 0

    return _run(args, _command)


def cmd_certificates(args: argparse.Namespace) -> int:
    """Handle the 'certificates' command."""

    async def _command(client: GlobalDiscoveryServerClient, config: ClientConfig) -> int:
        application_id = _parse_node_id(args.application_id)
        group_id = _parse_node_id(getattr(args, "group", None))
        type_id = _parse_node_id(getattr(args, "type", None)) or CertificateTypes.APPLICATION_CERTIFICATE

        if args.action == "groups":
            for group in await client.get_certificate_groups(application_id):
                print(group.to_string())
            return 0

        if args.action == "new-key-pair":
            request_id = await client.start_new_key_pair_request(
                application_id,
                group_id,
                type_id,
                subject_name=args.subject,
                domain_names=args.domain or [],
                private_key_format=PrivateKeyFormat(args.key_format),
                private_key_password=args.key_password,
            )
            print(f"Request id: {request_id.to_string()}")
            return 0

        if args.action == "sign":
            request_id = await client.start_signing_request(
                application_id,
                group_id,
                type_id,
                Path(args.csr).read_bytes(),
            )
            print(f"Request id: {request_id.to_string()}")
            return 0

        request_id = _parse_node_id(args.request_id)
        if args.action == "finish":
            bundle = await client.finish_request(application_id, request_id)
        else:
            poller = RequestPoller(config.polling)
            result = await poller.wait_for_certificate(
                lambda: client.finish_request(application_id, request_id)
            )
            if result.last_error is not None:
                raise result.last_error
            bundle = result.bundle or CertificateBundle()
            print(f"Polled {result.attempts} time(s).")

        _print_bundle(bundle)
        if bundle.is_complete and args.out_dir:
            for path in write_bundle(bundle, Path(args.out_dir), PrivateKeyFormat(args.key_format)):
                print(f"Wrote {path}")
        return 0 if bundle.is_complete else 3

    return _run(args, _command)


def cmd_trust_list(args: argparse.Namespace) -> int:
    """Handle the 'trust-list' command."""

    async def _command(client: GlobalDiscoveryServerClient, config: ClientConfig) -> int:
        handle = await client.get_trust_list(
            _parse_node_id(args.application_id),
            _parse_node_id(args.group),
        )
        _print_trust_list(await client.read_trust_list(handle))
        return 0

    return _run(args, _command)


def cmd_discover(args: argparse.Namespace) -> int:
    """Handle the 'discover' command."""
    urls = asyncio.run(find_global_discovery_servers(args.lds_url, args.max_records))
    if not urls:
        print("No Global Discovery Servers found.")
        return 1
    for url in urls:
        print(url)
    return 0


def cmd_self_test(args: argparse.Namespace) -> int:
    """Handle the 'self-test' command."""
    config = _resolve_config(args)
    if config is None:
        return 1
    result = asyncio.run(run_self_test(config=config, print_output=True))
    return 0 if result.success else 1


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"No configuration found at: {config_path}")
            print("Use 'config init' to create a default configuration.")
            return 1

        print(f"Configuration from: {config_path}")
        print(f"  Endpoint: {config.connection.endpoint_url}")
        print(f"  Application URI: {config.connection.application_uri}")
        print(f"  Security: {config.connection.security.policy} / {config.connection.security.mode}")
        print(f"  User: {config.credentials.username or '(anonymous)'}")
        print(f"  Admin user: {config.credentials.admin_username or '(none)'}")
        print(f"  Page size: {config.query.max_records_to_return}")
        print(f"  Log level: {config.logging.level}")
        return 0

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}")
            print("Use --force to overwrite.")
            return 1

        config = create_default_config(endpoint_url=args.endpoint)
        if save_config_to_file(config, config_path):
            print(f"Configuration created at: {config_path}")
            return 0
        return 1

    elif args.action == "validate":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"Error: Could not load config from {config_path}", file=sys.stderr)
            return 1

        print(f"Configuration at {config_path} is valid.")
        return 0

    return 1


def _add_connection_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--endpoint", "-e",
        help="GDS endpoint URL (overrides the configuration)",
    )
    parser.add_argument(
        "--admin-user",
        help="Administrator user name for privileged operations",
    )
    parser.add_argument(
        "--admin-password",
        help="Administrator password",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="gds-client",
        description="Client for OPC UA Global Discovery Servers",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'servers' command
    servers_parser = subparsers.add_parser(
        "servers",
        help="Enumerate servers known to the GDS",
    )
    _add_connection_arguments(servers_parser)
    servers_parser.add_argument("--max-records", type=int, help="Records per page")
    servers_parser.add_argument("--application-name", help="Filter on application name")
    servers_parser.add_argument("--application-uri", help="Filter on application URI")
    servers_parser.add_argument("--product-uri", help="Filter on product URI")
    servers_parser.add_argument(
        "--capability",
        action="append",
        help="Required server capability (repeatable), e.g. LDS, GDS, DA",
    )
    servers_parser.add_argument("--json", action="store_true", help="Print results as JSON")
    servers_parser.set_defaults(func=cmd_servers)

    # 'applications' command
    applications_parser = subparsers.add_parser(
        "applications",
        help="Application directory operations",
    )
    _add_connection_arguments(applications_parser)
    applications_parser.add_argument(
        "action",
        choices=["find", "get", "register", "unregister"],
        help="Directory action",
    )
    applications_parser.add_argument(
        "target",
        help="Application URI (find, register) or application node id (get, unregister)",
    )
    applications_parser.add_argument("--name", action="append", help="Application name (repeatable)")
    applications_parser.add_argument(
        "--type",
        choices=[t.name.lower() for t in ApplicationType],
        default="server",
        help="Application type (default: server)",
    )
    applications_parser.add_argument("--product-uri", help="Product URI")
    applications_parser.add_argument("--discovery-url", action="append", help="Discovery URL (repeatable)")
    applications_parser.add_argument("--capability", action="append", help="Server capability (repeatable)")
    applications_parser.set_defaults(func=cmd_applications)

    # 'certificates' command
    certificates_parser = subparsers.add_parser(
        "certificates",
        help="Certificate groups and certificate requests",
    )
    _add_connection_arguments(certificates_parser)
    certificates_parser.add_argument(
        "action",
        choices=["groups", "new-key-pair", "sign", "finish", "wait"],
        help="Certificate action",
    )
    certificates_parser.add_argument("application_id", help="Application node id, e.g. ns=2;g=...")
    certificates_parser.add_argument("request_id", nargs="?", help="Request node id (finish, wait)")
    certificates_parser.add_argument("--group", help="Certificate group node id (default group when omitted)")
    certificates_parser.add_argument("--type", help="Certificate type node id")
    certificates_parser.add_argument("--subject", default="", help="Subject name (new-key-pair)")
    certificates_parser.add_argument("--domain", action="append", help="Domain name (repeatable)")
    certificates_parser.add_argument(
        "--key-format",
        choices=[f.value for f in PrivateKeyFormat],
        default=PrivateKeyFormat.PEM.value,
        help="Private key format (default: PEM)",
    )
    certificates_parser.add_argument("--key-password", help="Private key password")
    certificates_parser.add_argument("--csr", help="DER certificate request file (sign)")
    certificates_parser.add_argument("--out-dir", "-o", help="Directory to write the issued files to")
    certificates_parser.set_defaults(func=cmd_certificates)

    # 'trust-list' command
    trust_list_parser = subparsers.add_parser(
        "trust-list",
        help="Read the trust list of an application's certificate group",
    )
    _add_connection_arguments(trust_list_parser)
    trust_list_parser.add_argument("action", choices=["read"], help="Trust list action")
    trust_list_parser.add_argument("application_id", help="Application node id")
    trust_list_parser.add_argument("--group", help="Certificate group node id")
    trust_list_parser.set_defaults(func=cmd_trust_list)

    # 'discover' command
    discover_parser = subparsers.add_parser(
        "discover",
        help="Find GDS endpoints through a Local Discovery Server",
    )
    discover_parser.add_argument(
        "--lds-url",
        default=DEFAULT_LDS_URL,
        help=f"LDS endpoint URL (default: {DEFAULT_LDS_URL})",
    )
    discover_parser.add_argument("--max-records", type=int, default=1000, help="Maximum records")
    discover_parser.set_defaults(func=cmd_discover)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--endpoint", "-e",
        help="Endpoint URL for a new configuration",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    # 'self-test' command
    self_test_parser = subparsers.add_parser(
        "self-test",
        help="Validate configuration and check connectivity",
    )
    _add_connection_arguments(self_test_parser)
    self_test_parser.set_defaults(func=cmd_self_test)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "certificates":
        if args.action in ("finish", "wait") and not args.request_id:
            parser.error(f"certificates {args.action} requires a request id")
        if args.action == "sign" and not args.csr:
            parser.error("certificates sign requires --csr")

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
