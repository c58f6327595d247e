"""
Locating Global Discovery Servers through a Local Discovery Server.

FindServersOnNetwork is a discovery service: it runs over a bare secure
channel without a session. Servers announcing the GDS capability are the
candidates a user can pick a GDS endpoint from.
"""

import asyncio
from typing import Optional

from asyncua import Client, ua

from .audit_logger import AuditLogger
from .enums import ServerCapability
from .models import ServerOnNetworkEntry

DEFAULT_LDS_URL = "opc.tcp://localhost:4840"


def filter_gds_urls(servers: list[ServerOnNetworkEntry]) -> list[str]:
    """Discovery URLs of the servers that announce the GDS capability, in order."""
    capability = ServerCapability.GLOBAL_DISCOVERY_SERVER.value
    urls: list[str] = []
    for server in servers:
        if capability in server.server_capabilities and server.discovery_url not in urls:
            urls.append(server.discovery_url)
    return urls


async def find_servers_on_network(lds_url: str, max_records: int = 1000) -> list[ServerOnNetworkEntry]:
    """
    Ask an LDS for the servers it knows on the network.

    Raises:
        ua.UaError, OSError, asyncio.TimeoutError: Discovery failed
    """
    client = Client(lds_url)
    await client.connect_socket()
    try:
        await client.send_hello()
        await client.open_secure_channel()
        try:
            params = ua.FindServersOnNetworkParameters()
            params.StartingRecordId = 0
            params.MaxRecordsToReturn = max_records
            result = await client.uaclient.find_servers_on_network(params)
        finally:
            await client.close_secure_channel()
    finally:
        client.disconnect_socket()

    return [ServerOnNetworkEntry.from_ua(server) for server in (result.Servers or [])]


async def find_global_discovery_servers(
    lds_url: str = DEFAULT_LDS_URL,
    max_records: int = 1000,
    logger: Optional[AuditLogger] = None,
) -> list[str]:
    """
    Discovery URLs of the GDS instances known to an LDS.

    An unreachable LDS yields an empty list; the failure is logged.
    """
    try:
        servers = await find_servers_on_network(lds_url, max_records)
    except (ua.UaError, OSError, asyncio.TimeoutError) as e:
        if logger:
            logger.log_error("LocalDiscovery", "Unexpected error connecting to LDS", e, {"lds_url": lds_url})
        return []
    return filter_gds_urls(servers)
