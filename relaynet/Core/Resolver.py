import asyncio
import ipaddress
import logging
import socket
from typing import List

from .errors import ResolutionError

logger = logging.getLogger(__name__)


# ========== DNS Resolver ==========

class Resolver:
    """
    Asynchronous hostname lookup on top of the event loop's getaddrinfo.

    Attributes:
        family (int): Address family to ask for (default: both IPv4 and IPv6)
    """

    def __init__(self, family: int = socket.AF_UNSPEC):
        self.family = family

    async def resolve(self, hostname: str) -> List[str]:
        """
        Resolve a hostname without blocking the event loop.

        Args:
            hostname (str): Name or literal address to look up

        Returns:
            Non-empty list of addresses, in the order the system returned them

        Raises:
            ResolutionError: The lookup failed or produced no addresses
        """
        try:
            ipaddress.ip_address(hostname)
        except ValueError:
            pass
        else:
            # Literal address, nothing to look up
            return [hostname]

        loop = asyncio.get_running_loop()
        try:
            results = await loop.getaddrinfo(
                hostname, None,
                family=self.family,
                type=socket.SOCK_STREAM,
                proto=socket.IPPROTO_TCP,
            )
        except (socket.gaierror, UnicodeError) as e:
            raise ResolutionError(f"HostLookup failed for {hostname}", cause=e)

        addresses = []
        for result in results:
            ip = result[4][0]
            if ip not in addresses:
                addresses.append(ip)

        if not addresses:
            raise ResolutionError(f"HostLookup failed for {hostname}: no addresses")

        logger.debug(f"Resolved {hostname} to {', '.join(addresses)}")
        return addresses
