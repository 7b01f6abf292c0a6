"""Client address allocation."""

import ipaddress
from typing import Iterable

from .errors import AddressPoolExhausted


def _host(address: str) -> str:
    """Strip a /prefix suffix from an address."""
    return address.split('/')[0].strip()


def next_address(subnet: str, existing: Iterable[str], reserved: Iterable[str] = ()) -> str:
    """
    Get the lowest free client address in subnet.

    Hosts are scanned in ascending order; addresses in ``existing`` (the
    registry) and ``reserved`` (the server's own address) are skipped.

    Args:
        subnet: Client subnet in CIDR notation (e.g. "10.66.66.0/24")
        existing: Addresses already assigned to clients
        reserved: Addresses never handed out to clients

    Returns:
        Free host address without prefix length

    Raises:
        AddressPoolExhausted: every usable host is taken
    """
    network = ipaddress.ip_network(subnet, strict=False)
    used = {ipaddress.ip_address(_host(ip)) for ip in existing}
    used.update(ipaddress.ip_address(_host(ip)) for ip in reserved)

    for host in network.hosts():
        if host not in used:
            return str(host)

    raise AddressPoolExhausted(subnet)


def address_in_subnet(address: str, subnet: str) -> bool:
    """Check whether address is a host inside subnet."""
    try:
        ip = ipaddress.ip_address(_host(address))
    except ValueError:
        return False
    network = ipaddress.ip_network(subnet, strict=False)
    if network.num_addresses <= 2:
        return ip in network
    return ip in network and ip != network.network_address and ip != network.broadcast_address


def prefix_length(subnet: str) -> int:
    """Prefix length of subnet."""
    return ipaddress.ip_network(subnet, strict=False).prefixlen
