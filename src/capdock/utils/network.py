"""Network helpers: IP family classification and host port reservation."""

import ipaddress
import logging
import socket
from dataclasses import dataclass, field
from typing import Iterable, List, Union

from capdock.errors import InvalidAddressError, PortAllocationError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IPv4Family:
    """Every range is IPv4."""
    cidrs: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class IPv6Family:
    """Every range is IPv6."""
    cidrs: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DualStackFamily:
    """Mixed IPv4 and IPv6 ranges, in their original order."""
    cidrs: List[str] = field(default_factory=list)


ClusterIPFamily = Union[IPv4Family, IPv6Family, DualStackFamily]


def _parse(value: str) -> Union[ipaddress.IPv4Interface, ipaddress.IPv6Interface]:
    try:
        return ipaddress.ip_interface(value.strip())
    except (ValueError, AttributeError) as e:
        raise InvalidAddressError(value) from e


def classify_ip_family(cidrs: Iterable[str]) -> ClusterIPFamily:
    """Group address ranges into a single-stack or dual-stack family.

    Accepts plain addresses as well as CIDR prefixes. Empty input is the
    IPv4 family with no ranges. Raises InvalidAddressError for the first
    entry that does not parse.
    """
    values = list(cidrs)
    versions = [_parse(value).version for value in values]

    if all(version == 4 for version in versions):
        return IPv4Family(values)
    if all(version == 6 for version in versions):
        return IPv6Family(values)
    return DualStackFamily(values)


def reserve_host_port(host: str = "127.0.0.1") -> int:
    """Ask the kernel for a free TCP port and release it immediately.

    Another process may take the port before the runtime binds it, callers
    must handle a bind failure at container start.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind((host, 0))
            port = sock.getsockname()[1]
    except OSError as e:
        raise PortAllocationError(f"reserve a host port on {host}", 0, str(e)) from e
    logger.debug(f"Reserved ephemeral host port {port}")
    return port
