"""Source-address guard for the internal container surface."""

import ipaddress
from typing import Optional, Union

from simple_secrets.core.errors import DockerAPIError
from simple_secrets.core.logging import structured_log
from simple_secrets.services.docker_client import DockerClient

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

# Used only when no Docker network could be discovered
FALLBACK_NETWORKS: tuple[IPNetwork, ...] = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
)


def normalize_address(address: str) -> Optional[IPAddress]:
    """Parse address, unwrapping IPv4-mapped IPv6 (::ffff:a.b.c.d). None if unparseable."""
    try:
        ip = ipaddress.ip_address(address.strip())
    except ValueError:
        return None
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


class NetworkGuard:
    """Allows loopback plus the Docker subnets this container is attached to."""

    def __init__(self, networks: Optional[list[IPNetwork]] = None) -> None:
        self.networks: list[IPNetwork] = list(networks or [])

    @property
    def discovered(self) -> bool:
        return bool(self.networks)

    async def discover(self, docker: DockerClient, own_ref: str) -> list[IPNetwork]:
        """Collect IPAM subnets of every network attached to own_ref. Failures only log."""
        found: list[IPNetwork] = []
        try:
            container = await docker.inspect_container(own_ref)
        except DockerAPIError as exc:
            structured_log(
                "WARNING",
                "Failed to discover Docker networks, using private-range fallback",
                operation="network.discover",
                error={"type": type(exc).__name__, "message": exc.message},
            )
            return self.networks

        attached = ((container.get("NetworkSettings") or {}).get("Networks") or {}).keys()
        for name in attached:
            try:
                network = await docker.inspect_network(name)
            except DockerAPIError as exc:
                structured_log(
                    "WARNING",
                    "Failed to inspect Docker network",
                    operation="network.discover",
                    metadata={"network": name},
                    error={"type": type(exc).__name__, "message": exc.message},
                )
                continue
            for config in (network.get("IPAM") or {}).get("Config") or []:
                subnet = (config or {}).get("Subnet")
                if not subnet:
                    continue
                try:
                    found.append(ipaddress.ip_network(subnet, strict=False))
                except ValueError:
                    continue
                structured_log(
                    "INFO",
                    "Discovered Docker network",
                    operation="network.discover",
                    metadata={"network": name, "subnet": subnet},
                )

        if found:
            self.networks = found
        return self.networks

    def is_allowed(self, address: Optional[str]) -> bool:
        if not address:
            return False
        ip = normalize_address(address)
        if ip is None:
            return False
        if ip.is_loopback:
            return True
        candidates = self.networks or FALLBACK_NETWORKS
        return any(ip.version == net.version and ip in net for net in candidates)
