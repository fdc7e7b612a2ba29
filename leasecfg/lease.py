"""
leasecfg/lease.py - Lease, interface state and policy objects
"""

from dataclasses import dataclass, field
from ipaddress import IPv4Address


ZERO_ADDRESS = IPv4Address(0)
HOST_NETMASK = IPv4Address("255.255.255.255")


@dataclass(frozen=True)
class Route:
    destination: IPv4Address
    netmask: IPv4Address
    gateway: IPv4Address = ZERO_ADDRESS

    @property
    def is_default(self) -> bool:
        return self.destination == ZERO_ADDRESS and self.netmask == ZERO_ADDRESS

    def __str__(self):
        # The netmask is not necessarily contiguous
        return f"{self.destination}/{self.netmask} via {self.gateway}"


@dataclass(frozen=True)
class FQDN:
    flags: int = 0
    rcode1: int = 0
    rcode2: int = 0
    name: str = ""


@dataclass(frozen=True)
class Lease:
    """
    Network parameters granted by one DHCP transaction.

    A lease with the zero address means the lease was lost and everything
    configured from the previous one should be removed.
    """
    address: IPv4Address = ZERO_ADDRESS
    netmask: IPv4Address = ZERO_ADDRESS
    broadcast: IPv4Address = ZERO_ADDRESS
    mtu: int = 0
    routes: tuple[Route, ...] = ()
    dns_servers: tuple[IPv4Address, ...] = ()
    dns_domain: str = ""
    dns_search: str = ""
    ntp_servers: tuple[IPv4Address, ...] = ()
    nis_domain: str = ""
    nis_servers: tuple[IPv4Address, ...] = ()
    hostname: str = ""
    fqdn: FQDN | None = None
    root_path: str = ""
    server_identifier: IPv4Address = ZERO_ADDRESS
    server_name: str = ""
    lease_time: int = 0
    renewal_time: int = 0
    rebind_time: int = 0

    def __post_init__(self):
        # Sequences may be passed as lists. DNS servers are an ordered set.
        object.__setattr__(self, "routes", tuple(self.routes))
        object.__setattr__(self, "dns_servers", tuple(dict.fromkeys(self.dns_servers)))
        object.__setattr__(self, "ntp_servers", tuple(self.ntp_servers))
        object.__setattr__(self, "nis_servers", tuple(self.nis_servers))

    @classmethod
    def released(cls):
        return cls()

    @property
    def is_release(self) -> bool:
        return self.address == ZERO_ADDRESS

    @property
    def network(self) -> IPv4Address:
        "Network address of the subnet the lease address is in"
        return IPv4Address(int(self.address) & int(self.netmask))


@dataclass
class InterfaceState:
    """
    What leasecfg last configured on an interface.

    This is not a mirror of the kernel: other actors may add addresses and
    routes to the same interface.
    """
    name: str
    hwaddr: bytes = b""
    infofile: str = ""
    mtu: int = 0
    previous_mtu: int | None = None
    previous_address: IPv4Address = ZERO_ADDRESS
    previous_netmask: IPv4Address = ZERO_ADDRESS
    previous_routes: list[Route] = field(default_factory=list)

    def __post_init__(self):
        if self.previous_mtu is None:
            self.previous_mtu = self.mtu

    @property
    def has_address(self) -> bool:
        return self.previous_address != ZERO_ADDRESS


@dataclass(frozen=True)
class Options:
    gateway: bool = True
    mtu: bool = True
    dns: bool = True
    ntp: bool = True
    nis: bool = True
    hostname: bool = False
    metric: int = 0
    script: str = ""
    class_id: str = ""
    client_id: str = ""
