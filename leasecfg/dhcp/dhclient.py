"""
leasecfg/dhcp/dhclient.py - Lease events from the ISC dhclient environment

dhclient runs its hook with ``reason``, ``interface`` and the options of the
new lease in ``new_*`` variables.
"""

from ipaddress import IPv4Address
import logging

from leasecfg.exceptions import InvalidArgument
from leasecfg.lease import ZERO_ADDRESS
from leasecfg.schema import LeaseEvent


logger = logging.getLogger("dhclient")


LEASE_REASONS = ("BOUND", "RENEW", "REBIND", "REBOOT")
RELEASE_REASONS = ("EXPIRE", "FAIL", "RELEASE", "STOP", "TIMEOUT")

# FQDN option flag bits
FQDN_FLAG_S = 0x01
FQDN_FLAG_E = 0x04
FQDN_FLAG_N = 0x08


def classful_netmask(destination: IPv4Address) -> IPv4Address:
    first = int(destination) >> 24
    if first < 128:
        return IPv4Address("255.0.0.0")
    if first < 192:
        return IPv4Address("255.255.0.0")
    return IPv4Address("255.255.255.0")


def prefix_netmask(prefix_length: int) -> IPv4Address:
    return IPv4Address((0xffffffff << (32 - prefix_length)) & 0xffffffff)


def parse_rfc3442_routes(value: str) -> list[tuple[IPv4Address, IPv4Address, IPv4Address]]:
    """
    Parse classless static routes given as a list of octets. Each route is
    the prefix length, the significant octets of the destination and the
    four octets of the router.

    Returns a list of (destination, netmask, gateway). Raises ``ValueError``
    if the option is truncated or malformed.
    """
    octets = [int(octet) for octet in value.replace(",", " ").split()]
    routes = []
    while octets:
        prefix_length = octets.pop(0)
        if prefix_length > 32:
            raise ValueError(f"Invalid prefix length {prefix_length}")
        num_prefix_octets = (prefix_length + 7) // 8
        if len(octets) < num_prefix_octets + 4:
            raise ValueError("Truncated classless static route")
        destination_octets = octets[:num_prefix_octets] + [0] * (4 - num_prefix_octets)
        del octets[:num_prefix_octets]
        gateway_octets = octets[:4]
        del octets[:4]
        routes.append((
            IPv4Address(bytes(destination_octets)),
            prefix_netmask(prefix_length),
            IPv4Address(bytes(gateway_octets)),
        ))
    return routes


def parse_static_routes(value: str) -> list[tuple[IPv4Address, IPv4Address, IPv4Address]]:
    "Parse destination and router pairs. Netmasks follow the address class."
    items = value.split()
    if len(items) % 2:
        raise ValueError("Static routes must be destination and router pairs")
    routes = []
    for index in range(0, len(items), 2):
        destination = IPv4Address(items[index])
        if destination == ZERO_ADDRESS:
            # A default route is not allowed here
            continue
        routes.append((destination, classful_netmask(destination), IPv4Address(items[index + 1])))
    return routes


class DHClientEnvironment:
    def __init__(self, environ):
        self.environ = environ

    def get(self, name: str) -> str:
        return self.environ.get(f"new_{name}", "").strip()

    def get_list(self, name: str) -> list[str]:
        return self.get(name).split()

    def get_int(self, name: str) -> int:
        value = self.get(name)
        return int(value) if value else 0

    def get_routes(self):
        """
        Routes of the lease in option order. Classless routes replace both
        the static routes and the routers when present.
        """
        classless = self.get("rfc3442_classless_static_routes")
        if classless:
            return parse_rfc3442_routes(classless)
        routes = []
        static = self.get("static_routes")
        if static:
            routes.extend(parse_static_routes(static))
        for router in self.get_list("routers"):
            routes.append((ZERO_ADDRESS, ZERO_ADDRESS, IPv4Address(router)))
        return routes

    def get_event(self) -> LeaseEvent | None:
        """
        Build the lease event for the current dhclient invocation.

        Returns None for reasons that do not change the lease, such as
        ``PREINIT``. Raises ``InvalidArgument`` when not called by dhclient
        or when the lease is malformed.
        """
        reason = self.environ.get("reason")
        interface = self.environ.get("interface")
        if not reason or not interface:
            raise InvalidArgument("reason and interface must be set by dhclient")

        if reason not in LEASE_REASONS and reason not in RELEASE_REASONS:
            logger.debug(f"Ignoring {reason} on {interface}")
            return None

        event = LeaseEvent()
        event.interface = interface
        event.reason = reason
        if reason in RELEASE_REASONS:
            return event

        try:
            self.fill_lease(event.lease)
        except ValueError as e:
            raise InvalidArgument(f"Invalid lease for {interface}: {e}")
        return event

    def fill_lease(self, lease):
        if not self.get("ip_address"):
            raise ValueError("no address in lease")
        lease.address = str(IPv4Address(self.get("ip_address")))
        netmask = self.get("subnet_mask")
        lease.netmask = str(IPv4Address(netmask)) if netmask else "255.255.255.255"
        if self.get("broadcast_address"):
            lease.broadcast = str(IPv4Address(self.get("broadcast_address")))
        lease.mtu = self.get_int("interface_mtu")

        for destination, netmask, gateway in self.get_routes():
            route = lease.route.add()
            route.destination = str(destination)
            route.netmask = str(netmask)
            route.gateway = str(gateway)

        lease.dns_server.extend(str(IPv4Address(server)) for server in self.get_list("domain_name_servers"))
        lease.dns_domain = self.get("domain_name")
        lease.dns_search = self.get("domain_search")
        lease.ntp_server.extend(str(IPv4Address(server)) for server in self.get_list("ntp_servers"))
        lease.nis_domain = self.get("nis_domain")
        lease.nis_server.extend(str(IPv4Address(server)) for server in self.get_list("nis_servers"))
        lease.hostname = self.get("host_name")
        lease.root_path = self.get("root_path")
        if self.get("dhcp_server_identifier"):
            lease.server_identifier = str(IPv4Address(self.get("dhcp_server_identifier")))
        lease.server_name = self.get("server_name")
        lease.lease_time = self.get_int("dhcp_lease_time")
        lease.renewal_time = self.get_int("dhcp_renewal_time")
        lease.rebind_time = self.get_int("dhcp_rebinding_time")

        if self.get("fqdn_fqdn"):
            flags = 0
            if self.get("fqdn_server_update") == "true":
                flags |= FQDN_FLAG_S
            if self.get("fqdn_encoded") == "true":
                flags |= FQDN_FLAG_E
            if self.get("fqdn_no_client_update") == "true":
                flags |= FQDN_FLAG_N
            lease.fqdn.flags = flags
            lease.fqdn.rcode1 = self.get_int("fqdn_rcode1")
            lease.fqdn.rcode2 = self.get_int("fqdn_rcode2")
            lease.fqdn.name = self.get("fqdn_fqdn")
