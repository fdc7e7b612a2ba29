"""
leasecfg/dhcp/messages.py - Conversion between leases and protobuf messages
"""

from ipaddress import IPv4Address

from leasecfg.lease import FQDN, ZERO_ADDRESS, Lease, Route
from leasecfg.schema import LeaseEvent, LeaseMessage


def address(value: str) -> IPv4Address:
    return IPv4Address(value) if value else ZERO_ADDRESS


def lease_to_message(lease: Lease, message: LeaseMessage | None = None) -> LeaseMessage:
    if message is None:
        message = LeaseMessage()
    message.address = str(lease.address)
    message.netmask = str(lease.netmask)
    if lease.broadcast != ZERO_ADDRESS:
        message.broadcast = str(lease.broadcast)
    if lease.mtu:
        message.mtu = lease.mtu
    for route in lease.routes:
        route_message = message.route.add()
        route_message.destination = str(route.destination)
        route_message.netmask = str(route.netmask)
        route_message.gateway = str(route.gateway)
    message.dns_server.extend(str(server) for server in lease.dns_servers)
    if lease.dns_domain:
        message.dns_domain = lease.dns_domain
    if lease.dns_search:
        message.dns_search = lease.dns_search
    message.ntp_server.extend(str(server) for server in lease.ntp_servers)
    if lease.nis_domain:
        message.nis_domain = lease.nis_domain
    message.nis_server.extend(str(server) for server in lease.nis_servers)
    if lease.hostname:
        message.hostname = lease.hostname
    if lease.fqdn is not None:
        message.fqdn.flags = lease.fqdn.flags
        message.fqdn.rcode1 = lease.fqdn.rcode1
        message.fqdn.rcode2 = lease.fqdn.rcode2
        message.fqdn.name = lease.fqdn.name
    if lease.root_path:
        message.root_path = lease.root_path
    if lease.server_identifier != ZERO_ADDRESS:
        message.server_identifier = str(lease.server_identifier)
    if lease.server_name:
        message.server_name = lease.server_name
    if lease.lease_time:
        message.lease_time = lease.lease_time
    if lease.renewal_time:
        message.renewal_time = lease.renewal_time
    if lease.rebind_time:
        message.rebind_time = lease.rebind_time
    return message


def lease_from_message(message: LeaseMessage) -> Lease:
    """
    Build a lease from a message. Addresses that fail to parse raise
    ``ValueError``.
    """
    fqdn = None
    if message.HasField("fqdn"):
        fqdn = FQDN(
            flags=message.fqdn.flags,
            rcode1=message.fqdn.rcode1,
            rcode2=message.fqdn.rcode2,
            name=message.fqdn.name,
        )
    return Lease(
        address=address(message.address),
        netmask=address(message.netmask),
        broadcast=address(message.broadcast),
        mtu=message.mtu,
        routes=[
            Route(address(route.destination), address(route.netmask), address(route.gateway))
            for route in message.route
        ],
        dns_servers=[IPv4Address(server) for server in message.dns_server],
        dns_domain=message.dns_domain,
        dns_search=message.dns_search,
        ntp_servers=[IPv4Address(server) for server in message.ntp_server],
        nis_domain=message.nis_domain,
        nis_servers=[IPv4Address(server) for server in message.nis_server],
        hostname=message.hostname,
        fqdn=fqdn,
        root_path=message.root_path,
        server_identifier=address(message.server_identifier),
        server_name=message.server_name,
        lease_time=message.lease_time,
        renewal_time=message.renewal_time,
        rebind_time=message.rebind_time,
    )


def event_lease(event: LeaseEvent) -> Lease:
    "The lease carried by an event. An event without one releases the lease."
    if not event.HasField("lease"):
        return Lease.released()
    return lease_from_message(event.lease)
