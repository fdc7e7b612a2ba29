"""
leasecfg/rtnetlink/provider.py - Kernel address, route and link changes
"""

import errno
from ipaddress import IPv4Address, IPv4Network
import logging
from pyroute2 import IPRoute, NetlinkError

from leasecfg.exceptions import KernelError
from leasecfg.interface.hwaddr import HardwareAddress
from leasecfg.lease import ZERO_ADDRESS
from leasecfg.service import Provider


logger = logging.getLogger("rtnetlink")


# Routing protocol id marking routes installed by leasecfg
RT_PROTO = 53

RT_SCOPE_UNIVERSE = 0
RT_SCOPE_LINK = 253


def prefixlen(netmask: IPv4Address) -> int:
    """
    Prefix length of a netmask. Raises ``KernelError`` with EINVAL for a
    netmask whose bits are not contiguous.
    """
    try:
        network = IPv4Network(f"0.0.0.0/{netmask}")
    except ValueError:
        network = None
    # ipaddress also accepts host masks such as 0.0.0.255
    if network is None or network.netmask != IPv4Address(netmask):
        raise KernelError(errno.EINVAL, f"invalid netmask {netmask}")
    return network.prefixlen


class IPRouteProvider(Provider):
    """
    The kernel side of reconciliation.

    Every method raises ``KernelError`` with the errno of the failure, so
    callers can tell ``EEXIST`` from real failures.
    """
    def __init__(self, iproute=None):
        super().__init__()
        self.iproute = iproute if iproute is not None else IPRoute()
        self.rt_proto = RT_PROTO

    def stop(self):
        self.iproute.close()

    def get_index(self, ifname: str) -> int:
        indexes = self.iproute.link_lookup(ifname=ifname)
        if not indexes:
            raise KernelError(errno.ENODEV, f"interface {ifname} does not exist")
        return indexes[0]

    def call(self, method, *args, **kwargs):
        try:
            return getattr(self.iproute, method)(*args, **kwargs)
        except NetlinkError as e:
            raise KernelError(e.code, f"{method} {args[0] if args else ''}: {e}")

    def get_link(self, ifname: str) -> tuple[bytes, int]:
        "Return the hardware address and MTU of an interface"
        links = self.call("get_links", self.get_index(ifname))
        link = links[0]
        address = link.get_attr("IFLA_ADDRESS")
        hwaddr = HardwareAddress(address).data if address else b""
        return hwaddr, link.get_attr("IFLA_MTU") or 0

    def add_address(self, ifname: str, address: IPv4Address, netmask: IPv4Address, broadcast: IPv4Address):
        logger.debug(f"adding IP address {address}/{prefixlen(netmask)} to {ifname}")
        args = {
            "index": self.get_index(ifname),
            "address": str(address),
            "prefixlen": prefixlen(netmask),
        }
        if broadcast != ZERO_ADDRESS:
            args["broadcast"] = str(broadcast)
        self.call("addr", "add", **args)

    def del_address(self, ifname: str, address: IPv4Address, netmask: IPv4Address):
        logger.debug(f"deleting IP address {address}/{prefixlen(netmask)} from {ifname}")
        self.call(
            "addr",
            "del",
            index=self.get_index(ifname),
            address=str(address),
            prefixlen=prefixlen(netmask),
        )

    def route_args(self, ifname, destination, netmask, gateway, metric):
        args = {
            "dst": f"{destination}/{prefixlen(netmask)}",
            "oif": self.get_index(ifname),
            "priority": metric,
        }
        if gateway != ZERO_ADDRESS:
            args["gateway"] = str(gateway)
            args["scope"] = RT_SCOPE_UNIVERSE
        else:
            args["scope"] = RT_SCOPE_LINK
        return args

    def add_route(self, ifname: str, destination: IPv4Address, netmask: IPv4Address, gateway: IPv4Address, metric: int = 0):
        logger.debug(f"adding route to {destination}/{prefixlen(netmask)} via {gateway} metric {metric}")
        self.call(
            "route",
            "add",
            proto=self.rt_proto,
            **self.route_args(ifname, destination, netmask, gateway, metric),
        )

    def del_route(self, ifname: str, destination: IPv4Address, netmask: IPv4Address, gateway: IPv4Address, metric: int = 0):
        logger.debug(f"deleting route to {destination}/{prefixlen(netmask)} via {gateway} metric {metric}")
        self.call("route", "del", **self.route_args(ifname, destination, netmask, gateway, metric))

    def set_mtu(self, ifname: str, mtu: int):
        logger.debug(f"setting MTU of {ifname} to {mtu}")
        self.call("link", "set", index=self.get_index(ifname), mtu=mtu)
