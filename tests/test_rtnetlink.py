import errno
from ipaddress import IPv4Address
import pytest

from leasecfg.exceptions import KernelError
from leasecfg.lease import ZERO_ADDRESS
from leasecfg.rtnetlink.provider import RT_PROTO, RT_SCOPE_LINK, RT_SCOPE_UNIVERSE, IPRouteProvider, prefixlen
from tests.fakes import FakeIPRoute


NETMASK = IPv4Address("255.255.255.0")


@pytest.fixture
def iproute():
    return FakeIPRoute()


@pytest.fixture
def provider(iproute):
    return IPRouteProvider(iproute=iproute)


def test_prefixlen():
    assert prefixlen(IPv4Address("0.0.0.0")) == 0
    assert prefixlen(NETMASK) == 24
    assert prefixlen(IPv4Address("255.255.255.255")) == 32


def test_get_link(provider):
    assert provider.get_link("eth0") == (b"\x52\x54\x00\x12\x34\x56", 1500)


def test_unknown_interface(provider):
    with pytest.raises(KernelError) as excinfo:
        provider.get_index("eth9")
    assert excinfo.value.code == errno.ENODEV


def test_add_address(provider, iproute):
    provider.add_address("eth0", IPv4Address("10.0.0.5"), NETMASK, IPv4Address("10.0.0.255"))
    provider.add_address("eth0", IPv4Address("10.0.0.6"), NETMASK, ZERO_ADDRESS)

    assert iproute.calls == [
        ("addr", "add", {"index": 2, "address": "10.0.0.5", "prefixlen": 24, "broadcast": "10.0.0.255"}),
        ("addr", "add", {"index": 2, "address": "10.0.0.6", "prefixlen": 24}),
    ]


def test_del_address(provider, iproute):
    provider.del_address("eth1", IPv4Address("10.0.0.5"), NETMASK)

    assert iproute.calls == [
        ("addr", "del", {"index": 3, "address": "10.0.0.5", "prefixlen": 24}),
    ]


def test_add_route(provider, iproute):
    provider.add_route("eth0", ZERO_ADDRESS, ZERO_ADDRESS, IPv4Address("10.0.0.1"), 10)
    provider.add_route("eth0", IPv4Address("10.0.0.0"), NETMASK, ZERO_ADDRESS)

    assert iproute.calls == [
        ("route", "add", {
            "proto": RT_PROTO,
            "dst": "0.0.0.0/0",
            "oif": 2,
            "priority": 10,
            "gateway": "10.0.0.1",
            "scope": RT_SCOPE_UNIVERSE,
        }),
        ("route", "add", {
            "proto": RT_PROTO,
            "dst": "10.0.0.0/24",
            "oif": 2,
            "priority": 0,
            "scope": RT_SCOPE_LINK,
        }),
    ]


def test_route_exists(provider):
    provider.add_route("eth0", ZERO_ADDRESS, ZERO_ADDRESS, IPv4Address("10.0.0.1"))

    with pytest.raises(KernelError) as excinfo:
        provider.add_route("eth0", ZERO_ADDRESS, ZERO_ADDRESS, IPv4Address("10.0.0.1"))
    assert excinfo.value.code == errno.EEXIST


def test_del_route(provider, iproute):
    provider.add_route("eth0", ZERO_ADDRESS, ZERO_ADDRESS, IPv4Address("10.0.0.1"))
    provider.del_route("eth0", ZERO_ADDRESS, ZERO_ADDRESS, IPv4Address("10.0.0.1"))

    assert iproute.routes == []
    with pytest.raises(KernelError) as excinfo:
        provider.del_route("eth0", ZERO_ADDRESS, ZERO_ADDRESS, IPv4Address("10.0.0.1"))
    assert excinfo.value.code == errno.ESRCH


def test_set_mtu(provider, iproute):
    provider.set_mtu("eth1", 1400)

    assert iproute.calls == [("link", "set", {"index": 3, "mtu": 1400})]


def test_stop(provider, iproute):
    provider.stop()
    assert iproute.closed


@pytest.mark.parametrize("netmask", ["255.0.255.0", "0.0.0.255"])
def test_prefixlen_invalid(netmask):
    with pytest.raises(KernelError) as excinfo:
        prefixlen(IPv4Address(netmask))
    assert excinfo.value.code == errno.EINVAL


def test_add_route_invalid_netmask(provider, iproute):
    with pytest.raises(KernelError) as excinfo:
        provider.add_route(
            "eth0", IPv4Address("172.16.0.0"), IPv4Address("255.0.255.0"), IPv4Address("10.0.0.1")
        )
    assert excinfo.value.code == errno.EINVAL
