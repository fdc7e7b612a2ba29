"""
leasecfg/dhcp/client/events.py - Outcome of lease reconciliation
"""

from dataclasses import dataclass
from ipaddress import IPv4Address

from leasecfg.service import Event


@dataclass
class InterfaceConfigured(Event):
    interface: str
    reason: str
    address: IPv4Address
    netmask: IPv4Address


@dataclass
class InterfaceDeconfigured(Event):
    interface: str
    reason: str


@dataclass
class ReconcileFailed(Event):
    interface: str
    reason: str
    error: str
