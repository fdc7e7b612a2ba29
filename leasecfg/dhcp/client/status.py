"""
leasecfg/dhcp/client/status.py - Lease state in the systemd service status
"""

import logging
from systemd import daemon

from leasecfg.dhcp.client.events import InterfaceConfigured, InterfaceDeconfigured, ReconcileFailed
from leasecfg.service import Provider, Service


logger = logging.getLogger("dhcp-client-status")


class LeaseStatusProvider(Provider):
    """
    Keeps the ``STATUS=`` line shown by ``systemctl status`` up to date with
    the outcome of the last lease event of each interface.
    """
    def __init__(self, service: Service, notify=daemon.notify):
        super().__init__()
        self.service = service
        self.notify = notify
        self.interfaces: dict[str, str] = {}
        self.handlers = (
            (InterfaceConfigured, self.handle_configured),
            (InterfaceDeconfigured, self.handle_deconfigured),
            (ReconcileFailed, self.handle_failed),
        )

    def start(self):
        for event_class, handler in self.handlers:
            self.service.subscribe_event(event_class, handler)

    def stop(self):
        for event_class, handler in self.handlers:
            self.service.unsubscribe_event(event_class, handler)

    @property
    def status(self) -> str:
        return ", ".join(f"{name}: {status}" for name, status in sorted(self.interfaces.items()))

    def update(self, ifname: str, status: str):
        self.interfaces[ifname] = status
        logger.debug(f"Status: {self.status}")
        self.notify(f"STATUS={self.status}")

    async def handle_configured(self, event: InterfaceConfigured):
        self.update(event.interface, f"{event.address} netmask {event.netmask}")

    async def handle_deconfigured(self, event: InterfaceDeconfigured):
        self.update(event.interface, "no lease")

    async def handle_failed(self, event: ReconcileFailed):
        self.update(event.interface, f"{event.reason or 'lease'} failed")
