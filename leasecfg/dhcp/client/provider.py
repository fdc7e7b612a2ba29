"""
leasecfg/dhcp/client/provider.py - Apply DHCP client leases to interfaces
"""

import asyncio
from google.protobuf.message import DecodeError
import logging
import sys

from leasecfg.config.provider import ConfigProvider
from leasecfg.dhcp.client.events import InterfaceConfigured, InterfaceDeconfigured, ReconcileFailed
from leasecfg.dhcp.messages import event_lease
from leasecfg.downstream.writer import DownstreamConfigWriter
from leasecfg.exceptions import KernelError, LeasecfgException
from leasecfg.hostname import HostnameResolver
from leasecfg.info import InfoFileWriter
from leasecfg.lease import InterfaceState
from leasecfg.mqtt import MQTT, MQTTEvent
from leasecfg.process import ProcessInvoker
from leasecfg.reconciler import Reconciler
from leasecfg.rtnetlink.provider import IPRouteProvider
from leasecfg.schema import LeaseEvent
from leasecfg.service import Provider, Service


logger = logging.getLogger("dhcp-client")


class DHCPClientProvider(Provider):
    """
    Receives lease events from the dhclient hook over MQTT and reconciles
    the interface they name.

    Reconciliation can block on a reverse DNS lookup or the resolvconf
    helper, so it is run in the default executor. A lock keeps it to one
    reconciliation at a time, in the order events arrived.
    """
    def __init__(
        self,
        service: Service,
        mqtt: MQTT,
        config: ConfigProvider,
        iproute: IPRouteProvider,
        invoker: ProcessInvoker,
        writer: DownstreamConfigWriter | None = None,
        hostnames: HostnameResolver | None = None,
    ):
        super().__init__()
        self.service = service
        self.mqtt = mqtt
        self.config = config
        self.iproute = iproute
        self.invoker = invoker
        self.states: dict[str, InterfaceState] = {}
        self.reconcile_lock = asyncio.Lock()
        self.reconciler = Reconciler(
            iproute,
            writer if writer is not None else DownstreamConfigWriter(invoker),
            hostnames if hostnames is not None else HostnameResolver(),
            invoker,
            info_writer=InfoFileWriter(),
            fix_subnet_metric=sys.platform.startswith("linux"),
        )
        self.topic_prefix = f"{self.config.mqtt.prefix}/lease/"

        self.mqtt.subscribe(f"{self.topic_prefix}+", self.handle_lease_message)

    def get_state(self, ifname: str) -> InterfaceState:
        """
        Return the state of an interface, creating it on first use with the
        hardware address and MTU currently set on the link.
        """
        if ifname not in self.states:
            hwaddr = b""
            mtu = 0
            try:
                hwaddr, mtu = self.iproute.get_link(ifname)
            except KernelError as e:
                logger.error(f"could not read link attributes of {ifname}: {e}")
            self.states[ifname] = InterfaceState(
                name=ifname,
                hwaddr=hwaddr,
                infofile=self.config.get_infofile(ifname),
                mtu=mtu,
            )
        return self.states[ifname]

    async def handle_lease_message(self, message_event: MQTTEvent):
        event = LeaseEvent()
        try:
            event.ParseFromString(message_event.payload)
        except DecodeError:
            logger.error(f"Could not parse lease event on {message_event.topic}")
            return
        if not event.interface:
            event.interface = message_event.topic[len(self.topic_prefix):]
        async with self.reconcile_lock:
            await asyncio.get_running_loop().run_in_executor(None, self.handle_lease_event, event)

    def handle_lease_event(self, event: LeaseEvent):
        ifname = event.interface
        try:
            lease = event_lease(event)
        except ValueError as e:
            logger.error(f"Invalid lease for {ifname}: {e}")
            return

        logger.info(f"{event.reason or 'lease'} on {ifname}")
        options = self.config.get_options(ifname)
        state = self.get_state(ifname)

        try:
            self.reconciler.reconcile(options, state, lease)
        except LeasecfgException as e:
            logger.exception(f"Failed to apply lease on {ifname}")
            self.service.publish_event(ReconcileFailed(ifname, event.reason, str(e)))
            return

        if lease.is_release:
            self.service.publish_event(InterfaceDeconfigured(ifname, event.reason))
        else:
            self.service.publish_event(
                InterfaceConfigured(ifname, event.reason, lease.address, lease.netmask)
            )
