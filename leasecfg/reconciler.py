"""
leasecfg/reconciler.py - Bring the host in line with a DHCP lease

The reconciler is run once per lease event: acquisition, renewal, rebind or
loss. It diffs the lease against what it configured last time, so that
routes shared by both leases stay in place and services are only restarted
when their configuration changed.
"""

import errno
import logging
import sys

from leasecfg.downstream.writer import DownstreamConfigWriter
from leasecfg.exceptions import AddressError, InvalidArgument, KernelError
from leasecfg.hostname import HostnameResolver
from leasecfg.info import InfoFileWriter
from leasecfg.lease import HOST_NETMASK, ZERO_ADDRESS, InterfaceState, Lease, Options, Route
from leasecfg.process import ProcessInvoker


logger = logging.getLogger("reconciler")


DEFAULT_SCRIPT = "/etc/leasecfg/leasecfg.sh"


class Reconciler:
    """
    Applies leases to an interface through the given collaborators.

    ``kernel`` provides ``add_address``, ``del_address``, ``add_route``,
    ``del_route`` and ``set_mtu``, raising ``KernelError`` on failure.

    ``fix_subnet_metric`` replaces the subnet route the kernel adds along
    with an address by one carrying the configured metric. Linux adds that
    route with metric 0.
    """
    def __init__(
        self,
        kernel,
        writer: DownstreamConfigWriter,
        hostnames: HostnameResolver,
        invoker: ProcessInvoker,
        info_writer: InfoFileWriter | None = None,
        default_script: str = DEFAULT_SCRIPT,
        fix_subnet_metric: bool = sys.platform.startswith("linux"),
    ):
        self.kernel = kernel
        self.writer = writer
        self.hostnames = hostnames
        self.invoker = invoker
        self.info_writer = info_writer if info_writer is not None else InfoFileWriter()
        self.default_script = default_script
        self.fix_subnet_metric = fix_subnet_metric

    def reconcile(self, options: Options, state: InterfaceState, lease: Lease) -> None:
        """
        Apply lease to the interface described by state, updating state.

        Raises ``AddressError`` if the lease address could not be added. Any
        changes made before that point are not undone.
        """
        if options is None or state is None or lease is None:
            raise InvalidArgument("options, state and lease are required")

        # Always done, as the interface may have addresses not added by us
        # whose routes would otherwise keep ours alive
        self.remove_stale_routes(options, state, lease)

        if lease.is_release:
            self.release(options, state)
            return

        if options.mtu:
            self.apply_mtu(state, lease)

        try:
            self.kernel.add_address(state.name, lease.address, lease.netmask, lease.broadcast)
        except KernelError as e:
            if e.code != errno.EEXIST:
                logger.error(f"failed to add address {lease.address} to {state.name}: {e}")
                raise AddressError(str(e)) from e

        if state.has_address and state.previous_address != lease.address:
            self.delete_address(state, state.previous_address, state.previous_netmask)

        if (
            self.fix_subnet_metric
            and state.previous_address != lease.address
            and options.metric > 0
            and lease.netmask != HOST_NETMASK
        ):
            self.replace_subnet_route(options, state, lease)

        state.previous_routes = self.add_routes(options, state, lease)

        self.configure_services(options, state, lease)

        self.hostnames.apply(options, lease)

        self.info_writer.write(state, lease, options)

        if state.previous_address != lease.address or state.previous_netmask != lease.netmask:
            state.previous_address = lease.address
            state.previous_netmask = lease.netmask
            self.run_hook(options, state, "new")
        else:
            self.run_hook(options, state, "up")

    def remove_stale_routes(self, options: Options, state: InterfaceState, lease: Lease):
        for route in state.previous_routes:
            if route.is_default and not options.gateway:
                continue
            if not lease.is_release and route in lease.routes:
                continue
            self.delete_route(state, route, options.metric)

    def release(self, options: Options, state: InterfaceState):
        state.previous_routes = []

        # Restore the original MTU
        if state.mtu and state.previous_mtu != state.mtu:
            try:
                self.kernel.set_mtu(state.name, state.mtu)
            except KernelError as e:
                logger.error(f"failed to restore MTU of {state.name}: {e}")
            state.previous_mtu = state.mtu

        # Only reset things if we had set them before
        if state.has_address:
            self.delete_address(state, state.previous_address, state.previous_netmask)
            state.previous_address = ZERO_ADDRESS
            state.previous_netmask = ZERO_ADDRESS

            self.writer.restore_resolv(state.name)

            # There is no resolvconf equivalent for NTP or NIS to undo
            self.run_hook(options, state, "down")

    def apply_mtu(self, state: InterfaceState, lease: Lease):
        """
        Use the lease MTU, or the native MTU of the interface when the
        server stops sending one.
        """
        mtu = lease.mtu or state.mtu
        if not mtu or mtu == state.previous_mtu:
            return
        try:
            self.kernel.set_mtu(state.name, mtu)
        except KernelError as e:
            logger.error(f"failed to set MTU of {state.name} to {mtu}: {e}")
            return
        state.previous_mtu = mtu

    def delete_address(self, state: InterfaceState, address, netmask):
        try:
            self.kernel.del_address(state.name, address, netmask)
        except KernelError as e:
            logger.error(f"failed to delete address {address} from {state.name}: {e}")

    def delete_route(self, state: InterfaceState, route: Route, metric: int):
        try:
            self.kernel.del_route(state.name, route.destination, route.netmask, route.gateway, metric)
        except KernelError as e:
            logger.error(f"failed to delete route {route}: {e}")

    def replace_subnet_route(self, options: Options, state: InterfaceState, lease: Lease):
        try:
            self.kernel.add_route(state.name, lease.network, lease.netmask, ZERO_ADDRESS, options.metric)
        except KernelError as e:
            logger.error(f"failed to add subnet route with metric {options.metric}: {e}")
        try:
            self.kernel.del_route(state.name, lease.network, lease.netmask, ZERO_ADDRESS, 0)
        except KernelError as e:
            logger.error(f"failed to delete subnet route without metric: {e}")

    def add_routes(self, options: Options, state: InterfaceState, lease: Lease) -> list[Route]:
        """
        Add the lease routes and return the ones now owned by us.

        Routes we already own are left alone while the address stays the
        same. After an address change the kernel may have dropped them along
        with the old address, so they are added again.
        """
        address_changed = state.previous_address != lease.address
        added = []
        for route in lease.routes:
            # Don't set default routes if not asked to
            if route.is_default and not options.gateway:
                continue

            if route in state.previous_routes and not address_changed:
                added.append(route)
                continue

            try:
                self.kernel.add_route(
                    state.name, route.destination, route.netmask, route.gateway, options.metric
                )
            except KernelError as e:
                # We may have added it ourselves before. If so, keep owning it.
                if route not in state.previous_routes:
                    logger.error(f"failed to add route {route}: {e}")
                    continue
            added.append(route)
        return added

    def configure_services(self, options: Options, state: InterfaceState, lease: Lease):
        if options.dns and lease.dns_servers:
            self.writer.make_resolv(state.name, lease)
        else:
            logger.debug("no dns information to write")

        if options.ntp and lease.ntp_servers:
            self.writer.make_ntp(state.name, lease)

        if options.nis and (lease.nis_servers or lease.nis_domain):
            self.writer.make_nis(state.name, lease)

    def run_hook(self, options: Options, state: InterfaceState, reason: str):
        self.invoker.run_hook(options.script, state.infofile, reason, self.default_script)
