"""
leasecfg/info.py - Per-interface lease information file

The file is a list of shell variable assignments meant to be sourced by
hook scripts.
"""

import logging
import os

from leasecfg.files import replace_file
from leasecfg.interface.hwaddr import hwaddr_to_string
from leasecfg.lease import InterfaceState, Lease, Options


logger = logging.getLogger("info")


INFO_DIRECTORY = "/var/lib/leasecfg"


def infofile_path(ifname: str, directory: str = INFO_DIRECTORY) -> str:
    return os.path.join(directory, f"leasecfg-{ifname}.info")


def shell_quote(value) -> str:
    """
    Quote value for use inside single quotes. A single quote closes the
    quoted string, adds an escaped quote and reopens it.
    """
    if value is None:
        return ""
    return str(value).replace("'", "'\\''")


def join(values) -> str:
    return " ".join(str(value) for value in values)


class InfoFileWriter:
    def generate(self, state: InterfaceState, lease: Lease, options: Options) -> list[tuple[str, str]]:
        "Return the (key, value) pairs to write, in file order"
        items = [
            ("IPADDR", lease.address),
            ("NETMASK", lease.netmask),
            ("BROADCAST", lease.broadcast),
        ]
        if lease.mtu > 0:
            items.append(("MTU", lease.mtu))
        if lease.routes:
            items.append((
                "ROUTES",
                join(f"{route.destination},{route.netmask},{route.gateway}" for route in lease.routes),
            ))
        if lease.hostname:
            items.append(("HOSTNAME", lease.hostname))
        if lease.dns_domain:
            items.append(("DNSDOMAIN", lease.dns_domain))
        if lease.dns_search:
            items.append(("DNSSEARCH", lease.dns_search))
        if lease.dns_servers:
            items.append(("DNSSERVERS", join(lease.dns_servers)))
        if lease.fqdn:
            items.append(("FQDNFLAGS", lease.fqdn.flags))
            items.append(("FQDNRCODE1", lease.fqdn.rcode1))
            items.append(("FQDNRCODE2", lease.fqdn.rcode2))
            items.append(("FQDNHOSTNAME", lease.fqdn.name))
        if lease.ntp_servers:
            items.append(("NTPSERVERS", join(lease.ntp_servers)))
        if lease.nis_domain:
            items.append(("NISDOMAIN", lease.nis_domain))
        if lease.nis_servers:
            items.append(("NISSERVERS", join(lease.nis_servers)))
        if lease.root_path:
            items.append(("ROOTPATH", lease.root_path))

        hwaddr = hwaddr_to_string(state.hwaddr)
        items += [
            ("DHCPSID", lease.server_identifier),
            ("DHCPSNAME", lease.server_name),
            ("LEASETIME", lease.lease_time),
            ("RENEWALTIME", lease.renewal_time),
            ("REBINDTIME", lease.rebind_time),
            ("INTERFACE", state.name),
            ("CLASSID", options.class_id),
            ("CLIENTID", options.client_id or hwaddr),
            ("DHCPCHADDR", hwaddr),
        ]
        return items

    def render(self, state: InterfaceState, lease: Lease, options: Options) -> str:
        return "".join(
            "%s='%s'\n" % (key, shell_quote(value))
            for key, value in self.generate(state, lease, options)
        )

    def write(self, state: InterfaceState, lease: Lease, options: Options) -> bool:
        if not state.infofile:
            return False
        logger.debug(f"writing {state.infofile}")
        try:
            replace_file(state.infofile, self.render(state, lease, options))
        except OSError as e:
            logger.error(f"open `{state.infofile}': {e.strerror}")
            return False
        return True
