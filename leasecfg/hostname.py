"""
leasecfg/hostname.py - Hostname from lease or reverse DNS
"""

import logging
import socket

from leasecfg.lease import Lease, Options


logger = logging.getLogger("hostname")


# Hostnames that mean the host has not been given a name yet
UNSET_HOSTNAMES = ("", "(none)", "localhost")


def truncate_hostname(name: str) -> str:
    "Cut name at the first whitespace or control character"
    for index, char in enumerate(name):
        if ord(char) <= 32:
            return name[:index]
    return name


class HostnameResolver:
    def __init__(
        self,
        gethostname=socket.gethostname,
        sethostname=socket.sethostname,
        gethostbyaddr=socket.gethostbyaddr,
    ):
        self.gethostname = gethostname
        self.sethostname = sethostname
        self.gethostbyaddr = gethostbyaddr

    def lookup(self, lease: Lease) -> str:
        "Reverse resolve the lease address. Returns an empty string on failure."
        try:
            name, _, _ = self.gethostbyaddr(str(lease.address))
        except OSError as e:
            logger.debug(f"reverse lookup of {lease.address} failed: {e}")
            return ""
        return truncate_hostname(name)

    def apply(self, options: Options, lease: Lease) -> str | None:
        """
        Set the hostname if asked to, or if the host has none. Returns the
        hostname set, if any.
        """
        candidate = ""
        # resolv.conf is written by now so a lookup can use the new servers
        if options.hostname and not lease.hostname:
            candidate = self.lookup(lease)

        current = self.gethostname()

        if not options.hostname and current not in UNSET_HOSTNAMES:
            return None

        hostname = lease.hostname or candidate
        if not hostname:
            return None

        logger.info(f"setting hostname to `{hostname}'")
        try:
            self.sethostname(hostname)
        except OSError as e:
            logger.error(f"sethostname: {e.strerror}")
            return None
        return hostname
