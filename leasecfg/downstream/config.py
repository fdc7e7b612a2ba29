"""
leasecfg/downstream/config.py - Resolver, NTP and NIS configuration content
"""

from ipaddress import IPv4Address

from leasecfg.lease import Lease


HEADER = "# Generated by leasecfg for interface %s\n"

NTP_DRIFT_FILE = "/var/lib/ntp/ntp.drift"
NTP_LOG_FILE = "/var/log/ntp.log"


def parse_ntp_servers(content: str) -> list[str]:
    """
    Return the address of every ``server`` directive in an NTP config, in
    file order.
    """
    servers = []
    for line in content.splitlines():
        tokens = line.split(" ")
        if tokens[0] != "server" or len(tokens) < 2:
            continue
        servers.append(tokens[1].strip())
    return servers


class ResolvConfig:
    def __init__(self, ifname: str, lease: Lease):
        self.ifname = ifname
        self.lease = lease

    def generate(self):
        s = HEADER % self.ifname
        search = self.lease.dns_search or self.lease.dns_domain
        if search:
            s += "search %s\n" % search
        for server in self.lease.dns_servers:
            s += "nameserver %s\n" % server
        return s


class NTPConfig:
    """
    ntp.conf or ntpd.conf content.

    The trusted local flavour is the reference ntpd, which also gets access
    restrictions and drift/log files. OpenNTPD only understands ``server``.
    """
    def __init__(
        self,
        ifname: str,
        lease: Lease,
        trusted_local: bool = False,
        drift_file: str = NTP_DRIFT_FILE,
        log_file: str = NTP_LOG_FILE,
    ):
        self.ifname = ifname
        self.lease = lease
        self.trusted_local = trusted_local
        self.drift_file = drift_file
        self.log_file = log_file

    def missing_servers(self, existing: list[str]) -> list[IPv4Address]:
        """
        Lease servers without a ``server`` line in ``existing``.
        """
        present = set(existing)
        return [server for server in self.lease.ntp_servers if str(server) not in present]

    def generate(self):
        s = HEADER % self.ifname
        if self.trusted_local:
            s += "restrict default noquery notrust nomodify\n"
            s += "restrict 127.0.0.1\n"

        for server in self.lease.ntp_servers:
            if self.trusted_local:
                s += "restrict %s nomodify notrap noquery\n" % server
            s += "server %s\n" % server

        if self.trusted_local:
            s += "driftfile %s\n" % self.drift_file
            s += "logfile %s\n" % self.log_file
        return s


class NISConfig:
    def __init__(self, ifname: str, lease: Lease):
        self.ifname = ifname
        self.lease = lease

    @property
    def prefix(self):
        if self.lease.nis_domain:
            return "domain %s server" % self.lease.nis_domain
        return "ypserver"

    def generate(self):
        s = HEADER % self.ifname
        if self.lease.nis_domain and not self.lease.nis_servers:
            s += "domain %s broadcast\n" % self.lease.nis_domain
        for server in self.lease.nis_servers:
            s += "%s %s\n" % (self.prefix, server)
        return s
