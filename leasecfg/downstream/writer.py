"""
leasecfg/downstream/writer.py - Resolver, NTP and NIS configuration
"""

from dataclasses import dataclass
import logging
import os
from typing import Callable

from leasecfg import libc
from leasecfg.downstream.config import NISConfig, NTPConfig, ResolvConfig, parse_ntp_servers
from leasecfg.files import replace_file
from leasecfg.lease import Lease
from leasecfg.process import Command, ProcessInvoker


logger = logging.getLogger("downstream")


RESOLV_CONF = "/etc/resolv.conf"
RESOLVCONF = "/sbin/resolvconf"
NTP_CONF = "/etc/ntp.conf"
OPENNTPD_CONF = "/etc/ntpd.conf"
YP_CONF = "/etc/yp.conf"

NTP_SERVICE = Command("/etc/init.d/ntpd").add("restart")
OPENNTPD_SERVICE = Command("/etc/init.d/ntpd").add("restart")
NIS_SERVICE = Command("/etc/init.d/ypbind").add("restart")


@dataclass(frozen=True)
class NTPTarget:
    """
    An NTP configuration file and the command restarting the daemon that
    reads it.
    """
    path: str
    service: Command
    trusted_local: bool = False


DEFAULT_NTP_TARGETS = (
    NTPTarget(NTP_CONF, NTP_SERVICE, trusted_local=True),
    NTPTarget(OPENNTPD_CONF, OPENNTPD_SERVICE),
)


class DownstreamConfigWriter:
    """
    Writes lease data into the configuration of the resolver, NTP and NIS
    and restarts services when needed.

    Only one of several NTP daemons is usually installed and it is not
    known which configuration file it reads, so every NTP target is written
    and each changed one has its service restarted.
    """
    def __init__(
        self,
        invoker: ProcessInvoker,
        resolv_conf: str = RESOLV_CONF,
        resolvconf: str | None = RESOLVCONF,
        ntp_targets: tuple[NTPTarget, ...] = DEFAULT_NTP_TARGETS,
        yp_conf: str = YP_CONF,
        nis_service: Command = NIS_SERVICE,
        res_init: Callable[[], None] = libc.res_init,
        setdomainname: Callable[[str], None] = libc.setdomainname,
    ):
        self.invoker = invoker
        self.resolv_conf = resolv_conf
        self.resolvconf = resolvconf
        self.ntp_targets = ntp_targets
        self.yp_conf = yp_conf
        self.nis_service = nis_service
        self.res_init = res_init
        self.setdomainname = setdomainname

    @property
    def has_resolvconf(self):
        return bool(self.resolvconf) and os.path.exists(self.resolvconf)

    def write_file(self, path: str, content: str) -> bool:
        logger.debug(f"writing {path}")
        try:
            replace_file(path, content)
        except OSError as e:
            logger.error(f"open `{path}': {e.strerror}")
            return False
        return True

    def make_resolv(self, ifname: str, lease: Lease) -> bool:
        content = ResolvConfig(ifname, lease).generate()

        if self.has_resolvconf:
            logger.debug("sending DNS information to resolvconf")
            # Waited for so that the reload below sees the new servers
            self.invoker.run(Command(self.resolvconf).add("-a", ifname).with_input(content))
        elif not self.write_file(self.resolv_conf, content):
            return False

        # Refresh the local resolver
        self.res_init()
        return True

    def restore_resolv(self, ifname: str) -> None:
        """
        Remove the DNS information of the interface. Without resolvconf
        there is nothing to do since the next lease overwrites the file.
        """
        if not self.has_resolvconf:
            return
        logger.debug("removing information from resolvconf")
        self.invoker.submit(Command(self.resolvconf).add("-d", ifname))

    def read_ntp_servers(self, path: str) -> list[str] | None:
        """
        Servers already configured in path. An empty list for a missing file,
        None when the file could not be read.
        """
        try:
            with open(path) as f:
                return parse_ntp_servers(f.read())
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.error(f"open `{path}': {e.strerror}")
            return None

    def write_ntp(self, target: NTPTarget, ifname: str, lease: Lease) -> bool:
        """
        Write one NTP configuration file. Returns True if it changed and the
        daemon needs a restart.
        """
        config = NTPConfig(ifname, lease, trusted_local=target.trusted_local)

        # ntp has to be restarted to pick up a changed config, so leave the
        # file alone when it already has every server
        existing = self.read_ntp_servers(target.path)
        if existing is None:
            return False
        if os.path.exists(target.path) and not config.missing_servers(existing):
            logger.debug(f"{target.path} already configured, skipping")
            return False

        return self.write_file(target.path, config.generate())

    def make_ntp(self, ifname: str, lease: Lease) -> list[Command]:
        """
        Write the NTP configuration files and restart the daemons whose file
        changed. Returns the restart commands issued.
        """
        restarts = []
        for target in self.ntp_targets:
            if not self.write_ntp(target, ifname, lease):
                continue
            if any(command.path == target.service.path for command in restarts):
                continue
            restarts.append(target.service)

        for command in restarts:
            self.invoker.submit(command)
        return restarts

    def make_nis(self, ifname: str, lease: Lease) -> bool:
        """
        Write the NIS configuration and restart ypbind. Unlike NTP this is
        done on every lease.
        """
        if not self.write_file(self.yp_conf, NISConfig(ifname, lease).generate()):
            return False

        if lease.nis_domain:
            try:
                self.setdomainname(lease.nis_domain)
            except OSError as e:
                logger.error(f"setdomainname: {e.strerror}")

        self.invoker.submit(self.nis_service)
        return True
