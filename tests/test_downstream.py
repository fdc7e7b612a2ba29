from ipaddress import IPv4Address
import pytest

from leasecfg.downstream.config import NISConfig, NTPConfig, ResolvConfig, parse_ntp_servers
from leasecfg.downstream.writer import DownstreamConfigWriter, NTPTarget
from leasecfg.lease import Lease
from leasecfg.process import Command, ProcessInvoker
from tests.fakes import FakeInvoker


NTP_RESTART = Command("/etc/init.d/ntpd", ("restart",))
CHRONY_RESTART = Command("/etc/init.d/chronyd", ("restart",))
YPBIND_RESTART = Command("/etc/init.d/ypbind", ("restart",))


def make_lease(**kwargs):
    return Lease(address=IPv4Address("10.0.0.5"), netmask=IPv4Address("255.255.255.0"), **kwargs)


class Recorder:
    def __init__(self):
        self.calls = []

    def res_init(self):
        self.calls.append(("res_init",))

    def setdomainname(self, name):
        self.calls.append(("setdomainname", name))


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def invoker():
    return FakeInvoker()


@pytest.fixture
def writer(tmp_path, invoker, recorder):
    return DownstreamConfigWriter(
        invoker,
        resolv_conf=str(tmp_path / "resolv.conf"),
        resolvconf=None,
        ntp_targets=(
            NTPTarget(str(tmp_path / "ntp.conf"), NTP_RESTART, trusted_local=True),
            NTPTarget(str(tmp_path / "ntpd.conf"), NTP_RESTART),
        ),
        yp_conf=str(tmp_path / "yp.conf"),
        nis_service=YPBIND_RESTART,
        res_init=recorder.res_init,
        setdomainname=recorder.setdomainname,
    )


def test_resolv_content():
    lease = make_lease(
        dns_servers=[IPv4Address("10.0.0.1"), IPv4Address("10.0.0.2"), IPv4Address("10.0.0.1")],
        dns_domain="example.com",
    )

    assert ResolvConfig("eth0", lease).generate() == (
        "# Generated by leasecfg for interface eth0\n"
        "search example.com\n"
        "nameserver 10.0.0.1\n"
        "nameserver 10.0.0.2\n"
    )


def test_resolv_search_preferred():
    lease = make_lease(dns_servers=[IPv4Address("10.0.0.1")], dns_domain="a.com", dns_search="b.com c.com")

    assert "search b.com c.com\n" in ResolvConfig("eth0", lease).generate()


def test_make_resolv_file(writer, recorder, tmp_path):
    lease = make_lease(dns_servers=[IPv4Address("10.0.0.1")])

    assert writer.make_resolv("eth0", lease)

    assert (tmp_path / "resolv.conf").read_text().endswith("nameserver 10.0.0.1\n")
    assert recorder.calls == [("res_init",)]


def test_make_resolv_resolvconf(writer, invoker, recorder, tmp_path):
    helper = tmp_path / "resolvconf"
    helper.write_text("#!/bin/sh\n")
    writer.resolvconf = str(helper)
    lease = make_lease(dns_servers=[IPv4Address("10.0.0.1")])

    writer.make_resolv("eth0", lease)

    assert not (tmp_path / "resolv.conf").exists()
    assert invoker.submitted == []
    assert len(invoker.ran) == 1
    command = invoker.ran[0]
    assert command.argv == [str(helper), "-a", "eth0"]
    assert "nameserver 10.0.0.1\n" in command.input
    assert recorder.calls == [("res_init",)]


def test_make_resolv_resolvconf_before_reload(writer, tmp_path):
    received = tmp_path / "received"
    helper = tmp_path / "resolvconf"
    helper.write_text(f"#!/bin/sh\ncat > {received}\n")
    helper.chmod(0o755)
    writer.resolvconf = str(helper)
    writer.invoker = ProcessInvoker()
    seen_at_reload = []
    writer.res_init = lambda: seen_at_reload.append(received.exists() and received.read_text())

    writer.make_resolv("eth0", make_lease(dns_servers=[IPv4Address("10.0.0.1")]))

    assert len(seen_at_reload) == 1
    assert seen_at_reload[0].endswith("nameserver 10.0.0.1\n")


def test_restore_resolv(writer, invoker, tmp_path):
    writer.restore_resolv("eth0")
    assert invoker.submitted == []

    helper = tmp_path / "resolvconf"
    helper.write_text("#!/bin/sh\n")
    writer.resolvconf = str(helper)
    writer.restore_resolv("eth0")
    assert invoker.submitted == [Command(str(helper), ("-d", "eth0"))]


def test_make_resolv_write_failure(writer, recorder, tmp_path):
    writer.resolv_conf = str(tmp_path / "missing" / "resolv.conf")
    lease = make_lease(dns_servers=[IPv4Address("10.0.0.1")])

    assert not writer.make_resolv("eth0", lease)
    assert recorder.calls == []


def test_parse_ntp_servers():
    content = "# comment\nserver 10.0.0.1\nrestrict 10.0.0.2\nserver 10.0.0.3 iburst\nserver\n"

    assert parse_ntp_servers(content) == ["10.0.0.1", "10.0.0.3"]


def test_ntp_content_trusted_local():
    lease = make_lease(ntp_servers=[IPv4Address("10.0.0.1")])
    config = NTPConfig("eth0", lease, trusted_local=True, drift_file="/drift", log_file="/log")

    assert config.generate() == (
        "# Generated by leasecfg for interface eth0\n"
        "restrict default noquery notrust nomodify\n"
        "restrict 127.0.0.1\n"
        "restrict 10.0.0.1 nomodify notrap noquery\n"
        "server 10.0.0.1\n"
        "driftfile /drift\n"
        "logfile /log\n"
    )


def test_ntp_content_openntpd():
    lease = make_lease(ntp_servers=[IPv4Address("10.0.0.1"), IPv4Address("10.0.0.2")])

    assert NTPConfig("eth0", lease).generate() == (
        "# Generated by leasecfg for interface eth0\n"
        "server 10.0.0.1\n"
        "server 10.0.0.2\n"
    )


def test_ntp_restart_suppressed(writer, invoker, tmp_path):
    existing = "server 10.0.0.9\nserver 10.0.0.2\nserver 10.0.0.1\n"
    (tmp_path / "ntp.conf").write_text(existing)
    (tmp_path / "ntpd.conf").write_text(existing)
    lease = make_lease(ntp_servers=[IPv4Address("10.0.0.1"), IPv4Address("10.0.0.2")])

    assert writer.make_ntp("eth0", lease) == []

    assert invoker.submitted == []
    assert (tmp_path / "ntp.conf").read_text() == existing
    assert (tmp_path / "ntpd.conf").read_text() == existing


def test_ntp_restart_triggered(writer, invoker, tmp_path):
    (tmp_path / "ntp.conf").write_text("server 10.0.0.1\nserver 10.0.0.9\n")
    (tmp_path / "ntpd.conf").write_text("server 10.0.0.1\nserver 10.0.0.2\n")
    lease = make_lease(ntp_servers=[IPv4Address("10.0.0.1"), IPv4Address("10.0.0.2")])

    assert writer.make_ntp("eth0", lease) == [NTP_RESTART]

    assert invoker.submitted == [NTP_RESTART]
    assert parse_ntp_servers((tmp_path / "ntp.conf").read_text()) == ["10.0.0.1", "10.0.0.2"]
    assert (tmp_path / "ntpd.conf").read_text() == "server 10.0.0.1\nserver 10.0.0.2\n"


def test_ntp_restart_deduplicated(writer, invoker, tmp_path):
    lease = make_lease(ntp_servers=[IPv4Address("10.0.0.1")])

    assert writer.make_ntp("eth0", lease) == [NTP_RESTART]

    assert invoker.submitted == [NTP_RESTART]
    assert (tmp_path / "ntp.conf").exists()
    assert (tmp_path / "ntpd.conf").exists()


def test_ntp_restart_per_service(writer, invoker, tmp_path):
    writer.ntp_targets = (
        NTPTarget(str(tmp_path / "ntp.conf"), NTP_RESTART, trusted_local=True),
        NTPTarget(str(tmp_path / "chrony.conf"), CHRONY_RESTART),
    )
    lease = make_lease(ntp_servers=[IPv4Address("10.0.0.1")])

    assert writer.make_ntp("eth0", lease) == [NTP_RESTART, CHRONY_RESTART]


def test_nis_content_domain_and_servers():
    lease = make_lease(nis_domain="example", nis_servers=[IPv4Address("10.0.0.1"), IPv4Address("10.0.0.2")])

    assert NISConfig("eth0", lease).generate() == (
        "# Generated by leasecfg for interface eth0\n"
        "domain example server 10.0.0.1\n"
        "domain example server 10.0.0.2\n"
    )


def test_nis_content_broadcast():
    lease = make_lease(nis_domain="example")

    assert NISConfig("eth0", lease).generate() == (
        "# Generated by leasecfg for interface eth0\n"
        "domain example broadcast\n"
    )


def test_nis_content_servers_only():
    lease = make_lease(nis_servers=[IPv4Address("10.0.0.1")])

    assert NISConfig("eth0", lease).generate() == (
        "# Generated by leasecfg for interface eth0\n"
        "ypserver 10.0.0.1\n"
    )


def test_make_nis_always_restarts(writer, invoker, recorder, tmp_path):
    lease = make_lease(nis_domain="example", nis_servers=[IPv4Address("10.0.0.1")])

    assert writer.make_nis("eth0", lease)
    assert writer.make_nis("eth0", lease)

    assert invoker.submitted == [YPBIND_RESTART, YPBIND_RESTART]
    assert recorder.calls == [("setdomainname", "example"), ("setdomainname", "example")]
    assert (tmp_path / "yp.conf").read_text().endswith("domain example server 10.0.0.1\n")


def test_make_nis_without_domain(writer, recorder):
    writer.make_nis("eth0", make_lease(nis_servers=[IPv4Address("10.0.0.1")]))

    assert recorder.calls == []


def test_make_nis_write_failure(writer, invoker, tmp_path):
    writer.yp_conf = str(tmp_path / "missing" / "yp.conf")

    assert not writer.make_nis("eth0", make_lease(nis_domain="example"))
    assert invoker.submitted == []
