#!/usr/bin/python3
#
# leasecfg -- DHCP lease configuration agent
#

import argparse
import asyncio
import logging
import os
import sys
from systemd import daemon
from systemd.journal import JournalHandler

from leasecfg.config.provider import CONFIG_FILE, ConfigProvider
from leasecfg.dhcp.client.provider import DHCPClientProvider
from leasecfg.dhcp.client.status import LeaseStatusProvider
from leasecfg.exceptions import InvalidConfig
from leasecfg.mqtt import MQTT
from leasecfg.process import ProcessInvoker
from leasecfg.rtnetlink.provider import IPRouteProvider
from leasecfg.service import Service


def setup_logging(debug=False):
    if "JOURNAL_STREAM" in os.environ:
        handler = JournalHandler()
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("[%(levelname)s:%(name)s] %(message)s"))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)
    root_logger.addHandler(handler)


def notify_ready():
    daemon.notify("READY=1")


async def run() -> int:
    parser = argparse.ArgumentParser("leasecfg", description="Apply DHCP leases to the system")
    parser.add_argument("--config", default=CONFIG_FILE, help="Configuration file")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    args = parser.parse_args()

    setup_logging(args.debug)
    logger = logging.getLogger("agent")

    try:
        config = ConfigProvider(args.config)
    except InvalidConfig as e:
        logger.error(str(e))
        return 1

    service = Service(ready_callback=notify_ready)

    service.add_provider(ConfigProvider, location=args.config)
    service.add_provider(DHCPClientProvider)
    service.add_provider(IPRouteProvider)
    service.add_provider(LeaseStatusProvider)
    service.add_provider(MQTT, host=config.mqtt.host, port=config.mqtt.port)
    service.add_provider(ProcessInvoker)

    logger.info("Starting leasecfg")

    try:
        return await service.run()
    except KeyboardInterrupt:
        logger.info("Exiting on keyboard interrupt")
    return 0


def main():
    try:
        sys.exit(asyncio.run(run()))
    except KeyboardInterrupt:
        pass
