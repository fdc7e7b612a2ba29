#!/usr/bin/python3
#
# leasecfg-dhclient-event -- dhclient hook handing leases to the agent
#

import argparse
import asyncio
import logging
import os
import sys
from systemd.journal import JournalHandler

from leasecfg.config.provider import CONFIG_FILE, ConfigProvider
from leasecfg.dhcp.dhclient import DHClientEnvironment
from leasecfg.exceptions import InvalidArgument, InvalidConfig
from leasecfg.mqtt import MQTT
from leasecfg.service import Provider, Service


logger = logging.getLogger("dhclient-event")


class DHClientEvent(Provider):
    def __init__(self, mqtt: MQTT, config: ConfigProvider, environ=os.environ, operation_timeout=5):
        super().__init__()
        self.mqtt = mqtt
        self.config = config
        self.environ = environ
        self.operation_timeout = operation_timeout

    async def send(self) -> int:
        if "reason" not in self.environ:
            print("No reason in environment. Must be called from dhclient", file=sys.stderr)
            return 1

        try:
            event = DHClientEnvironment(self.environ).get_event()
        except InvalidArgument as e:
            logger.error(str(e))
            return 1

        if event is None:
            return 0

        try:
            async with asyncio.timeout(self.operation_timeout):
                await self.mqtt.wait_connect()
        except TimeoutError:
            logger.error("Timed out connecting to broker")
            return 1

        logger.info(f"Sending {event.reason} for {event.interface} to agent")
        try:
            await self.mqtt.publish_message(
                f"{self.config.mqtt.prefix}/lease/{event.interface}",
                event,
                timeout=self.operation_timeout,
            )
        except TimeoutError:
            logger.error("Timed out sending event")
            return 1

        return 0


async def run() -> int:
    parser = argparse.ArgumentParser("leasecfg-dhclient-event", description="Send dhclient leases to leasecfg")
    parser.add_argument("--config", default=CONFIG_FILE, help="Configuration file")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    args = parser.parse_args()

    handler = JournalHandler()

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if args.debug else logging.INFO)
    root_logger.addHandler(handler)

    try:
        config = ConfigProvider(args.config)
    except InvalidConfig as e:
        logger.error(str(e))
        return 1

    service = Service()
    service.add_provider(ConfigProvider, location=args.config)
    service.add_provider(DHClientEvent)
    service.add_provider(MQTT, host=config.mqtt.host, port=config.mqtt.port)

    await service.start_background()
    await service.wait_start()
    eventprovider = service.get_provider(DHClientEvent)
    ret = await eventprovider.send()
    await service.stop_background()
    return ret


def main():
    try:
        sys.exit(asyncio.run(run()))
    except KeyboardInterrupt:
        pass
