"""
leasecfg/mqtt.py - MQTT transport between the dhclient hook and the agent

The paho client does no I/O of its own here. Its socket is watched by the
running event loop and ``loop_read()``/``loop_write()`` are called when it
is ready.
"""

import asyncio
from collections import defaultdict
from dataclasses import dataclass
import logging
import paho.mqtt.client as mqtt

from leasecfg.service import Event, Provider


logger = logging.getLogger("mqtt")


# Seconds between paho housekeeping calls (keepalive pings, retries)
HOUSEKEEPING_INTERVAL = 2


@dataclass
class MQTTEvent(Event):
    topic: str
    payload: bytes = None


class MQTT(Provider):
    """
    MQTT client provider.

    ``client`` is the paho client class, or any callable taking the
    callback API version and returning something with the same interface.
    """
    def __init__(self, host="localhost", port=1883, keepalive=60, client=mqtt.Client):
        super().__init__()
        self.host = host
        self.port = port
        self.keepalive = keepalive
        self.loop = asyncio.get_running_loop()

        # Subscription filter to the coroutines receiving matching messages
        self.handlers = defaultdict(list)
        self.incoming = asyncio.Queue()
        self.connected = False
        self.connected_future = self.loop.create_future()
        self.housekeeping_task = None

        self.client = client(mqtt.CallbackAPIVersion.VERSION2)
        self.client.on_connect = self.on_connect
        self.client.on_disconnect = self.on_disconnect
        self.client.on_message = self.on_message
        self.client.on_socket_open = self.watch_socket
        self.client.on_socket_close = self.unwatch_socket
        self.client.on_socket_register_write = self.watch_socket_write
        self.client.on_socket_unregister_write = self.unwatch_socket_write

    def watch_socket(self, client, userdata, sock):
        self.loop.add_reader(sock, self.client.loop_read)

    def unwatch_socket(self, client, userdata, sock):
        self.loop.remove_reader(sock)

    def watch_socket_write(self, client, userdata, sock):
        self.loop.add_writer(sock, self.client.loop_write)

    def unwatch_socket_write(self, client, userdata, sock):
        self.loop.remove_writer(sock)

    def on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code != 0:
            logger.error(f"MQTT broker {self.host}:{self.port} refused connection: {reason_code}")
            return
        logger.info(f"Connected to MQTT broker {self.host}:{self.port}")
        self.connected = True
        for subscription in self.handlers:
            self.client.subscribe(subscription)
        if not self.connected_future.done():
            self.connected_future.set_result(True)

    def on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        logger.warning(f"Disconnected from MQTT broker: {reason_code}")
        self.connected = False

    def on_message(self, client, userdata, message):
        logger.debug(f"Received message on {message.topic}")
        self.incoming.put_nowait(MQTTEvent(message.topic, message.payload))

    async def wait_connect(self):
        "Return once the broker has accepted the connection"
        await asyncio.shield(self.connected_future)

    def subscribe(self, subscription: str, handler):
        """
        Call the coroutine handler with an ``MQTTEvent`` for each message
        whose topic matches subscription. May be called before connecting.
        """
        first = subscription not in self.handlers
        self.handlers[subscription].append(handler)
        if first and self.connected:
            self.client.subscribe(subscription)

    def publish(self, topic: str, **kwargs):
        logger.debug(f"Publishing message on {topic}")
        return self.client.publish(topic, **kwargs)

    async def publish_message(self, topic: str, message, qos=1, timeout=5):
        """
        Publish a protobuf message.

        Returns once paho reports the message as published. Raises
        ``TimeoutError`` if that takes longer than timeout seconds.
        """
        info = self.publish(topic, payload=message.SerializeToString(), qos=qos)
        async with asyncio.timeout(timeout):
            while not info.is_published():
                await asyncio.sleep(0.05)

    async def dispatch(self, event: MQTTEvent):
        for subscription, handlers in list(self.handlers.items()):
            if not mqtt.topic_matches_sub(subscription, event.topic):
                continue
            for handler in handlers:
                try:
                    await handler(event)
                except Exception:
                    logger.exception(f"MQTT handler failed for {event.topic}")

    async def housekeeping(self):
        while True:
            ret = self.client.loop_misc()
            if ret != mqtt.MQTT_ERR_SUCCESS:
                logger.error(f"MQTT client error: {mqtt.error_string(ret)}")
            await asyncio.sleep(HOUSEKEEPING_INTERVAL)

    async def start(self):
        logger.debug(f"Connecting to MQTT broker {self.host}:{self.port}")
        self.client.connect(self.host, port=self.port, keepalive=self.keepalive)
        self.housekeeping_task = self.loop.create_task(self.housekeeping(), name="MQTT housekeeping")

    async def stop(self):
        if self.housekeeping_task is None:
            return
        self.housekeeping_task.cancel()
        try:
            await self.housekeeping_task
        except asyncio.CancelledError:
            pass
        self.housekeeping_task = None

    async def main(self):
        try:
            while True:
                await self.dispatch(await self.incoming.get())
        except asyncio.CancelledError:
            pass
