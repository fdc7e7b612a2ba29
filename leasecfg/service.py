"""
leasecfg/service.py - Provider container for the agent and hook programs

A service holds one instance of each provider class. Providers declare what
they need by annotating ``__init__()`` arguments with other provider
classes, and the service builds them in that order.
"""

import asyncio
from collections import OrderedDict
from contextlib import suppress
from dataclasses import dataclass, field
import inspect
import logging
from typing import Callable, Type

from leasecfg.eventqueue import EventQueue


logger = logging.getLogger("service")


class ServiceException(Exception):
    "Base for service configuration errors"


class InvalidProvider(ServiceException):
    "add_provider() was given something other than a Provider subclass"


class ProviderDependencyMissing(ServiceException):
    "A provider requires a provider class that was not added"


class ProviderDependencyLoop(ServiceException):
    "Providers require each other"


class Event:
    "In-process notification. Subclasses are dataclasses."


class Provider:
    """
    One piece of a service, e.g. the kernel interface or the MQTT client.

    ``start()`` and ``stop()`` may be plain functions or coroutines. A
    provider with a ``main()`` coroutine has it run for the life of the
    service.

    A test double declares the class it replaces by overriding
    ``get_provider_class()``.
    """
    @classmethod
    def get_provider_class(cls):
        return cls

    @classmethod
    def get_name(cls):
        return cls.__name__

    def start(self):
        pass

    def stop(self):
        pass


def provider_arguments(fn) -> dict[str, Type[Provider]]:
    "Arguments of fn annotated with a provider class"
    if inspect.isclass(fn):
        fn = fn.__init__
    return {
        name: annotation
        for name, annotation in fn.__annotations__.items()
        if inspect.isclass(annotation) and issubclass(annotation, Provider)
    }


async def call(fn):
    if inspect.iscoroutinefunction(fn):
        await fn()
    else:
        fn()


@dataclass
class EventSubscription:
    callback: Callable
    params: dict = field(default_factory=dict)

    def match(self, event: Event) -> bool:
        return all(getattr(event, name) == value for name, value in self.params.items())


class Service(Provider):
    """
    Builds, starts and stops providers and dispatches events between them.

    Example::

        service = Service()
        service.add_provider(IPRouteProvider)
        service.add_provider(ProcessInvoker)
        service.add_provider(DHCPClientProvider)
        asyncio.run(service.run())
    """
    def __init__(self, ready_callback: Callable | None = None):
        # Keyword arguments for each added class
        self.provider_classes: dict[Type[Provider], dict] = {}
        # Replaced class to the class actually built
        self.provider_class_map: dict[Type[Provider], Type[Provider]] = {
            self.get_provider_class(): self.__class__,
        }
        # Built providers in start order, keyed by replaced class
        self.providers: OrderedDict[Type[Provider], Provider] = OrderedDict()

        self.ready_callback = ready_callback
        self.main_loop: asyncio.AbstractEventLoop | None = None
        self.started_future: asyncio.Future | None = None
        self.background_task: asyncio.Task | None = None
        self.started = False
        self.event_registry: dict[Type[Event], list[EventSubscription]] = {}
        self.eventqueue = EventQueue()
        self.handler_tasks: list[asyncio.Task] = []

    def add_provider(self, cls: Type[Provider], **kwargs):
        """
        Add a provider class. kwargs are passed to it when it is built.
        """
        if not inspect.isclass(cls) or not issubclass(cls, Provider):
            raise InvalidProvider(cls)
        self.provider_class_map[cls.get_provider_class()] = cls
        self.provider_classes[cls] = kwargs

    def exec(self, fn: Callable, **kwargs):
        """
        Call fn with the providers its annotations ask for. kwargs take
        precedence.
        """
        for name, cls in provider_arguments(fn).items():
            if cls not in self.providers:
                raise ProviderDependencyMissing(cls.__name__)
            kwargs.setdefault(name, self.providers[cls])
        return fn(**kwargs)

    def build_provider(self, cls: Type[Provider], building: list):
        if cls in self.providers:
            return
        if cls in building:
            names = ", ".join(provider.get_name() for provider in building)
            raise ProviderDependencyLoop(f"Provider dependency loop among {names}")

        real_class = self.provider_class_map[cls]
        building.append(cls)
        for requirement in provider_arguments(real_class).values():
            if requirement not in self.provider_class_map:
                raise ProviderDependencyMissing(
                    f"Provider {real_class.get_name()} requires {requirement.__name__} but it was not added"
                )
            self.build_provider(requirement, building)
        building.remove(cls)

        self.providers[cls] = self.exec(real_class, **self.provider_classes[real_class])

    async def load_providers(self):
        "Build every provider after the providers it depends on"
        self.providers.setdefault(self.get_provider_class(), self)
        for cls in list(self.provider_class_map):
            self.build_provider(cls, [])

    def get_provider(self, cls: Type[Provider]):
        return self.providers[cls]

    def running_providers(self):
        return [provider for provider in self.providers.values() if provider is not self]

    async def start_providers(self):
        for provider in self.running_providers():
            logger.debug(f"Starting {provider.get_name()}")
            await call(provider.start)

    async def stop_providers(self):
        for provider in reversed(self.running_providers()):
            logger.debug(f"Stopping {provider.get_name()}")
            await call(provider.stop)

    async def wait_start(self):
        "Wait until every provider has started"
        if not self.started:
            if self.started_future is None:
                self.started_future = asyncio.get_running_loop().create_future()
            await self.started_future

    def set_started(self):
        self.started = True
        if self.started_future is not None and not self.started_future.done():
            self.started_future.set_result(None)
        if self.ready_callback is not None:
            self.ready_callback()

    async def cancel_handlers(self):
        for task in self.handler_tasks:
            task.cancel()
        for task in self.handler_tasks:
            with suppress(asyncio.CancelledError):
                await task
        self.handler_tasks.clear()

    async def service_main(self) -> int:
        """
        Start the providers, run their ``main()`` coroutines until they
        return or the service is cancelled, then stop the providers.

        Returns the exit code a provider passed to ``sys.exit()``, or 0.
        """
        await self.start_providers()
        logger.info("Service started")
        self.set_started()

        self.main_loop.add_reader(self.eventqueue, self.drain_eventqueue)
        mains = [provider.main() for provider in self.running_providers() if hasattr(provider, "main")]
        if not mains:
            # Nothing to run; wait to be cancelled
            mains = [self.main_loop.create_future()]

        exit_code = 0
        try:
            await asyncio.gather(*mains)
        except asyncio.CancelledError:
            logger.info("Service shutting down")
        except SystemExit as e:
            exit_code = e.code
        finally:
            self.main_loop.remove_reader(self.eventqueue)

        await self.stop_providers()
        await self.cancel_handlers()
        logger.info("Service stopped")
        return exit_code

    async def prepare(self):
        self.main_loop = asyncio.get_running_loop()
        await self.load_providers()

    async def run(self) -> int:
        "Run in the foreground until cancelled"
        await self.prepare()
        return await self.service_main()

    async def start_background(self):
        "Run in a task. Used by the hook program and the tests."
        await self.prepare()
        self.background_task = self.main_loop.create_task(self.service_main(), name="service")

    async def stop_background(self):
        task, self.background_task = self.background_task, None
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

    def subscribe_event(self, event_class: Type[Event], callback: Callable, **params):
        """
        Call the coroutine callback for each published event_class whose
        attributes equal params.
        """
        if not inspect.iscoroutinefunction(callback):
            raise ServiceException(f"Event handler {callback} is not a coroutine function")
        self.event_registry.setdefault(event_class, []).append(EventSubscription(callback, params))

    def unsubscribe_event(self, event_class: Type[Event], callback: Callable, **params):
        subscriptions = self.event_registry.get(event_class)
        if subscriptions is None:
            return
        with suppress(ValueError):
            subscriptions.remove(EventSubscription(callback, params))
        if not subscriptions:
            del self.event_registry[event_class]

    def publish_event(self, event: Event):
        "Queue an event for subscribers. Safe to call from any thread."
        logger.debug(f"Event published: {event}")
        self.eventqueue.put(event)

    def drain_eventqueue(self):
        self.handler_tasks = [task for task in self.handler_tasks if not task.done()]
        while True:
            try:
                event = self.eventqueue.get()
            except BlockingIOError:
                return
            self.handler_tasks.append(self.main_loop.create_task(self.handle_event(event)))

    async def handle_event(self, event: Event):
        for subscription in list(self.event_registry.get(type(event), ())):
            if subscription.match(event):
                try:
                    await subscription.callback(event)
                except Exception:
                    logger.exception(f"Event handler {subscription.callback.__name__} failed for {event}")
