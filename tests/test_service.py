from dataclasses import dataclass
import pytest

from leasecfg.service import Event, Provider, ProviderDependencyLoop, ProviderDependencyMissing, Service


class InterfaceTable(Provider):
    def __init__(self, started=None, stopped=None):
        super().__init__()
        self.started = started
        self.stopped = stopped

    def start(self):
        if self.started is not None:
            self.started.append("interfaces")

    def stop(self):
        if self.stopped is not None:
            self.stopped.append("interfaces")


class LeaseTracker(Provider):
    def __init__(self, interfaces: InterfaceTable, started=None, stopped=None):
        super().__init__()
        self.interfaces = interfaces
        self.started = started
        self.stopped = stopped

    async def start(self):
        if self.started is not None:
            self.started.append("leases")

    async def stop(self):
        if self.stopped is not None:
            self.stopped.append("leases")


class FakeInterfaceTable(InterfaceTable):
    @classmethod
    def get_provider_class(cls):
        return InterfaceTable


class Chicken(Provider):
    def __init__(self, egg: "Egg"):
        super().__init__()


class Egg(Provider):
    def __init__(self, chicken: Chicken):
        super().__init__()


Chicken.__init__.__annotations__["egg"] = Egg


@dataclass
class LeaseChanged(Event):
    interface: str


@dataclass
class LeaseLost(Event):
    interface: str


async def test_load_order():
    service = Service()
    service.add_provider(LeaseTracker)
    service.add_provider(InterfaceTable)
    await service.load_providers()

    assert list(service.providers) == [Service, InterfaceTable, LeaseTracker]
    tracker = service.get_provider(LeaseTracker)
    assert tracker.interfaces is service.get_provider(InterfaceTable)


async def test_start_stop_order():
    started = []
    stopped = []
    service = Service()
    service.add_provider(LeaseTracker, started=started, stopped=stopped)
    service.add_provider(InterfaceTable, started=started, stopped=stopped)

    await service.start_background()
    await service.wait_start()
    assert started == ["interfaces", "leases"]

    await service.stop_background()
    assert stopped == ["leases", "interfaces"]


async def test_ready_callback():
    ready = []
    service = Service(ready_callback=lambda: ready.append(True))

    await service.start_background()
    await service.wait_start()
    await service.stop_background()

    assert ready == [True]


async def test_substitute_provider():
    service = Service()
    service.add_provider(LeaseTracker)
    service.add_provider(FakeInterfaceTable)
    await service.load_providers()

    assert isinstance(service.get_provider(InterfaceTable), FakeInterfaceTable)
    assert isinstance(service.get_provider(LeaseTracker).interfaces, FakeInterfaceTable)


async def test_missing_dependency():
    service = Service()
    service.add_provider(LeaseTracker)

    with pytest.raises(ProviderDependencyMissing):
        await service.load_providers()


async def test_dependency_loop():
    service = Service()
    service.add_provider(Chicken)
    service.add_provider(Egg)

    with pytest.raises(ProviderDependencyLoop):
        await service.load_providers()


async def test_event_subscriber(service):
    future = service.main_loop.create_future()

    async def handler(event):
        future.set_result(event)

    service.subscribe_event(LeaseChanged, handler)
    service.publish_event(LeaseLost("eth1"))
    service.publish_event(LeaseChanged("eth0"))

    assert await future == LeaseChanged("eth0")


async def test_event_subscriber_params(service):
    future = service.main_loop.create_future()

    async def handler(event):
        future.set_result(event)

    service.subscribe_event(LeaseChanged, handler, interface="eth1")
    service.publish_event(LeaseChanged("eth0"))
    service.publish_event(LeaseChanged("eth1"))

    assert await future == LeaseChanged("eth1")


async def test_event_unsubscribe(service):
    async def handler(event):
        pass

    service.subscribe_event(LeaseChanged, handler, interface="eth0")
    assert LeaseChanged in service.event_registry

    service.unsubscribe_event(LeaseChanged, handler)
    assert LeaseChanged in service.event_registry

    service.unsubscribe_event(LeaseChanged, handler, interface="eth0")
    assert LeaseChanged not in service.event_registry


async def test_expect_event(service, expect_event):
    async with expect_event(LeaseLost) as received:
        service.publish_event(LeaseLost("eth0"))
    assert received.event == LeaseLost("eth0")
