"""
Pytest config

Coroutine tests are run in their own event loop. When a test asks for the
``service`` fixture, the service is started before the test and stopped
after it. Fixtures that return coroutines, such as started providers, are
awaited once the service is up.
"""

import asyncio
import functools
import inspect
import logging
import pytest
import traceback

from tests.conftest_mqtt import *
from tests.conftest_providers import *
from tests.conftest_service import *


logger = logging.getLogger("conftest")

SETUP_TIMEOUT = 1
TEST_TIMEOUT = 5
TEARDOWN_TIMEOUT = 5


def pytest_addoption(parser):
    parser.addoption("--logdebug", action="store_true", help="Show debug logging on the console")


def pytest_configure(config):
    if config.option.logdebug:
        config.option.log_cli_level = "DEBUG"


def timeout_location(error: TimeoutError) -> str:
    if error.__cause__ is None:
        return ""
    frame = traceback.extract_tb(error.__cause__.__traceback__)[-1]
    return f" at {frame.filename}:{frame.lineno}"


async def set_up(service, mqttbroker, kwargs):
    if mqttbroker is not None:
        await mqttbroker.start()
    if service is not None:
        await service.start_background()
        await service.wait_start()
    for name, value in kwargs.items():
        if inspect.iscoroutine(value):
            kwargs[name] = await value


async def tear_down(service, mqttbroker):
    if service is not None:
        await service.stop_background()
    if mqttbroker is not None:
        await mqttbroker.stop()


def run_async_test(pyfuncitem, test_fn):
    service = pyfuncitem.funcargs.get("service")
    mqttbroker = pyfuncitem.funcargs.get("mqttbroker")

    async def run(*args, **kwargs):
        try:
            async with asyncio.timeout(SETUP_TIMEOUT):
                await set_up(service, mqttbroker, kwargs)
        except TimeoutError:
            pytest.fail("Timed out setting up the service")

        try:
            async with asyncio.timeout(TEST_TIMEOUT):
                await test_fn(*args, **kwargs)
        except TimeoutError as e:
            message = f"Timed out running the test{timeout_location(e)}"
            logger.error(message)
            pytest.fail(message)
        finally:
            logger.info("Test finished")

        try:
            async with asyncio.timeout(TEARDOWN_TIMEOUT):
                await tear_down(service, mqttbroker)
        except TimeoutError:
            pytest.fail("Timed out stopping the service")

    @functools.wraps(test_fn)
    def wrapper(*args, **kwargs):
        asyncio.run(run(*args, **kwargs))

    return wrapper


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        pyfuncitem.obj = run_async_test(pyfuncitem, pyfuncitem.obj)
    elif pyfuncitem.funcargs.get("service") is not None:
        pytest.fail("Tests using the service fixture must be coroutines")
