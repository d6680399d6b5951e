"""
tests/conftest.py - test harness bootstrap.
Provides an upstream echo target, a fake resolver and a running proxy bound
to an ephemeral port on 127.0.0.1.
"""

import pytest
import pytest_asyncio

from relaynet.Core.header import ProxyContext
from relaynet.RelayNetProxyServer import RelayNetProxyServer
from tests.helpers import EchoServer, FakeResolver


@pytest.fixture
def context() -> ProxyContext:
    return ProxyContext(address="127.0.0.1", port=0)


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver({
        "example.com": ["127.0.0.1", "127.0.0.2"],
        "empty.test": [],
    })


@pytest_asyncio.fixture
async def echo_server():
    server = await EchoServer().start()
    yield server
    await server.stop()


@pytest_asyncio.fixture
async def proxy(context, resolver):
    server = RelayNetProxyServer(context, resolver=resolver)
    await server.start()
    yield server
    await server.stop()
