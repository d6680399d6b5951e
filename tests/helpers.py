"""
tests/helpers.py - Fakes and small async utilities shared by the test-suite.
"""

import asyncio
import socket
from typing import Dict, List, Optional

from relaynet.Core.errors import ResolutionError


class FakeResolver:
    """Resolver stand-in answering from a fixed table and recording lookups."""

    def __init__(self, table: Optional[Dict[str, List[str]]] = None):
        self.table = table or {}
        self.lookups: List[str] = []

    async def resolve(self, hostname):
        self.lookups.append(hostname)
        if hostname not in self.table:
            raise ResolutionError(f"HostLookup failed for {hostname}")
        return list(self.table[hostname])


class EchoServer:
    """Upstream target that sends back whatever it receives."""

    def __init__(self):
        self.connections = 0
        self._server = None

    @property
    def port(self) -> int:
        return self._server.sockets[0].getsockname()[1]

    async def start(self):
        self._server = await asyncio.start_server(self._handle, host="127.0.0.1", port=0)
        return self

    async def stop(self):
        self._server.close()
        await self._server.wait_closed()

    async def _handle(self, reader, writer):
        self.connections += 1
        try:
            while True:
                data = await reader.read(65536)
                if not data:
                    break
                writer.write(data)
                await writer.drain()
        except ConnectionError:
            pass
        finally:
            writer.close()


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.01):
    """Poll predicate until it is true, failing the test after timeout seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(interval)


async def read_until_eof(reader: asyncio.StreamReader, timeout: float = 2.0) -> bytes:
    return await asyncio.wait_for(reader.read(), timeout)


def unused_port() -> int:
    """A port nothing is listening on (as long as nobody grabs it meanwhile)."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]
