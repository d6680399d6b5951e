"""
RelayNet Proxy Server
License: MIT License
Description: Listener side of the proxy. Accepts client connections, hands each
             one to its own Relay and keeps track of the ones still open.
"""

import asyncio
import itertools
import logging
import signal
import socket
import time
from typing import Optional

from .Core.ConnectionRegistry import ConnectionRegistry
from .Core.Relay import Relay
from .Core.Resolver import Resolver
from .Core.errors import BindError
from .Core.header import ProxyContext
from .dashboard import run_dashboard

logger = logging.getLogger(__name__)


class RelayNetProxyServer:
    """
    Accepts client connections and gives each one a Relay.

    Attributes:
        context (ProxyContext): Listen address, port and relay settings
        resolver (Resolver): Shared hostname resolver handed to every relay
        registry (ConnectionRegistry): Relays that have not terminated yet
        total_connections (int): Connections accepted since start
        traffic_sent (int): Client-to-target bytes of finished relays
        traffic_received (int): Target-to-client bytes of finished relays
    """

    def __init__(
        self,
        context: ProxyContext,
        resolver: Optional[Resolver] = None,
        registry: Optional[ConnectionRegistry] = None,
    ):
        self.context = context
        self.resolver = resolver or Resolver()
        self.registry = registry if registry is not None else ConnectionRegistry()
        self.total_connections = 0
        self.traffic_sent = 0
        self.traffic_received = 0
        self.start_time: Optional[float] = None
        self._ids = itertools.count(1)
        self._server: Optional[asyncio.AbstractServer] = None

    @property
    def running(self) -> bool:
        return self._server is not None and self._server.is_serving()

    @property
    def port(self) -> int:
        """Port actually bound, useful when the context asked for port 0."""
        if self._server is None or not self._server.sockets:
            return self.context.port
        return self._server.sockets[0].getsockname()[1]

    @property
    def active_connections(self) -> int:
        return len(self.registry)

    async def start(self):
        """
        Bind the listen socket and start accepting.

        Raises:
            BindError: The address or port could not be bound
        """
        address = self.context.address
        try:
            self._server = await asyncio.start_server(
                self._handle_client,
                host=self.context.bind_host,
                port=self.context.port,
                reuse_address=True,
                limit=self.context.buffer_size,
            )
        except OSError as e:
            raise BindError(f"Failed to bind {address}:{self.context.port}", cause=e)

        self.start_time = time.time()
        logger.info(f"Start listening on {address}:{self.port}")

    async def serve_forever(self):
        if self._server is None:
            await self.start()
        await self._server.serve_forever()

    async def stop(self):
        """Stop accepting and terminate every open connection."""
        if self._server is None:
            return
        logger.info("Shutting down the server...")
        self._server.close()
        for relay in self.registry.snapshot():
            relay.terminate()
        await self._server.wait_closed()
        self._server = None

    def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        connection_id = next(self._ids)
        peer = writer.get_extra_info("peername")

        try:
            sock = writer.get_extra_info("socket")
            if sock is None:
                raise OSError("no socket attached to the transport")
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError as e:
            logger.warning(f"Failed to set up connection from {peer}: {e}")
            writer.close()
            return

        relay = Relay(
            connection_id,
            reader,
            writer,
            self.context,
            self.resolver,
            on_terminated=self._on_connection_terminated,
        )
        self.registry.insert(connection_id, relay)
        self.total_connections += 1
        logger.debug(f"[{connection_id}] Accepted connection from {peer}")
        relay.start()
        logger.info(f"Active Connections: {len(self.registry)}")

    def _on_connection_terminated(self, connection_id: int):
        relay = self.registry.remove(connection_id)
        if relay is not None:
            self.traffic_sent += relay.bytes_up
            self.traffic_received += relay.bytes_down
        logger.info(f"Active Connections: {len(self.registry)}")


async def serve(context: ProxyContext, dashboard: bool = False, resolver: Optional[Resolver] = None):
    """
    Run the proxy until SIGINT/SIGTERM.

    Args:
        context (ProxyContext): Listen configuration
        dashboard (bool): Show the live rich dashboard while serving
        resolver (Resolver): Resolver override, mainly for tests

    Raises:
        BindError: The listen socket could not be bound
    """
    server = RelayNetProxyServer(context, resolver=resolver)
    await server.start()

    loop = asyncio.get_running_loop()
    shutdown = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    tasks = [
        asyncio.ensure_future(server.serve_forever()),
        asyncio.ensure_future(shutdown.wait()),
    ]
    if dashboard:
        tasks.append(asyncio.ensure_future(run_dashboard(server)))

    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        # Relays go first, the server does not finish closing while any is open
        await server.stop()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


def run(context: ProxyContext, dashboard: bool = False) -> int:
    """
    Start the proxy with the given listen configuration and block until it stops.

    Returns:
        0 after a normal shutdown, 1 if the listen socket could not be bound
    """
    try:
        asyncio.run(serve(context, dashboard=dashboard))
    except BindError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Goodbye")
    return 0
