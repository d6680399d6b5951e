import asyncio
import logging
import time
from typing import Callable, List, Optional, Tuple

from .RequestParser import connection_established, extract_target, parse_request
from .Resolver import Resolver
from .errors import (
    RelayNetError,
    ResolutionError,
    UnsupportedMethodError,
    UpstreamConnectError,
)
from .header import SUPPORTED_METHODS, ParsedRequest, ProxyContext, RelayState

logger = logging.getLogger(__name__)


# =============================================================================
# Per-connection Relay
# =============================================================================

class Relay:
    """
    Drives one client connection from its first request to its last byte.

    The relay owns the client-facing (downstream) streams it was accepted
    with and the target-facing (upstream) streams it opens itself. It moves
    through AWAITING_REQUEST -> RESOLVING -> CONNECTING -> RELAYING and ends
    in TERMINATED, which it enters exactly once whatever triggered it.

    Attributes:
        connection_id (int): Identifier assigned by the listener
        state (RelayState): Where the connection currently is
        request (ParsedRequest): The client's first request, once parsed
        target (tuple): (host, port) the client asked for, once known
        bytes_up (int): Bytes sent from the client to the target
        bytes_down (int): Bytes sent from the target to the client
    """

    def __init__(
        self,
        connection_id: int,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        context: ProxyContext,
        resolver: Resolver,
        on_terminated: Optional[Callable[[int], None]] = None,
    ):
        self.connection_id = connection_id
        self.context = context
        self.state = RelayState.AWAITING_REQUEST
        self.request: Optional[ParsedRequest] = None
        self.target: Optional[Tuple[str, int]] = None
        self.bytes_up = 0
        self.bytes_down = 0
        self.started_at = time.time()
        self.peer = writer.get_extra_info("peername")

        self._resolver = resolver
        self._on_terminated = on_terminated
        self._down_reader = reader
        self._down_writer = writer
        self._up_reader: Optional[asyncio.StreamReader] = None
        self._up_writer: Optional[asyncio.StreamWriter] = None
        self._task: Optional[asyncio.Task] = None
        self._pumps: List[asyncio.Task] = []

    def __repr__(self) -> str:
        return f"<Relay {self.connection_id} {self.state.value} {self.target_label}>"

    @property
    def target_label(self) -> str:
        if self.target is None:
            return "-"
        return f"{self.target[0]}:{self.target[1]}"

    @property
    def age(self) -> float:
        return time.time() - self.started_at

    def start(self) -> asyncio.Task:
        """Schedule the relay on the running event loop."""
        self._task = asyncio.ensure_future(self.run())
        return self._task

    async def run(self):
        try:
            request = await self._read_request()
            if request is None:
                return
            self.request = request

            if request.method not in SUPPORTED_METHODS:
                raise UnsupportedMethodError(f"Unsupported method {request.method}")

            host, port = extract_target(request)
            self.target = (host, port)
            logger.info(f"[{self.connection_id}] {request.method} {self.target_label}")
            logger.debug(
                f"[{self.connection_id}] {request.version} "
                f"User-Agent: {request.headers.get('User-Agent', '-')}"
            )

            await self._reach(host, port)
            await self._open_session(request)
            await self._relay()
        except RelayNetError as e:
            logger.warning(f"[{self.connection_id}] {e}")
        except OSError as e:
            logger.warning(f"[{self.connection_id}] Socket error: {e}")
        finally:
            self.terminate()

    async def _read_request(self) -> Optional[ParsedRequest]:
        buffer = b""
        while True:
            chunk = await self._down_reader.read(self.context.buffer_size)
            if not chunk:
                if buffer:
                    logger.debug(f"[{self.connection_id}] Client left mid-request")
                return None
            buffer += chunk
            request = parse_request(buffer)
            if request is not None:
                return request

    async def _reach(self, host: str, port: int):
        timeout = self.context.connect_timeout
        try:
            await asyncio.wait_for(self._resolve_and_connect(host, port), timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamConnectError(f"Timed out reaching {host}:{port} after {timeout}s", cause=e)

    async def _resolve_and_connect(self, host: str, port: int):
        self.state = RelayState.RESOLVING
        addresses = await self._resolver.resolve(host)
        if not addresses:
            raise ResolutionError(f"HostLookup failed for {host}: no addresses")
        address = addresses[0]

        self.state = RelayState.CONNECTING
        try:
            self._up_reader, self._up_writer = await asyncio.open_connection(
                address, port, limit=self.context.buffer_size
            )
        except OSError as e:
            raise UpstreamConnectError(f"Failed to connect to {address}:{port}", cause=e)

    async def _open_session(self, request: ParsedRequest):
        if request.is_connect:
            self._down_writer.write(connection_established(request, self.context.agent))
            await self._down_writer.drain()
            payload = request.trailing
        else:
            payload = request.raw

        if payload:
            self._up_writer.write(payload)
            self.bytes_up += len(payload)
            await self._up_writer.drain()

        self.state = RelayState.RELAYING

    async def _relay(self):
        self._pumps = [
            asyncio.ensure_future(self._pump(self._down_reader, self._up_writer, upstream=True)),
            asyncio.ensure_future(self._pump(self._up_reader, self._down_writer, upstream=False)),
        ]
        done, _ = await asyncio.wait(self._pumps, return_when=asyncio.FIRST_COMPLETED)

        for task in done:
            if task.cancelled():
                continue
            error = task.exception()
            if error is not None:
                side = "DownStream" if task is self._pumps[0] else "UpStream"
                logger.warning(f"[{self.connection_id}] {side} error: {error}")

    async def _pump(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, upstream: bool):
        while True:
            data = await reader.read(self.context.buffer_size)
            if not data:
                break
            writer.write(data)
            if upstream:
                self.bytes_up += len(data)
            else:
                self.bytes_down += len(data)
            await writer.drain()

    def terminate(self):
        """
        Close both legs and report the connection as finished.

        Safe to call any number of times from anywhere on the loop; only the
        first call has an effect.
        """
        if self.state is RelayState.TERMINATED:
            return
        previous = self.state
        self.state = RelayState.TERMINATED

        # No more reads from either socket once we are on the way out
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        for task in (*self._pumps, self._task):
            if task is not None and task is not current and not task.done():
                task.cancel()

        for writer in (self._down_writer, self._up_writer):
            if writer is not None and not writer.is_closing():
                writer.close()

        logger.debug(
            f"[{self.connection_id}] Terminated while {previous.value} "
            f"(up {self.bytes_up} bytes, down {self.bytes_down} bytes)"
        )
        if self._on_terminated is not None:
            self._on_terminated(self.connection_id)
