from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

# =============================================================================
# Core Types & Configuration
# =============================================================================

AGENT_NAME = "RelayNet"
AGENT_VERSION = "1.0.0"

DEFAULT_ADDRESS = "0.0.0.0"
DEFAULT_PORT = 8888
BUFFER_SIZE = 65536

WILDCARD_ADDRESSES = frozenset({"", "*", "any", "0.0.0.0"})

SUPPORTED_METHODS = ("CONNECT", "GET", "PUT", "POST", "HEAD", "DELETE")


class RelayState(Enum):
    AWAITING_REQUEST = "awaiting-request"
    RESOLVING = "resolving"
    CONNECTING = "connecting"
    RELAYING = "relaying"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class ProxyContext:
    """
    Everything a listener and its relays need to know, built once at startup.

    Attributes:
        address (str): Bind address, a wildcard value binds every interface
        port (int): Bind port, 0 picks a free one
        agent_name (str): Name reported in the ``Proxy-agent`` header
        agent_version (str): Version reported in the ``Proxy-agent`` header
        connect_timeout (float): Seconds allowed for resolve plus connect, None for no limit
        buffer_size (int): Maximum amount of data read from a socket in one go
    """
    address: str = DEFAULT_ADDRESS
    port: int = DEFAULT_PORT
    agent_name: str = AGENT_NAME
    agent_version: str = AGENT_VERSION
    connect_timeout: Optional[float] = None
    buffer_size: int = BUFFER_SIZE

    @property
    def bind_host(self) -> Optional[str]:
        """Host argument for the listen socket, None meaning all interfaces."""
        if self.address.strip().lower() in WILDCARD_ADDRESSES:
            return None
        return self.address

    @property
    def agent(self) -> str:
        return f"{self.agent_name}/{self.agent_version}"


@dataclass
class ParsedRequest:
    method: str
    target: str
    version_major: int
    version_minor: int
    # Logged for diagnostics only, never rewritten
    headers: Dict[str, str] = field(default_factory=dict)
    raw: bytes = b""
    trailing: bytes = b""

    @property
    def version(self) -> str:
        return f"HTTP/{self.version_major}.{self.version_minor}"

    @property
    def is_connect(self) -> bool:
        return self.method == "CONNECT"
