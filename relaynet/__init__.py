"""
RelayNet Proxy Server
License: MIT License
Description: RelayNet is a forward proxy that sniffs the first HTTP request of
             a client connection, connects to the requested target and then
             relays bytes in both directions until either side hangs up.
"""

from .Core.header import AGENT_NAME, AGENT_VERSION, ProxyContext, RelayState
from .RelayNetProxyServer import RelayNetProxyServer, run, serve

__version__ = AGENT_VERSION

__all__ = [
    "AGENT_NAME",
    "ProxyContext",
    "RelayNetProxyServer",
    "RelayState",
    "run",
    "serve",
    "__version__",
]
