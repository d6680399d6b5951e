from .ConnectionRegistry import ConnectionRegistry
from .Relay import Relay
from .Resolver import Resolver
from .header import ParsedRequest, ProxyContext, RelayState

__all__ = [
    "ConnectionRegistry",
    "ParsedRequest",
    "ProxyContext",
    "Relay",
    "RelayState",
    "Resolver",
]
