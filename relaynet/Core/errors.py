"""
Exception hierarchy for the proxy.

    RelayNetError
    ├── ConfigError             (invalid settings, fatal at startup)
    ├── BindError               (listen socket could not be bound, fatal)
    ├── RequestParseError       (malformed request head)
    │   ├── UnsupportedMethodError
    │   └── TargetError         (no host/port in the request target)
    ├── ResolutionError         (host lookup returned nothing)
    └── UpstreamConnectError    (target refused or unreachable)

Only ConfigError and BindError ever leave the process entry point; everything
else is handled by the relay that hit it, which logs and closes the connection.
"""

from typing import Optional


class RelayNetError(Exception):
    """Base class for every error raised by the proxy."""

    def __init__(self, message: str = "", *, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        base = self.message or self.__class__.__name__
        if self.cause:
            return f"{base} ({self.cause})"
        return base


class ConfigError(RelayNetError):
    pass


class BindError(RelayNetError):
    pass


class RequestParseError(RelayNetError):
    pass


class UnsupportedMethodError(RequestParseError):
    pass


class TargetError(RequestParseError):
    pass


class ResolutionError(RelayNetError):
    pass


class UpstreamConnectError(RelayNetError):
    pass
