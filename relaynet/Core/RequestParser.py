import re
from typing import Optional, Tuple
from urllib.parse import urlsplit

from .errors import RequestParseError, TargetError
from .header import ParsedRequest

# =============================================================================
# Request Head Parsing
# =============================================================================

HEAD_END = b"\r\n\r\n"
LINE_END = b"\r\n"
MAX_HEAD_SIZE = 65536

REQUEST_LINE = re.compile(r"^([!#$%&'*+\-.^_`|~0-9A-Za-z]+) (\S+) HTTP/(\d+)\.(\d+)$")
TARGET_PATTERN = re.compile(r"^(.*):(\d+)$")


def parse_request(data: bytes) -> Optional[ParsedRequest]:
    """
    Parse the head of an HTTP request from everything received so far.

    The request line is validated as soon as it is complete, so garbage is
    rejected without waiting for the rest of the head.

    Args:
        data (bytes): Bytes received from the client, starting at the request line

    Returns:
        ParsedRequest once the blank line ending the head has arrived,
        None while more data is needed

    Raises:
        RequestParseError: Malformed request line or header, or a head larger
            than MAX_HEAD_SIZE
    """
    line_end = data.find(LINE_END)
    if line_end == -1:
        _check_size(data)
        return None

    method, target, major, minor = _parse_request_line(data[:line_end])

    head_end = data.find(HEAD_END, line_end)
    if head_end == -1:
        _check_size(data)
        return None

    headers = {}
    header_block = data[line_end + len(LINE_END):head_end] if head_end > line_end else b""
    for line in header_block.decode("latin-1").split("\r\n") if header_block else ():
        name, sep, value = line.partition(":")
        if not sep or not name or name != name.strip():
            raise RequestParseError(f"Malformed header line: {line!r}")
        headers[name] = value.strip()

    return ParsedRequest(
        method=method,
        target=target,
        version_major=major,
        version_minor=minor,
        headers=headers,
        raw=bytes(data),
        trailing=bytes(data[head_end + len(HEAD_END):]),
    )


def _parse_request_line(line: bytes) -> Tuple[str, str, int, int]:
    text = line.decode("latin-1")
    match = REQUEST_LINE.match(text)
    if not match:
        raise RequestParseError(f"Malformed request line: {text[:200]!r}")
    method, target, major, minor = match.groups()
    return method, target, int(major), int(minor)


def _check_size(data: bytes):
    if len(data) > MAX_HEAD_SIZE:
        raise RequestParseError(f"Request head exceeds {MAX_HEAD_SIZE} bytes")


def extract_target(request: ParsedRequest) -> Tuple[str, int]:
    """
    Work out which host and port the client wants to reach.

    CONNECT targets are in ``host:port`` form. Other methods may use an
    absolute ``http://`` URL, whose port defaults to 80; failing that the
    ``host:port`` pattern is tried on them as well.

    Returns:
        (host, port) tuple

    Raises:
        TargetError: The target names no usable host and port
    """
    target = request.target

    if not request.is_connect:
        url = urlsplit(target)
        if url.scheme and url.netloc:
            if url.scheme.lower() != "http":
                raise TargetError(f"Unsupported scheme in request target {target!r}")
            try:
                port = url.port or 80
            except ValueError as e:
                raise TargetError(f"Invalid port in request target {target!r}", cause=e)
            if not url.hostname:
                raise TargetError(f"No host in request target {target!r}")
            return url.hostname, port

    match = TARGET_PATTERN.match(target)
    if not match:
        raise TargetError(f"Invalid URI found: {target!r}")

    host = match.group(1)
    port = int(match.group(2))
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    if not host:
        raise TargetError(f"No host in request target {target!r}")
    if not 1 <= port <= 65535:
        raise TargetError(f"Port out of range in request target {target!r}")
    return host, port


def connection_established(request: ParsedRequest, agent: str) -> bytes:
    """Build the reply sent to a CONNECT client once the tunnel is up."""
    response = (
        f"HTTP/{request.version_major}.{request.version_minor} 200 Connection established\r\n"
        f"Proxy-agent: {agent}\r\n"
        "\r\n"
    )
    return response.encode("latin-1")
