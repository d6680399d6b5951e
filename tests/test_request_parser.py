import pytest

from relaynet.Core.RequestParser import (
    MAX_HEAD_SIZE,
    connection_established,
    extract_target,
    parse_request,
)
from relaynet.Core.errors import RequestParseError, TargetError
from relaynet.Core.header import ParsedRequest


def request(method, target):
    return ParsedRequest(method=method, target=target, version_major=1, version_minor=1)


def test_parses_connect_request():
    data = b"CONNECT example.com:443 HTTP/1.1\r\nHost: example.com:443\r\nUser-Agent: curl/8.0\r\n\r\n"
    parsed = parse_request(data)

    assert parsed.method == "CONNECT"
    assert parsed.target == "example.com:443"
    assert (parsed.version_major, parsed.version_minor) == (1, 1)
    assert parsed.headers == {"Host": "example.com:443", "User-Agent": "curl/8.0"}
    assert parsed.raw == data
    assert parsed.trailing == b""


def test_parses_request_without_headers():
    parsed = parse_request(b"CONNECT example.com:443 HTTP/1.0\r\n\r\n")
    assert parsed.headers == {}
    assert parsed.version == "HTTP/1.0"


def test_keeps_bytes_after_head():
    parsed = parse_request(b"CONNECT example.com:443 HTTP/1.1\r\n\r\n\x16\x03\x01")
    assert parsed.trailing == b"\x16\x03\x01"


@pytest.mark.parametrize("data", [
    b"",
    b"CONNECT exam",
    b"CONNECT example.com:443 HTTP/1.1\r\n",
    b"GET http://example.com/ HTTP/1.1\r\nHost: example.com\r\n",
])
def test_incomplete_head_needs_more_data(data):
    assert parse_request(data) is None


@pytest.mark.parametrize("data", [
    b"hello\r\n\r\n",
    b"CONNECT example.com:443\r\n\r\n",
    b"CONNECT example.com:443 HTTP/x.y\r\n\r\n",
    b"GET  / HTTP/1.1\r\n\r\n",
    b"GET / HTTP/1.1\r\nno colon here\r\n\r\n",
    b"GET / HTTP/1.1\r\n Host: folded\r\n\r\n",
])
def test_malformed_head_is_rejected(data):
    with pytest.raises(RequestParseError):
        parse_request(data)


def test_bad_request_line_fails_before_head_is_complete():
    with pytest.raises(RequestParseError):
        parse_request(b"\x16\x03\x01\x00\xa5\r\nmore")


def test_oversized_head_is_rejected():
    data = b"GET / HTTP/1.1\r\nX-Fill: " + b"a" * MAX_HEAD_SIZE
    with pytest.raises(RequestParseError):
        parse_request(data)


@pytest.mark.parametrize("target, expected", [
    ("example.com:443", ("example.com", 443)),
    ("10.0.0.1:8443", ("10.0.0.1", 8443)),
    ("[::1]:443", ("::1", 443)),
])
def test_connect_target(target, expected):
    assert extract_target(request("CONNECT", target)) == expected


@pytest.mark.parametrize("target", ["example.com", "example.com:", "example.com:https", ":443", "example.com:70000"])
def test_bad_connect_target(target):
    with pytest.raises(TargetError):
        extract_target(request("CONNECT", target))


@pytest.mark.parametrize("method, target, expected", [
    ("GET", "http://example.com/index.html", ("example.com", 80)),
    ("POST", "http://Example.com:8080/submit?x=1", ("example.com", 8080)),
    ("HEAD", "example.com:8080", ("example.com", 8080)),
])
def test_forward_target(method, target, expected):
    assert extract_target(request(method, target)) == expected


@pytest.mark.parametrize("target", ["/index.html", "https://example.com/", "http://example.com:99999/"])
def test_bad_forward_target(target):
    with pytest.raises(TargetError):
        extract_target(request("GET", target))


def test_connection_established_reply():
    parsed = ParsedRequest(method="CONNECT", target="example.com:443", version_major=1, version_minor=0)
    assert connection_established(parsed, "RelayNet/1.0.0") == (
        b"HTTP/1.0 200 Connection established\r\n"
        b"Proxy-agent: RelayNet/1.0.0\r\n"
        b"\r\n"
    )
