"""Tests for request models."""

from tunnelgate.models.enums import RelayState
from tunnelgate.models.request import HeaderList


def test_header_list_keeps_order_and_duplicates():
    headers = HeaderList([("Host", "example.com:443"), ("Via", "a")])
    headers.add("Via", "b")

    assert list(headers) == [("Host", "example.com:443"), ("Via", "a"), ("Via", "b")]
    assert len(headers) == 3
    assert headers.get_all("via") == ["a", "b"]


def test_header_list_lookup_is_case_insensitive():
    headers = HeaderList([("Proxy-Authorization", "Basic xyz")])

    assert headers.get("proxy-authorization") == "Basic xyz"
    assert "PROXY-AUTHORIZATION" in headers
    assert headers.get("Host") is None
    assert headers.get("Host", "none") == "none"


def test_header_list_serialization():
    headers = HeaderList([("Host", "example.com:443"), ("User-Agent", "curl/8.0")])

    assert headers.to_bytes() == b"Host: example.com:443\r\nUser-Agent: curl/8.0\r\n"
    assert HeaderList().to_bytes() == b""


def test_relay_state_terminal_flags():
    assert not RelayState.RUNNING.is_terminal
    assert RelayState.CLOSED_NORMAL.is_terminal
    assert RelayState.CLOSED_ERROR.is_terminal
