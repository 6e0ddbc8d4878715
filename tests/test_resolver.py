"""Tests for tunnel target resolution."""

from unittest.mock import MagicMock

import pytest

from tunnelgate.config import TunnelConfig
from tunnelgate.exceptions import MalformedTargetError
from tunnelgate.models.enums import TunnelMode
from tunnelgate.models.request import ClientConnection, HeaderList, TunnelRequest
from tunnelgate.proxy.resolver import resolve_target


def make_request(target: str, headers=None) -> TunnelRequest:
    return TunnelRequest(
        method="CONNECT",
        target=target,
        protocol="HTTP/1.1",
        client=MagicMock(spec=ClientConnection),
        headers=HeaderList(headers or [("Host", target)]),
    )


def test_direct_target():
    request = make_request("example.com:443")

    target = resolve_target(request, TunnelConfig())

    assert target.host == "example.com"
    assert target.port == 443
    assert target.mode == TunnelMode.DIRECT
    assert list(request.headers) == [("Host", "example.com:443")]


def test_direct_target_accepts_signed_port():
    target = resolve_target(make_request("example.com:+443"), TunnelConfig())

    assert (target.host, target.port) == ("example.com", 443)


def test_direct_target_splits_on_first_colon():
    with pytest.raises(MalformedTargetError):
        resolve_target(make_request("example.com:443:1"), TunnelConfig())


@pytest.mark.parametrize("target", ["examplecom", "example.com:", "example.com:https", ":443", "example.com:-1"])
def test_malformed_direct_targets(target):
    with pytest.raises(MalformedTargetError) as exc_info:
        resolve_target(make_request(target), TunnelConfig())

    assert exc_info.value.target == target
    assert exc_info.value.status >= 500


def test_forwarding_adds_auth_header():
    request = make_request("example.com:443")
    config = TunnelConfig(proxy_host="proxy.local", proxy_port=8080, auth="Basic xyz")

    target = resolve_target(request, config)

    assert target.mode == TunnelMode.FORWARDING
    assert (target.host, target.port) == ("proxy.local", 8080)
    assert list(request.headers)[-1] == ("Proxy-Authorization", "Basic xyz")
    assert request.headers.get("Proxy-Authorization") == "Basic xyz"


def test_forwarding_without_auth_leaves_headers_alone():
    request = make_request("example.com:443")

    target = resolve_target(request, TunnelConfig(proxy_host="proxy.local"))

    assert target.port == 80
    assert list(request.headers) == [("Host", "example.com:443")]


def test_forwarding_ignores_malformed_target():
    request = make_request("not-a-host-port")

    target = resolve_target(request, TunnelConfig(proxy_host="proxy.local", proxy_port=3128))

    assert target.mode == TunnelMode.FORWARDING
    assert target.address == "proxy.local:3128"
