import asyncio
import socket
from unittest.mock import patch

import pytest

from ghttpping.config import settings
from ghttpping.schemas.network import AddressFamily, AddressScope
from ghttpping.services.global_ip import lookup_global_ip, parse_echo_body

V4 = AddressFamily.IPV4
V6 = AddressFamily.IPV6


class TestParseEchoBody:
    def test_valid(self):
        info = parse_echo_body(b'{"client_host": "2001:db8::5", "datetime_jst": "2026-01-01 09:00:00"}', V6)
        assert info.client_host.ip == "2001:db8::5"
        assert info.client_host.scope is AddressScope.GLOBAL
        assert info.datetime_jst == "2026-01-01 09:00:00"

    @pytest.mark.parametrize("body", [
        None,
        b"",
        b"not json",
        b'{"datetime_jst": "x"}',
        b'{"client_host": "nope", "datetime_jst": "x"}',
    ])
    def test_rejects_unusable(self, body):
        with pytest.raises(ValueError):
            parse_echo_body(body, V4)

    def test_rejects_wrong_family(self):
        with pytest.raises(ValueError):
            parse_echo_body(b'{"client_host": "203.0.113.7", "datetime_jst": "x"}', V6)


class TestLookupGlobalIP:
    def test_success(self, http_server, monkeypatch):
        monkeypatch.setattr(settings, "ECHO_IPV4_URL", f"http://127.0.0.1:{http_server}/json")
        result = asyncio.run(lookup_global_ip(V4))
        assert result.error is None
        assert result.info.client_host.ip == "203.0.113.7"
        assert result.info.client_host.family is V4

    def test_non_2xx(self, http_server, monkeypatch):
        monkeypatch.setattr(settings, "ECHO_IPV4_URL", f"http://127.0.0.1:{http_server}/missing")
        result = asyncio.run(lookup_global_ip(V4))
        assert result.info is None
        assert result.error == "HttpExchangeFailed"

    def test_no_route_for_family(self, http_server, monkeypatch):
        monkeypatch.setattr(settings, "ECHO_IPV6_URL", f"http://127.0.0.1:{http_server}/json")
        result = asyncio.run(lookup_global_ip(V6))
        assert result.info is None
        assert result.error == "NoAddressForFamily"

    def test_refused(self, closed_port, monkeypatch):
        monkeypatch.setattr(settings, "ECHO_IPV4_URL", f"http://127.0.0.1:{closed_port}/json")
        result = asyncio.run(lookup_global_ip(V4))
        assert result.error == "ConnectionRefused"

    def test_unresolvable_echo_host(self, monkeypatch):
        def no_dns(*args, **kwargs):
            raise socket.gaierror(socket.EAI_AGAIN, "Temporary failure in name resolution")

        monkeypatch.setattr(settings, "ECHO_IPV4_URL", "http://echo.test/json")
        with patch("ghttpping.services.dns_resolver.socket.getaddrinfo", no_dns):
            result = asyncio.run(lookup_global_ip(V4))
        assert result.info is None
        assert result.error == "DnsLookupFailed"

    @pytest.mark.ipv6
    def test_echo_of_other_family_is_rejected(self, http_server_v6, monkeypatch):
        monkeypatch.setattr(settings, "ECHO_IPV6_URL", f"http://[::1]:{http_server_v6}/json")
        result = asyncio.run(lookup_global_ip(V6))
        assert result.info is None
        assert result.error == "HttpExchangeFailed"


@pytest.mark.network
def test_live_ipv4_echo():
    result = asyncio.run(lookup_global_ip(V4))
    assert result.info is not None or result.error
