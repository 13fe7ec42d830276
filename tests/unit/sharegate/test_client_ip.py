"""Tests for client IP and geo-country resolution."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from sharegate.app.sharing.client_ip import (
    IpapiGeoLocator,
    is_private_ip,
    normalize_country_code,
    read_country_from_headers,
    resolve_client_ip,
    resolve_geo_country,
)


def _locator(handler, timeout_seconds: float = 0.7) -> IpapiGeoLocator:
    return IpapiGeoLocator(
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        url_template='https://geo.test/{ip}/country/',
        timeout_seconds=timeout_seconds,
    )


class TestResolveClientIp:
    def test_first_forwarded_hop_wins(self):
        headers = {'x-forwarded-for': ' 203.0.113.7 , 10.0.0.1', 'x-real-ip': '10.0.0.9'}
        assert resolve_client_ip(headers) == '203.0.113.7'

    def test_falls_back_to_real_ip(self):
        assert resolve_client_ip({'x-real-ip': '198.51.100.3'}) == '198.51.100.3'

    def test_unknown_without_proxy_headers(self):
        assert resolve_client_ip({}) == 'unknown'
        assert resolve_client_ip({'x-forwarded-for': ' , '}) == 'unknown'


class TestCountryHeaders:
    @pytest.mark.parametrize('value,expected', [
        ('de', 'DE'),
        (' us ', 'US'),
        ('XX', None),
        ('T1', None),
        ('unknown', None),
        ('USA', None),
        ('', None),
        (None, None),
    ])
    def test_normalize(self, value, expected):
        assert normalize_country_code(value) == expected

    def test_header_precedence(self):
        headers = {'cf-ipcountry': 'XX', 'x-country-code': 'fr', 'x-geo-country': 'DE'}
        assert read_country_from_headers(headers) == 'FR'


@pytest.mark.parametrize('ip,private', [
    ('10.1.2.3', True),
    ('127.0.0.1', True),
    ('::1', True),
    ('unknown', True),
    ('not-an-ip', True),
    ('8.8.8.8', False),
])
def test_is_private_ip(ip, private):
    assert is_private_ip(ip) is private


class TestIpapiGeoLocator:
    @pytest.mark.asyncio
    async def test_successful_lookup(self):
        seen = {}

        async def handler(request: httpx.Request) -> httpx.Response:
            seen['url'] = str(request.url)
            return httpx.Response(200, text='se\n')

        assert await _locator(handler).lookup('8.8.8.8') == 'SE'
        assert seen['url'] == 'https://geo.test/8.8.8.8/country/'

    @pytest.mark.asyncio
    async def test_non_200_is_unknown(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, text='slow down')

        assert await _locator(handler).lookup('8.8.8.8') is None

    @pytest.mark.asyncio
    async def test_transport_error_is_unknown(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError('refused', request=request)

        assert await _locator(handler).lookup('8.8.8.8') is None

    @pytest.mark.asyncio
    async def test_slow_lookup_times_out(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1)
            return httpx.Response(200, text='SE')

        assert await _locator(handler, timeout_seconds=0.05).lookup('8.8.8.8') is None


class TestResolveGeoCountry:
    @pytest.mark.asyncio
    async def test_header_skips_lookup(self):
        class Exploding:
            async def lookup(self, ip):
                raise AssertionError('lookup not expected')

        code = await resolve_geo_country({'cf-ipcountry': 'nl'}, '8.8.8.8', Exploding())
        assert code == 'NL'

    @pytest.mark.asyncio
    async def test_private_ip_skips_lookup(self):
        calls = []

        class Recording:
            async def lookup(self, ip):
                calls.append(ip)
                return 'SE'

        assert await resolve_geo_country({}, '10.0.0.5', Recording()) is None
        assert calls == []

    @pytest.mark.asyncio
    async def test_public_ip_uses_locator(self):
        class Fixed:
            async def lookup(self, ip):
                return 'JP'

        assert await resolve_geo_country({}, '8.8.8.8', Fixed()) == 'JP'

    @pytest.mark.asyncio
    async def test_no_locator_means_unknown(self):
        assert await resolve_geo_country({}, '8.8.8.8') is None
