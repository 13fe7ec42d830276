"""Client IP and geo-country resolution for audit entries.

The IP comes from proxy headers only; the service always runs behind an edge
proxy, so the socket peer address is never meaningful. Country resolution is
best effort: edge-provided headers first, then an external lookup bounded by
a hard timeout. Nothing here ever raises into the request path.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
from typing import Mapping

import httpx

logger = logging.getLogger(__name__)

UNKNOWN_IP = 'unknown'
DEFAULT_GEO_LOOKUP_URL = 'https://ipapi.co/{ip}/country/'
DEFAULT_GEO_LOOKUP_TIMEOUT_SECONDS = 0.7

COUNTRY_HEADERS = ('cf-ipcountry', 'x-country-code', 'x-geo-country')
_UNKNOWN_COUNTRIES = frozenset({'XX', 'UNKNOWN', 'T1'})


def resolve_client_ip(headers: Mapping[str, str]) -> str:
    """First hop of X-Forwarded-For, then X-Real-IP, else ``unknown``."""
    forwarded = headers.get('x-forwarded-for') or ''
    first_hop = forwarded.split(',')[0].strip()
    if first_hop:
        return first_hop
    real_ip = (headers.get('x-real-ip') or '').strip()
    return real_ip or UNKNOWN_IP


def normalize_country_code(value: str | None) -> str | None:
    if not value:
        return None
    code = value.strip().upper()
    if len(code) != 2 or not code.isalpha() or code in _UNKNOWN_COUNTRIES:
        return None
    return code


def read_country_from_headers(headers: Mapping[str, str]) -> str | None:
    for name in COUNTRY_HEADERS:
        code = normalize_country_code(headers.get(name))
        if code:
            return code
    return None


def is_private_ip(ip: str) -> bool:
    """True for addresses an external geo service cannot place."""
    if not ip or ip == UNKNOWN_IP:
        return True
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return True
    return (
        addr.is_private
        or addr.is_loopback
        or addr.is_link_local
        or addr.is_reserved
        or addr.is_unspecified
    )


class IpapiGeoLocator:
    """GeoLocator backed by a plain-text country endpoint (ipapi.co).

    Args:
        http_client: Shared client; one is created lazily when omitted.
        url_template: Endpoint with an ``{ip}`` placeholder.
        timeout_seconds: Hard deadline for the whole lookup.
    """

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient | None = None,
        url_template: str = DEFAULT_GEO_LOOKUP_URL,
        timeout_seconds: float = DEFAULT_GEO_LOOKUP_TIMEOUT_SECONDS,
    ) -> None:
        self._client = http_client
        self._url_template = url_template
        self._timeout = httpx.Timeout(timeout_seconds)
        self._deadline = timeout_seconds

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def lookup(self, ip: str) -> str | None:
        url = self._url_template.format(ip=ip)
        try:
            resp = await asyncio.wait_for(
                self._get_client().get(url, timeout=self._timeout),
                timeout=self._deadline,
            )
        except (httpx.HTTPError, asyncio.TimeoutError) as exc:
            logger.debug('Geo lookup failed for %s: %r', ip, exc)
            return None
        if resp.status_code != 200:
            logger.debug('Geo lookup for %s returned HTTP %s', ip, resp.status_code)
            return None
        return normalize_country_code(resp.text)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()


async def resolve_geo_country(
    headers: Mapping[str, str],
    client_ip: str,
    geo_locator=None,
) -> str | None:
    """Country from edge headers, else an external lookup for public IPs."""
    code = read_country_from_headers(headers)
    if code or geo_locator is None or is_private_ip(client_ip):
        return code
    return await geo_locator.lookup(client_ip)
