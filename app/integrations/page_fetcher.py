from __future__ import annotations

import asyncio
import ipaddress
import socket
from typing import Awaitable, Callable, Dict, List, Optional
from urllib.parse import urljoin, urlparse

import httpx

from .base import (
    BaseIntegration,
    IntegrationConfig,
    IntegrationError,
    NetworkError,
    ValidationError,
)

Resolver = Callable[[str, int], Awaitable[List[str]]]


class PageFetcherConfig(IntegrationConfig):
    name: str = "page_fetcher"
    max_chars: int = 20000
    max_bytes: int = 80000
    max_redirects: int = 5


class BlockedURLError(ValidationError):
    """URL is not http(s) or points at a non-public address."""
    pass


async def resolve_host(host: str, port: int) -> List[str]:
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    return [info[4][0] for info in infos]


def is_public_address(address: str) -> bool:
    ip = ipaddress.ip_address(address.split("%", 1)[0])
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return ip.is_global and not ip.is_multicast


class PageFetcher(BaseIntegration[PageFetcherConfig]):
    """
    Fetches product pages as text for product extraction.

    Only public http(s) hosts are contacted. Redirects are followed by hand so
    each hop is checked before it is requested, and at most ``max_bytes`` of
    the body is read.
    """

    def __init__(
        self,
        config: PageFetcherConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        resolver: Optional[Resolver] = None
    ) -> None:
        super().__init__(config, transport)
        self._resolve = resolver or resolve_host

    def _get_default_headers(self) -> Dict[str, str]:
        return {
            "User-Agent": "Mozilla/5.0 (compatible; Feature-Request-Tracker)",
            "Accept": "text/html,application/xhtml+xml"
        }

    async def check_url(self, url: str) -> None:
        """Raise BlockedURLError unless every address of the host is public"""
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise BlockedURLError(f"Unsupported URL: {url}", self.config.name)

        try:
            port = parsed.port or (443 if parsed.scheme == "https" else 80)
        except ValueError as e:
            raise BlockedURLError(f"Invalid port in URL: {url}", self.config.name) from e

        host = parsed.hostname
        try:
            addresses = [str(ipaddress.ip_address(host))]
        except ValueError:
            try:
                addresses = await self._resolve(host, port)
            except (OSError, UnicodeError) as e:
                raise NetworkError(f"Could not resolve {host}: {e}", self.config.name) from e

        if not addresses or not all(is_public_address(a) for a in addresses):
            self._logger.warning(f"Refusing to fetch {url}: {host} is not a public address")
            raise BlockedURLError(f"Refusing to fetch non-public address {host}", self.config.name)

    async def fetch_html(self, url: str) -> str:
        for _ in range(self.config.max_redirects + 1):
            await self.check_url(url)

            async with self._stream_request("GET", url, follow_redirects=False) as response:
                if response.is_redirect:
                    url = urljoin(url, response.headers["location"])
                    continue

                body = await self._read_limited(response)
                return self._decode(body, response.charset_encoding)[:self.config.max_chars]

        raise NetworkError(f"Too many redirects fetching {url}", self.config.name)

    async def _read_limited(self, response: httpx.Response) -> bytes:
        chunks = []
        size = 0
        async for chunk in response.aiter_bytes():
            chunks.append(chunk)
            size += len(chunk)
            if size >= self.config.max_bytes:
                break
        return b"".join(chunks)[:self.config.max_bytes]

    @staticmethod
    def _decode(body: bytes, encoding: Optional[str]) -> str:
        try:
            return body.decode(encoding or "utf-8", errors="replace")
        except LookupError:
            return body.decode("utf-8", errors="replace")


def create_page_fetcher(
    settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    resolver: Optional[Resolver] = None
) -> PageFetcher:
    return PageFetcher(
        PageFetcherConfig(
            timeout=settings.product_fetch_timeout,
            max_chars=settings.product_html_max_chars,
            # UTF-8 needs at most four bytes per character
            max_bytes=settings.product_html_max_chars * 4
        ),
        transport=transport,
        resolver=resolver
    )


__all__ = [
    "PageFetcher",
    "PageFetcherConfig",
    "BlockedURLError",
    "create_page_fetcher",
    "is_public_address",
    "resolve_host",
    "IntegrationError",
]
