"""Platform binding every instance name to one shared upstream."""

import logging

import httpx

from restgate.instances.handle import ProxyRequest, ProxyResponse
from restgate.platform.http import HttpTransport, create_http_client

logger = logging.getLogger(__name__)


class StaticInstance:
    """Instance served by a fixed upstream URL."""

    def __init__(self, name: str, base_url: str, transport: HttpTransport):
        self.name = name
        self.base_url = base_url
        self._transport = transport

    async def probe(self) -> None:
        await self._transport.probe(self.base_url)

    async def send(self, request: ProxyRequest) -> ProxyResponse:
        return await self._transport.send(self.base_url, request)


class StaticPlatform:
    """
    Binds all instance names to a single PostgREST upstream.

    Names stay distinct in the registry, so probing and state tracking work
    exactly as with isolated instances.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 300.0,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize static platform.

        Args:
            base_url: Upstream base URL
            timeout: HTTP read timeout in seconds
            client: Optional pre-configured HTTP client
        """
        self.base_url = base_url.rstrip("/")
        self._transport = HttpTransport(client or create_http_client(timeout))

    def bind(self, name: str) -> StaticInstance:
        logger.debug(f"Binding instance '{name}' to {self.base_url}")
        return StaticInstance(name, self.base_url, self._transport)

    async def close(self) -> None:
        await self._transport.close()
