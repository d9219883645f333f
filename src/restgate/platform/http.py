"""HTTP transport shared by platform bindings."""

import json

import httpx

from restgate.instances.handle import ProxyRequest, ProxyResponse


class HttpTransport:
    """Talks to an instance's internal listener over HTTP."""

    def __init__(self, client: httpx.AsyncClient):
        """
        Initialize transport.

        Args:
            client: Shared async HTTP client
        """
        self._client = client

    async def probe(self, base_url: str, path: str = "/") -> None:
        """GET ``path`` (the root by default); any HTTP response counts as reachable."""
        response = await self._client.get(
            f"{base_url}{path}",
            headers={"Accept": "application/json"},
        )
        await response.aread()

    async def send(self, base_url: str, request: ProxyRequest) -> ProxyResponse:
        """
        Send a request and collect the raw response.

        The body is read without content decoding so it can be relayed
        together with the backend's own headers.
        """
        content = None
        if request.body is not None:
            content = json.dumps(request.body).encode("utf-8")

        outgoing = self._client.build_request(
            request.method,
            f"{base_url}{request.path}",
            content=content,
            headers=request.headers,
        )
        response = await self._client.send(outgoing, stream=True)
        try:
            body = b"".join([chunk async for chunk in response.aiter_raw()])
        finally:
            await response.aclose()

        return ProxyResponse(
            status_code=response.status_code,
            headers=httpx.Headers(response.headers),
            body=body,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


def create_http_client(timeout: float) -> httpx.AsyncClient:
    """HTTP client whose read timeout matches the forwarding deadline."""
    return httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0))
