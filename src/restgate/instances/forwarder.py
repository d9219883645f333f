"""Request forwarding to ready backend instances."""

import asyncio
import logging
from typing import Any

import httpx

from restgate.instances.errors import ForwardTimeoutError, TransportError
from restgate.instances.handle import InstanceHandle, ProxyRequest, ProxyResponse

logger = logging.getLogger(__name__)


class RequestForwarder:
    """Sends one request to an instance and returns the raw response."""

    def __init__(self, timeout: float = 300.0):
        """
        Initialize forwarder.

        Args:
            timeout: Seconds allowed for the downstream call
        """
        self.timeout = timeout

    async def forward(
        self,
        handle: InstanceHandle,
        path: str,
        method: str = "GET",
        body: Any = None,
    ) -> ProxyResponse:
        """
        Forward a request to an instance.

        Args:
            handle: Ready instance
            path: Downstream path including query string
            method: HTTP method
            body: Optional JSON payload

        Returns:
            Backend response, unmodified

        Raises:
            ForwardTimeoutError: If the call exceeded the timeout
            TransportError: On any other network failure
        """
        request = ProxyRequest(method=method.upper(), path=path, body=body)
        logger.debug(f"Forwarding {request.method} {path} to instance {handle.name}")

        try:
            async with asyncio.timeout(self.timeout):
                response = await handle.backend.send(request)
        except (TimeoutError, httpx.TimeoutException) as e:
            logger.error(f"Request {request.method} {path} to instance {handle.name} timed out")
            raise ForwardTimeoutError(handle.name, self.timeout) from e
        except Exception as e:
            logger.error(f"Request {request.method} {path} to instance {handle.name} failed: {e}")
            raise TransportError(handle.name, e) from e

        logger.info(f"{request.method} {path} via {handle.name} -> {response.status_code}")
        return response
