"""Acquire-probe-forward pipeline shared by all routes."""

import logging
from typing import Any

from restgate.config.schema import GatewayConfig
from restgate.instances.balancer import LoadBalancer
from restgate.instances.forwarder import RequestForwarder
from restgate.instances.handle import InstanceHandle, InstancePlatform, ProxyResponse
from restgate.instances.prober import Clock, ReadinessProber
from restgate.instances.registry import InstanceRegistry

logger = logging.getLogger(__name__)


class InstanceGateway:
    """
    Routes requests to named backend instances.

    Responsibilities:
    - Instance lookup through the registry
    - Readiness probing before any traffic is sent
    - Forwarding with its own timeout
    - Pool selection for the load-balanced path
    """

    def __init__(
        self,
        registry: InstanceRegistry,
        prober: ReadinessProber,
        forwarder: RequestForwarder,
        balancer: LoadBalancer,
        pool_size: int = 3,
    ):
        self.registry = registry
        self.prober = prober
        self.forwarder = forwarder
        self.balancer = balancer
        self.pool_size = pool_size

    @classmethod
    def from_config(
        cls,
        config: GatewayConfig,
        platform: InstancePlatform,
        clock: Clock | None = None,
    ) -> "InstanceGateway":
        """
        Build a gateway from configuration.

        Args:
            config: Gateway configuration
            platform: Platform binding for instance names
            clock: Optional time source for the prober

        Returns:
            Configured gateway
        """
        registry = InstanceRegistry(platform)
        return cls(
            registry=registry,
            prober=ReadinessProber(
                attempts=config.probe.attempts,
                deadline=config.probe.deadline,
                backoff=config.probe.backoff,
                clock=clock,
            ),
            forwarder=RequestForwarder(timeout=config.forward.timeout),
            balancer=LoadBalancer(registry, strategy=config.pool.strategy),
            pool_size=config.pool.size,
        )

    async def acquire_ready(self, name: str) -> InstanceHandle:
        """Look up an instance and wait until it is ready."""
        handle = self.registry.acquire(name)
        return await self.prober.ready(handle)

    async def proxy(
        self,
        name: str,
        path: str,
        method: str = "GET",
        body: Any = None,
    ) -> ProxyResponse:
        """
        Forward a request to the named instance.

        Args:
            name: Instance name
            path: Downstream path including query string
            method: HTTP method
            body: Optional JSON payload

        Returns:
            Backend response
        """
        try:
            handle = await self.acquire_ready(name)
            return await self.forwarder.forward(handle, path, method, body)
        except Exception as e:
            logger.error(f"Instance operation failed for {name}: {e}")
            raise

    async def proxy_pooled(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
    ) -> ProxyResponse:
        """Forward a request to one member of the load-balanced pool."""
        handle = self.balancer.pick(self.pool_size)
        return await self.proxy(handle.name, path, method, body)

    async def close(self) -> None:
        """Release platform resources."""
        await self.registry.platform.close()
