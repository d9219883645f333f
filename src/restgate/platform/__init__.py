"""Platform bindings that turn instance names into reachable backends."""

from restgate.config.schema import GatewayConfig
from restgate.instances.handle import InstancePlatform
from restgate.platform.containers import ContainerInstance, DockerPlatform
from restgate.platform.http import HttpTransport
from restgate.platform.static import StaticInstance, StaticPlatform


def create_platform(config: GatewayConfig) -> InstancePlatform:
    """Create the instance platform selected by ``config.platform.backend``.

    Args:
        config: Gateway configuration

    Returns:
        Platform binding for instance names

    Raises:
        ValueError: If the backend is not recognised
    """
    backend = config.platform.backend
    timeout = config.forward.timeout

    if backend == "static":
        return StaticPlatform(config.platform.static.base_url, timeout=timeout)
    if backend == "docker":
        return DockerPlatform(config.platform.docker, timeout=timeout)

    raise ValueError(f"Unknown platform backend: {backend}")


__all__ = [
    "ContainerInstance",
    "DockerPlatform",
    "HttpTransport",
    "StaticInstance",
    "StaticPlatform",
    "create_platform",
]
