"""Backend instance acquisition: registry, readiness probing, forwarding, pooling."""

from restgate.instances.balancer import LoadBalancer, pool_member
from restgate.instances.errors import (
    ForwardTimeoutError,
    GatewayError,
    InputError,
    InstanceUnavailableError,
    ProbeAttempt,
    TransportError,
)
from restgate.instances.forwarder import RequestForwarder
from restgate.instances.gateway import InstanceGateway
from restgate.instances.handle import (
    InstanceBackend,
    InstanceHandle,
    InstancePlatform,
    InstanceState,
    ProxyRequest,
    ProxyResponse,
)
from restgate.instances.prober import Clock, ReadinessProber, SystemClock
from restgate.instances.registry import InstanceRegistry

__all__ = [
    "Clock",
    "ForwardTimeoutError",
    "GatewayError",
    "InputError",
    "InstanceBackend",
    "InstanceGateway",
    "InstanceHandle",
    "InstancePlatform",
    "InstanceRegistry",
    "InstanceState",
    "InstanceUnavailableError",
    "LoadBalancer",
    "ProbeAttempt",
    "ProxyRequest",
    "ProxyResponse",
    "ReadinessProber",
    "RequestForwarder",
    "SystemClock",
    "TransportError",
    "pool_member",
]
