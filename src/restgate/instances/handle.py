"""Instance handle protocol and data types."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol

import httpx

JSON_HEADERS: dict[str, str] = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class InstanceState(StrEnum):
    """Liveness state of a backend instance."""

    UNKNOWN = "unknown"
    PROBING = "probing"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class ProxyRequest:
    """A request to forward to a backend instance."""

    method: str
    path: str  # Includes the query string, e.g. "/users?id=eq.42"
    body: Any = None  # JSON-serializable payload, None for no body
    headers: dict[str, str] = field(default_factory=lambda: dict(JSON_HEADERS))


@dataclass
class ProxyResponse:
    """A backend response, relayed verbatim to the caller.

    ``headers`` keeps repeated fields such as ``Set-Cookie`` as separate
    entries; plain dicts and pair lists are accepted and converted.
    """

    status_code: int
    headers: httpx.Headers
    body: bytes

    def __post_init__(self):
        self.headers = httpx.Headers(self.headers)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class InstanceBackend(Protocol):
    """Capability exposed by a single isolated backend process."""

    async def probe(self) -> None:
        """Issue a minimal liveness request to the instance root path.

        Raises:
            Exception: If the instance could not be reached
        """
        ...

    async def send(self, request: ProxyRequest) -> ProxyResponse:
        """Send a request to the instance's internal listener.

        Args:
            request: Request to forward

        Returns:
            The raw backend response
        """
        ...


class InstancePlatform(Protocol):
    """Hosting platform that binds instance names to backends."""

    def bind(self, name: str) -> InstanceBackend:
        """Return the backend for ``name``.

        Binding must not perform I/O; provisioning happens on first use.
        """
        ...

    async def close(self) -> None:
        """Release platform resources."""
        ...


@dataclass
class InstanceHandle:
    """Reference to one named backend instance."""

    name: str
    backend: InstanceBackend = field(repr=False)
    state: InstanceState = InstanceState.UNKNOWN
