"""Registry of named backend instances."""

import logging

from restgate.instances.handle import InstanceHandle, InstancePlatform, InstanceState

logger = logging.getLogger(__name__)


class InstanceRegistry:
    """
    Maps instance names to handles.

    The first lookup of a name binds a backend through the platform; later
    lookups return the same handle. Binding performs no I/O, so creation
    cannot interleave with other tasks on the event loop.
    """

    def __init__(self, platform: InstancePlatform):
        """
        Initialize registry.

        Args:
            platform: Platform used to bind names to backends
        """
        self.platform = platform
        self._handles: dict[str, InstanceHandle] = {}

    def acquire(self, name: str) -> InstanceHandle:
        """
        Get the handle for a name, creating it on first reference.

        Args:
            name: Instance name

        Returns:
            Handle for the instance

        Raises:
            ValueError: If name is empty
        """
        if not name:
            raise ValueError("Instance name must not be empty")

        handle = self._handles.get(name)
        if handle is None:
            handle = InstanceHandle(name=name, backend=self.platform.bind(name))
            self._handles[name] = handle
            logger.info(f"Registered instance '{name}'")
        return handle

    def get(self, name: str) -> InstanceHandle | None:
        """Get an existing handle without creating one."""
        return self._handles.get(name)

    def names(self) -> list[str]:
        """Names of all registered instances."""
        return list(self._handles)

    def snapshot(self) -> dict[str, InstanceState]:
        """Current liveness state per instance name."""
        return {name: handle.state for name, handle in self._handles.items()}

    def __contains__(self, name: object) -> bool:
        return name in self._handles

    def __len__(self) -> int:
        return len(self._handles)
