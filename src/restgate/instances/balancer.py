"""Selection among a pool of equivalent instances."""

import itertools
import logging
import random
from typing import Literal

from restgate.instances.handle import InstanceHandle
from restgate.instances.registry import InstanceRegistry

logger = logging.getLogger(__name__)

POOL_PREFIX = "instance"


def pool_member(index: int) -> str:
    """Instance name of the pool member at ``index``."""
    return f"{POOL_PREFIX}-{index}"


class LoadBalancer:
    """Picks one member of a fixed-size pool from the registry."""

    def __init__(
        self,
        registry: InstanceRegistry,
        strategy: Literal["random", "round_robin"] = "random",
        rng: random.Random | None = None,
    ):
        """
        Initialize load balancer.

        Args:
            registry: Registry that owns the pool's handles
            strategy: "random" or "round_robin"
            rng: Random source for the random strategy
        """
        if strategy not in ("random", "round_robin"):
            raise ValueError(f"Unknown load balancing strategy: {strategy}")
        self.registry = registry
        self.strategy = strategy
        self._rng = rng or random.Random()
        self._counter = itertools.count()

    def choose(self, pool_size: int) -> int:
        """Index of the next pool member to use."""
        if pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        if self.strategy == "round_robin":
            return next(self._counter) % pool_size
        return self._rng.randrange(pool_size)

    def pick(self, pool_size: int) -> InstanceHandle:
        """
        Select a pool member and return its handle.

        Args:
            pool_size: Number of equivalent instances in the pool

        Returns:
            Handle of the selected instance (not yet probed)
        """
        name = pool_member(self.choose(pool_size))
        logger.debug(f"Load balancer selected {name} from pool of {pool_size}")
        return self.registry.acquire(name)
