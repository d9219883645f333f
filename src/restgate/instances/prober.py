"""Readiness probing with bounded retries and a single deadline."""

import asyncio
import logging
import time
from typing import Protocol

from restgate.instances.errors import InstanceUnavailableError, ProbeAttempt
from restgate.instances.handle import InstanceHandle, InstanceState

logger = logging.getLogger(__name__)

DEADLINE_MESSAGE = "Container operation timed out"


class Clock(Protocol):
    """Time source used by the prober."""

    def monotonic(self) -> float: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Event loop backed clock."""

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class ReadinessProber:
    """
    Waits for a backend instance to begin serving.

    Runs up to ``attempts`` probes in sequence. One deadline clock bounds the
    whole sequence: a probe still pending when it passes is abandoned and the
    sequence fails without further attempts. Failed probes, except the last,
    are followed by a fixed ``backoff`` pause.
    """

    def __init__(
        self,
        attempts: int = 3,
        deadline: float = 240.0,
        backoff: float = 5.0,
        clock: Clock | None = None,
    ):
        """
        Initialize prober.

        Args:
            attempts: Maximum number of probes
            deadline: Seconds allowed for the whole probe sequence
            backoff: Seconds to wait between failed probes
            clock: Time source (defaults to the event loop clock)
        """
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.attempts = attempts
        self.deadline = deadline
        self.backoff = backoff
        self.clock = clock or SystemClock()

    async def ready(self, handle: InstanceHandle) -> InstanceHandle:
        """
        Probe an instance until it answers.

        Args:
            handle: Instance to probe

        Returns:
            The same handle, marked ready

        Raises:
            InstanceUnavailableError: If every attempt failed or the deadline passed
        """
        name = handle.name
        handle.state = InstanceState.PROBING
        deadline_at = self.clock.monotonic() + self.deadline
        history: list[ProbeAttempt] = []
        last_error: Exception | None = None

        for number in range(1, self.attempts + 1):
            remaining = deadline_at - self.clock.monotonic()
            if remaining <= 0:
                self._fail(handle, DEADLINE_MESSAGE)
                raise InstanceUnavailableError(
                    name, DEADLINE_MESSAGE, history, last_error, timed_out=True
                ) from last_error

            logger.info(f"Attempting to connect to instance {name} (attempt {number}/{self.attempts})")
            try:
                async with asyncio.timeout(remaining) as scope:
                    await handle.backend.probe()
            except TimeoutError as e:
                if scope.expired():
                    history.append(ProbeAttempt(number, False, DEADLINE_MESSAGE))
                    logger.warning(f"Attempt {number} abandoned for instance {name}: deadline of {self.deadline}s elapsed")
                    self._fail(handle, DEADLINE_MESSAGE)
                    raise InstanceUnavailableError(
                        name, DEADLINE_MESSAGE, history, e, timed_out=True
                    ) from e
                last_error = e
            except Exception as e:
                last_error = e
            else:
                history.append(ProbeAttempt(number, True))
                handle.state = InstanceState.READY
                logger.info(f"Successfully connected to instance {name}")
                return handle

            history.append(ProbeAttempt(number, False, str(last_error)))
            logger.warning(f"Attempt {number} failed for instance {name}: {last_error}")

            if number < self.attempts:
                pause = min(self.backoff, max(0.0, deadline_at - self.clock.monotonic()))
                await self.clock.sleep(pause)

        message = f"Container connection failed after {self.attempts} attempts"
        self._fail(handle, message)
        raise InstanceUnavailableError(name, message, history, last_error) from last_error

    def _fail(self, handle: InstanceHandle, reason: str) -> None:
        handle.state = InstanceState.FAILED
        logger.error(f"Instance {handle.name} not ready or timed out: {reason}")
