"""Platform binding each instance name to its own PostgREST container.

Containers are created and started lazily on first use, which is the cold
start the readiness prober waits out. A fresh container only counts as
started once its health check path answers. A reaper task stops containers
that have been idle longer than ``sleep_after`` or running longer than
``max_lifetime``; the instance stays registered and the next request starts
the container again. The same happens when a container stops answering
because it was stopped or crashed outside the gateway.
"""

import asyncio
import hashlib
import logging
import re
import time
from typing import Any

import httpx

from restgate.config.schema import DockerPlatformConfig
from restgate.instances.handle import ProxyRequest, ProxyResponse
from restgate.platform.engine import get_container_client
from restgate.platform.http import HttpTransport, create_http_client

logger = logging.getLogger(__name__)

INSTANCE_LABEL = "restgate.instance"

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_.-]")


def container_name_for(prefix: str, name: str) -> str:
    """Docker-safe container name for an instance name."""
    safe = _INVALID_NAME_CHARS.sub("_", name)
    if safe != name:
        digest = hashlib.sha1(name.encode("utf-8")).hexdigest()[:8]
        safe = f"{safe}-{digest}"
    return f"{prefix}{safe}"


class ContainerInstance:
    """One instance backed by one container."""

    def __init__(self, name: str, platform: "DockerPlatform"):
        self.name = name
        self.container_name = container_name_for(platform.config.name_prefix, name)
        self._platform = platform
        self._container: Any = None
        self._base_url: str | None = None
        self._starting: asyncio.Task | None = None
        self._lock = asyncio.Lock()
        self.started_at: float | None = None
        self.last_used: float | None = None

    @property
    def running(self) -> bool:
        return self._base_url is not None

    async def probe(self) -> None:
        base_url = await self.ensure_running()
        try:
            await self._platform.transport.probe(base_url)
        except httpx.ConnectError as e:
            self._lost(base_url, e)
            raise
        self.last_used = time.monotonic()

    async def send(self, request: ProxyRequest) -> ProxyResponse:
        base_url = await self.ensure_running()
        self.last_used = time.monotonic()
        try:
            return await self._platform.transport.send(base_url, request)
        except httpx.ConnectError as e:
            self._lost(base_url, e)
            raise

    async def ensure_running(self) -> str:
        """
        Start the container if needed and return its base URL.

        Concurrent callers share one start. A caller that stops waiting, for
        instance on a probe deadline, leaves the start in progress and the
        next caller waits for that same start.
        """
        if self._base_url is not None:
            return self._base_url

        if self._starting is None:
            self._starting = asyncio.create_task(self._boot())
            self._starting.add_done_callback(self._boot_finished)
        return await asyncio.shield(self._starting)

    async def stop(self, reason: str = "stopped") -> None:
        """Stop the container; the next request starts it again."""
        async with self._lock:
            if self._container is None or self._base_url is None:
                return
            container = self._container
            try:
                await asyncio.to_thread(container.stop, timeout=self._platform.config.stop_timeout)
            except Exception as e:
                logger.error(f"PostgreSQL + PostgREST container error for {self.name}: {e}")
                raise
            finally:
                self._base_url = None
                self.started_at = None
            logger.info(
                f"PostgreSQL + PostgREST container successfully shut down "
                f"({self.container_name}, {reason})"
            )

    async def _boot(self) -> str:
        config = self._platform.config
        try:
            async with asyncio.timeout(config.startup_timeout):
                base_url = await asyncio.to_thread(self._start)
                await self._wait_until_listening(base_url)
        except TimeoutError as e:
            logger.error(
                f"PostgreSQL + PostgREST container error for {self.name}: "
                f"not started within {config.startup_timeout}s"
            )
            raise RuntimeError(
                f"Container '{self.container_name}' did not start within {config.startup_timeout}s"
            ) from e
        except Exception as e:
            logger.error(f"PostgreSQL + PostgREST container error for {self.name}: {e}")
            raise

        now = time.monotonic()
        self._base_url = base_url
        self.started_at = now
        self.last_used = now
        logger.info(
            f"PostgreSQL + PostgREST container successfully started "
            f"({self.container_name} at {base_url})"
        )
        return base_url

    def _boot_finished(self, task: asyncio.Task) -> None:
        self._starting = None
        if not task.cancelled():
            # Already logged by _boot
            task.exception()

    async def _wait_until_listening(self, base_url: str) -> None:
        """Poll the health check path until the container's listener answers."""
        check = self._platform.config.health_check
        last_error: Exception | None = None

        for attempt in range(1, check.retries + 1):
            try:
                async with asyncio.timeout(check.timeout):
                    await self._platform.transport.probe(base_url, check.path)
                return
            except Exception as e:
                last_error = e
                logger.debug(
                    f"Container {self.container_name} not answering yet "
                    f"(check {attempt}/{check.retries}): {e}"
                )
            if attempt < check.retries:
                await asyncio.sleep(check.interval)

        raise RuntimeError(
            f"Container '{self.container_name}' did not answer on {check.path} "
            f"after {check.retries} checks: {last_error}"
        ) from last_error

    def _lost(self, base_url: str, error: Exception) -> None:
        """Forget a container that stopped answering so the next use restarts it."""
        if self._base_url != base_url:
            return
        logger.warning(f"Lost connection to container {self.container_name}: {error}")
        self._base_url = None
        self.started_at = None

    def _start(self) -> str:
        config = self._platform.config
        client = self._platform.docker_client()
        port_key = f"{config.port}/tcp"

        container = self._container or self._find_existing(client)
        if container is None:
            container = client.containers.create(
                image=config.image,
                name=self.container_name,
                ports={port_key: None},
                environment=dict(config.environment),
                labels={INSTANCE_LABEL: self.name},
                detach=True,
            )
            logger.info(f"Created container '{self.container_name}' (id={container.short_id})")
        self._container = container

        container.reload()
        if container.status != "running":
            container.start()
            container.reload()

        bindings = (container.ports or {}).get(port_key) or []
        if not bindings:
            raise RuntimeError(f"Container '{self.container_name}' has no published port {port_key}")
        return f"http://{config.host_address}:{bindings[0]['HostPort']}"

    def _find_existing(self, client: Any) -> Any:
        matches = client.containers.list(all=True, filters={"name": self.container_name})
        for container in matches:
            if container.name == self.container_name:
                return container
        return None


class DockerPlatform:
    """Runs one PostgreSQL + PostgREST container per instance name."""

    def __init__(
        self,
        config: DockerPlatformConfig,
        timeout: float = 300.0,
        client: Any = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize Docker platform.

        Args:
            config: Container settings
            timeout: HTTP read timeout in seconds
            client: Optional docker.DockerClient (connected lazily otherwise)
            http_client: Optional pre-configured HTTP client
        """
        self.config = config
        self.transport = HttpTransport(http_client or create_http_client(timeout))
        self._docker: Any = client
        self._instances: dict[str, ContainerInstance] = {}
        self._reaper_task: asyncio.Task | None = None

    def docker_client(self) -> Any:
        """Get or create the container engine client."""
        if self._docker is None:
            self._docker = get_container_client(self.config.engine)
        return self._docker

    def bind(self, name: str) -> ContainerInstance:
        instance = self._instances.get(name)
        if instance is None:
            instance = ContainerInstance(name, self)
            self._instances[name] = instance
        return instance

    def instances(self) -> list[ContainerInstance]:
        return list(self._instances.values())

    async def reap(self, now: float | None = None) -> list[str]:
        """
        Stop containers past their idle or lifetime limit.

        Args:
            now: Monotonic timestamp to evaluate against (defaults to now)

        Returns:
            Names of the instances that were stopped
        """
        now = time.monotonic() if now is None else now
        stopped = []

        for instance in self.instances():
            if not instance.running:
                continue

            reason = None
            if instance.started_at is not None and now - instance.started_at >= self.config.max_lifetime:
                reason = "max lifetime reached"
            elif instance.last_used is not None and now - instance.last_used >= self.config.sleep_after:
                reason = "idle"
            if reason is None:
                continue

            try:
                await instance.stop(reason)
                stopped.append(instance.name)
            except Exception as e:
                logger.warning(f"Failed to stop instance '{instance.name}': {e}")

        return stopped

    async def start_reaper(self, interval: float | None = None) -> None:
        """Start the periodic idle/lifetime sweep."""
        if self._reaper_task and not self._reaper_task.done():
            return

        sweep_interval = interval or self.config.reap_interval

        async def sweep():
            while True:
                await asyncio.sleep(sweep_interval)
                await self.reap()

        self._reaper_task = asyncio.create_task(sweep())

    async def stop_reaper(self) -> None:
        """Stop the periodic sweep."""
        if self._reaper_task and not self._reaper_task.done():
            self._reaper_task.cancel()
            try:
                await self._reaper_task
            except asyncio.CancelledError:
                pass
        self._reaper_task = None

    async def close(self) -> None:
        """Stop the reaper and all running containers, then close clients."""
        await self.stop_reaper()

        for instance in self.instances():
            try:
                await instance.stop("gateway shutdown")
            except Exception as e:
                logger.error(f"Failed to stop instance '{instance.name}': {e}")

        await self.transport.close()
        if self._docker is not None:
            self._docker.close()
            logger.info("Closed container engine client")
