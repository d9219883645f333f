"""Tests for the Docker container platform."""

import asyncio
import threading
from unittest.mock import MagicMock

import httpx
import pytest
import respx
from fakes import FakeClock
from httpx import Response

from restgate.config.schema import DockerPlatformConfig, HealthCheckConfig
from restgate.instances.handle import InstanceHandle, InstanceState, ProxyRequest
from restgate.instances.prober import ReadinessProber
from restgate.platform.containers import (
    INSTANCE_LABEL,
    DockerPlatform,
    container_name_for,
)

HOST_PORT = "49153"
ROOT_URL = f"http://127.0.0.1:{HOST_PORT}/"


def _container(name: str, status: str = "created") -> MagicMock:
    container = MagicMock()
    container.name = name
    container.short_id = "abc123"
    container.status = status
    container.ports = {}

    def start():
        container.status = "running"
        container.ports = {"3000/tcp": [{"HostIp": "0.0.0.0", "HostPort": HOST_PORT}]}

    def stop(timeout=None):
        container.status = "exited"

    container.start.side_effect = start
    container.stop.side_effect = stop
    return container


@pytest.fixture
def docker_client():
    """Mock docker client with no existing containers."""
    client = MagicMock()
    client.containers.list.return_value = []
    client.containers.create.side_effect = lambda **kwargs: _container(kwargs["name"])
    return client


@pytest.fixture
def mock_router():
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture(autouse=True)
def listener(mock_router):
    """Container listener on the published port, answering by default."""
    return mock_router.get(ROOT_URL).mock(return_value=Response(200))


@pytest.fixture
def docker_config():
    return DockerPlatformConfig(health_check=HealthCheckConfig(interval=0.0, retries=3))


@pytest.fixture
def platform(docker_client, docker_config):
    """Docker platform with a mocked engine client."""
    return DockerPlatform(docker_config, client=docker_client)


def test_container_name_for_simple_name():
    """Test plain instance names are only prefixed."""
    assert container_name_for("restgate-", "user-42") == "restgate-user-42"


def test_container_name_for_unsafe_name():
    """Test unsafe characters are replaced and disambiguated."""
    first = container_name_for("restgate-", "user-a/b")
    second = container_name_for("restgate-", "user-a b")

    assert first.startswith("restgate-user-a_b-")
    assert first != second


def test_bind_returns_same_instance(platform):
    """Test binding is cached per name and does no I/O."""
    first = platform.bind("users")

    assert platform.bind("users") is first
    assert first.running is False


@pytest.mark.asyncio
async def test_ensure_running_creates_and_starts(platform, docker_client):
    """Test a cold instance creates and starts its container."""
    instance = platform.bind("user-42")

    base_url = await instance.ensure_running()

    assert base_url == f"http://127.0.0.1:{HOST_PORT}"
    kwargs = docker_client.containers.create.call_args.kwargs
    assert kwargs["name"] == "restgate-user-42"
    assert kwargs["image"] == "restgate/postgrest:latest"
    assert kwargs["ports"] == {"3000/tcp": None}
    assert kwargs["environment"] == {"POSTGRES_PASSWORD": "postgres", "POSTGRES_DB": "postgres"}
    assert kwargs["labels"] == {INSTANCE_LABEL: "user-42"}
    assert instance.running is True
    assert instance.started_at is not None


@pytest.mark.asyncio
async def test_ensure_running_is_cached(platform, docker_client):
    """Test a running instance is not started twice."""
    instance = platform.bind("users")

    await instance.ensure_running()
    await instance.ensure_running()

    assert docker_client.containers.create.call_count == 1


@pytest.mark.asyncio
async def test_reuses_existing_container(platform, docker_client):
    """Test a container left from an earlier run is adopted."""
    existing = _container("restgate-posts", status="exited")
    docker_client.containers.list.return_value = [_container("restgate-posts-old"), existing]

    base_url = await platform.bind("posts").ensure_running()

    docker_client.containers.create.assert_not_called()
    existing.start.assert_called_once()
    assert base_url.endswith(HOST_PORT)


@pytest.mark.asyncio
async def test_missing_port_binding_fails(platform, docker_client):
    """Test a container without a published port is not usable yet."""
    broken = _container("restgate-users")
    broken.start.side_effect = None
    docker_client.containers.create.side_effect = None
    docker_client.containers.create.return_value = broken

    instance = platform.bind("users")
    with pytest.raises(RuntimeError, match="no published port"):
        await instance.ensure_running()
    assert instance.running is False


@pytest.mark.asyncio
async def test_probe_starts_container_then_hits_root(platform, listener):
    """Test probing a cold instance starts it and reaches its listener."""
    instance = platform.bind("schema")

    await instance.probe()

    assert listener.call_count == 2
    assert instance.last_used is not None
    await platform.close()


@pytest.mark.asyncio
async def test_reap_stops_idle_instances(platform):
    """Test containers idle past sleep_after are stopped."""
    idle = platform.bind("users")
    busy = platform.bind("posts")
    await idle.ensure_running()
    await busy.ensure_running()

    idle.last_used = 0.0
    idle.started_at = 0.0
    busy.last_used = 899.0
    busy.started_at = 0.0

    stopped = await platform.reap(now=900.0)

    assert stopped == ["users"]
    assert idle.running is False
    assert busy.running is True
    idle._container.stop.assert_called_once_with(timeout=60)


@pytest.mark.asyncio
async def test_reap_recycles_old_instances(platform):
    """Test containers past max_lifetime are stopped even when busy."""
    instance = platform.bind("users")
    await instance.ensure_running()
    instance.started_at = 0.0
    instance.last_used = 7199.0

    stopped = await platform.reap(now=7200.0)

    assert stopped == ["users"]


@pytest.mark.asyncio
async def test_stopped_instance_restarts_on_next_use(platform):
    """Test a reaped instance starts again on demand."""
    instance = platform.bind("users")
    await instance.ensure_running()
    await instance.stop("idle")

    await instance.ensure_running()

    assert instance.running is True
    assert instance._container.start.call_count == 2


@pytest.mark.asyncio
async def test_close_stops_running_containers(platform, docker_client):
    """Test shutdown stops containers and closes the engine client."""
    instance = platform.bind("users")
    await instance.ensure_running()
    platform.bind("posts")

    await platform.close()

    instance._container.stop.assert_called_once()
    docker_client.close.assert_called_once()


@pytest.mark.asyncio
async def test_reaper_task_lifecycle(platform):
    """Test the reaper task starts once and stops cleanly."""
    await platform.start_reaper(interval=3600)
    task = platform._reaper_task
    await platform.start_reaper(interval=3600)

    assert platform._reaper_task is task

    await platform.stop_reaper()
    assert task.cancelled()
    assert platform._reaper_task is None


# ── cold start and recovery ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_cold_start_waits_for_listener(platform, listener):
    """Test a container whose listener is still booting is started in one probe."""
    listener.mock(
        side_effect=[
            httpx.ConnectError("connection refused"),
            httpx.ConnectError("connection refused"),
            Response(200),
            Response(200),
        ]
    )
    instance = platform.bind("users")

    await instance.probe()

    assert instance.running is True
    assert listener.call_count == 4
    assert instance._container.start.call_count == 1


@pytest.mark.asyncio
async def test_cold_start_gives_up_after_health_check_retries(platform, listener):
    """Test a listener that never answers fails the start."""
    listener.mock(side_effect=httpx.ConnectError("connection refused"))
    instance = platform.bind("users")

    with pytest.raises(RuntimeError, match="did not answer on / after 3 checks"):
        await instance.ensure_running()

    assert instance.running is False
    assert listener.call_count == 3


@pytest.mark.asyncio
async def test_cold_start_bounded_by_startup_timeout(docker_client, listener):
    """Test a start that outlives startup_timeout fails."""
    config = DockerPlatformConfig(
        startup_timeout=0.05,
        health_check=HealthCheckConfig(interval=0.01, retries=1000),
    )
    listener.mock(side_effect=httpx.ConnectError("connection refused"))
    instance = DockerPlatform(config, client=docker_client).bind("users")

    with pytest.raises(RuntimeError, match="did not start within"):
        await instance.ensure_running()

    assert instance.running is False


@pytest.mark.asyncio
async def test_container_stopped_outside_gateway_is_restarted(platform, listener):
    """Test a container that died behind the gateway's back is started again."""
    instance = platform.bind("users")
    await instance.ensure_running()
    container = instance._container
    container.status = "exited"
    listener.mock(side_effect=[httpx.ConnectError("connection refused"), Response(200), Response(200)])

    with pytest.raises(httpx.ConnectError):
        await instance.probe()
    assert instance.running is False

    await instance.probe()

    assert instance.running is True
    assert container.start.call_count == 2


@pytest.mark.asyncio
async def test_readiness_recovers_after_external_stop(platform, listener):
    """Test the prober's next attempt restarts a container that stopped."""
    instance = platform.bind("users")
    await instance.ensure_running()
    instance._container.status = "exited"
    listener.mock(side_effect=[httpx.ConnectError("connection refused"), Response(200), Response(200)])
    clock = FakeClock()
    handle = InstanceHandle("users", instance)

    await ReadinessProber(clock=clock).ready(handle)

    assert handle.state == InstanceState.READY
    assert clock.sleeps == [5.0]
    assert instance._container.start.call_count == 2


@pytest.mark.asyncio
async def test_send_connect_error_forgets_container(platform, mock_router):
    """Test a refused forward also marks the container for restart."""
    users = mock_router.get(f"http://127.0.0.1:{HOST_PORT}/users").mock(
        side_effect=httpx.ConnectError("connection refused")
    )
    instance = platform.bind("users")
    await instance.ensure_running()

    with pytest.raises(httpx.ConnectError):
        await instance.send(ProxyRequest("GET", "/users"))

    assert users.called
    assert instance.running is False


@pytest.mark.asyncio
async def test_abandoned_start_is_reused(platform, docker_client):
    """Test a caller that stops waiting does not cause a second create."""
    gate = threading.Event()

    def slow_create(**kwargs):
        gate.wait(5)
        return _container(kwargs["name"])

    docker_client.containers.create.side_effect = slow_create
    instance = platform.bind("users")

    with pytest.raises(TimeoutError):
        async with asyncio.timeout(0.05):
            await instance.ensure_running()

    retry = asyncio.create_task(instance.ensure_running())
    await asyncio.sleep(0)
    gate.set()
    base_url = await retry

    assert base_url == f"http://127.0.0.1:{HOST_PORT}"
    assert docker_client.containers.create.call_count == 1


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_start(platform, docker_client):
    """Test simultaneous first requests start the container once."""
    instance = platform.bind("users")

    urls = await asyncio.gather(*(instance.ensure_running() for _ in range(5)))

    assert set(urls) == {f"http://127.0.0.1:{HOST_PORT}"}
    assert docker_client.containers.create.call_count == 1
