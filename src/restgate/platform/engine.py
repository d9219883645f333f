"""Container engine connection.

Docker and Podman are both driven through the ``docker`` SDK; Podman
exposes a Docker-compatible API socket.

Connection order:
1. Explicit ``engine`` setting (``platform.docker.engine`` in restgate.yaml)
2. CONTAINER_HOST / DOCKER_HOST environment variable
3. Docker default socket
4. Podman user or system socket
"""

import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _podman_socket_candidates() -> list[Path]:
    candidates: list[Path] = []

    machine_dir = Path.home() / ".local/share/containers/podman/machine"
    if machine_dir.is_dir():
        candidates.extend(sorted(machine_dir.glob("*/podman.sock")))
        candidates.append(machine_dir / "podman.sock")

    if hasattr(os, "getuid"):
        candidates.append(Path(f"/run/user/{os.getuid()}/podman/podman.sock"))
    candidates.append(Path("/run/podman/podman.sock"))
    return candidates


def find_podman_socket() -> str | None:
    """Podman API socket URI (unix://<path>) or None if none exists."""
    for sock in _podman_socket_candidates():
        if sock.exists():
            logger.debug("Found Podman socket: %s", sock)
            return f"unix://{sock}"
    return None


def get_container_client(engine: str | None = None) -> Any:
    """Connect to a container engine.

    Args:
        engine: "docker", "podman", or "auto"/None for auto-detection

    Returns:
        A docker.DockerClient

    Raises:
        ImportError: If the ``docker`` package is not installed
        ConnectionError: If no container engine is reachable
    """
    try:
        import docker
    except ImportError as e:
        msg = "Docker SDK not installed. Install with: pip install 'restgate[docker]'"
        raise ImportError(msg) from e

    if engine == "podman":
        return _connect_podman(docker)
    if engine == "docker":
        return _connect(docker.from_env, "Docker daemon")

    container_host = os.environ.get("CONTAINER_HOST") or os.environ.get("DOCKER_HOST")
    if container_host:
        logger.info("Connecting to container engine at %s", container_host)
        return docker.DockerClient(base_url=container_host)

    try:
        return _connect(docker.from_env, "Docker daemon")
    except ConnectionError:
        logger.debug("Docker default socket not available, trying Podman")

    return _connect_podman(docker)


def _connect(factory: Any, label: str, **kwargs: Any) -> Any:
    try:
        client = factory(**kwargs)
        client.ping()
    except Exception as e:
        msg = f"Failed to connect to {label}: {e}"
        raise ConnectionError(msg) from e

    logger.info("Connected to %s", label)
    return client


def _connect_podman(docker_module: Any) -> Any:
    socket_uri = find_podman_socket()
    if socket_uri is None:
        msg = (
            "No container engine found. Install Docker or Podman, "
            "or set CONTAINER_HOST / DOCKER_HOST environment variable."
        )
        raise ConnectionError(msg)
    return _connect(docker_module.DockerClient, f"Podman at {socket_uri}", base_url=socket_uri)
