"""Pydantic models for restgate.yaml configuration."""

from typing import Literal

from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """API server configuration."""

    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=8080, description="Server port", ge=1, le=65535)
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins",
    )
    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="info",
        description="Log level for the gateway and uvicorn",
    )


class ProbeConfig(BaseModel):
    """Readiness probing before traffic is sent to an instance."""

    attempts: int = Field(default=3, description="Maximum probe attempts", ge=1, le=20)
    deadline: float = Field(
        default=240.0,
        description="Seconds allowed for the whole probe sequence",
        gt=0,
    )
    backoff: float = Field(default=5.0, description="Seconds between failed attempts", ge=0)


class ForwardConfig(BaseModel):
    """Downstream request forwarding."""

    timeout: float = Field(
        default=300.0,
        description="Seconds allowed for a forwarded request once the instance is ready",
        gt=0,
    )


class PoolConfig(BaseModel):
    """Load-balanced instance pool used by the catch-all path."""

    size: int = Field(default=3, description="Number of equivalent instances", ge=1)
    strategy: Literal["random", "round_robin"] = Field(
        default="random",
        description="How a pool member is chosen for each request",
    )


class StaticPlatformConfig(BaseModel):
    """Single shared upstream used for every instance name."""

    base_url: str = Field(
        default="http://localhost:3000",
        description="PostgREST base URL",
    )


class HealthCheckConfig(BaseModel):
    """Startup check run against a freshly started container."""

    path: str = Field(default="/", description="Path polled until the listener answers")
    interval: float = Field(default=10.0, description="Seconds between checks", ge=0)
    timeout: float = Field(default=5.0, description="Seconds allowed for one check", gt=0)
    retries: int = Field(default=30, description="Checks before the start is considered failed", ge=1)


class DockerPlatformConfig(BaseModel):
    """One PostgreSQL + PostgREST container per instance name."""

    engine: Literal["auto", "docker", "podman"] = Field(
        default="auto",
        description="Container engine: 'auto' detects Docker first, then Podman",
    )
    image: str = Field(
        default="restgate/postgrest:latest",
        description="Image bundling PostgreSQL and PostgREST",
    )
    port: int = Field(default=3000, description="PostgREST port inside the container", ge=1, le=65535)
    host_address: str = Field(
        default="127.0.0.1",
        description="Address where published container ports are reachable",
    )
    name_prefix: str = Field(default="restgate-", description="Prefix for container names")
    environment: dict[str, str] = Field(
        default_factory=lambda: {
            "POSTGRES_PASSWORD": "postgres",
            "POSTGRES_DB": "postgres",
        },
        description="Environment variables passed to each container",
    )
    sleep_after: float = Field(
        default=900.0,
        description="Stop a container after this many idle seconds",
        gt=0,
    )
    max_lifetime: float = Field(
        default=7200.0,
        description="Recycle a container after this many seconds of uptime",
        gt=0,
    )
    reap_interval: float = Field(
        default=60.0,
        description="Seconds between idle/lifetime sweeps",
        gt=0,
    )
    stop_timeout: int = Field(
        default=60,
        description="Seconds to wait for a container to shut down before killing it",
        ge=0,
    )
    startup_timeout: float = Field(
        default=600.0,
        description="Seconds allowed for a container to start answering on the health check path",
        gt=0,
    )
    health_check: HealthCheckConfig = Field(default_factory=HealthCheckConfig)


class PlatformConfig(BaseModel):
    """Hosting platform for backend instances."""

    backend: Literal["docker", "static"] = Field(
        default="static",
        description="Platform binding: 'docker' starts a container per instance name",
    )
    static: StaticPlatformConfig = Field(default_factory=StaticPlatformConfig)
    docker: DockerPlatformConfig = Field(default_factory=DockerPlatformConfig)


class GatewayConfig(BaseModel):
    """Root configuration schema for restgate."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    probe: ProbeConfig = Field(default_factory=ProbeConfig)
    forward: ForwardConfig = Field(default_factory=ForwardConfig)
    pool: PoolConfig = Field(default_factory=PoolConfig)
    platform: PlatformConfig = Field(default_factory=PlatformConfig)
