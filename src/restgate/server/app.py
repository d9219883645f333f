"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from restgate import __version__
from restgate.config.schema import GatewayConfig
from restgate.instances.gateway import InstanceGateway
from restgate.instances.handle import InstancePlatform
from restgate.instances.prober import Clock
from restgate.platform import DockerPlatform, create_platform
from restgate.server.routes import create_router

logger = logging.getLogger(__name__)


def create_app(
    config: GatewayConfig,
    platform: InstancePlatform | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        config: Gateway configuration
        platform: Instance platform (built from config if None)
        clock: Optional time source for readiness probing

    Returns:
        Configured FastAPI app
    """
    instance_platform = platform or create_platform(config)
    gateway = InstanceGateway.from_config(config, instance_platform, clock=clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if isinstance(instance_platform, DockerPlatform):
            await instance_platform.start_reaper()
        logger.info(f"restgate {__version__} serving with {config.platform.backend} platform")
        try:
            yield
        finally:
            await gateway.close()
            logger.info("restgate shut down")

    app = FastAPI(
        title="restgate",
        description="Gateway to lazily started PostgreSQL + PostgREST instances",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.gateway = gateway

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(create_router(config))

    return app
