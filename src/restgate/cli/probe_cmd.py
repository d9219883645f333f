"""One-off instance acquisition from the command line."""

import asyncio
import logging
from pathlib import Path

from rich.console import Console

from restgate.config.loader import ConfigError, load_config
from restgate.instances.errors import InstanceUnavailableError
from restgate.instances.gateway import InstanceGateway
from restgate.platform import create_platform

console = Console()


async def _probe(gateway: InstanceGateway, name: str) -> bool:
    try:
        handle = await gateway.acquire_ready(name)
    except InstanceUnavailableError as e:
        console.print(f"[red]Instance {name} unavailable: {e}[/red]")
        for attempt in e.attempts:
            outcome = "ok" if attempt.succeeded else attempt.error
            console.print(f"  attempt {attempt.number}: {outcome}")
        return False
    finally:
        await gateway.close()

    console.print(f"[green]Instance {handle.name} is {handle.state}[/green]")
    return True


def probe_command(name: str, config_path: str | None = None) -> bool:
    """Acquire ``name`` on the configured platform and probe it.

    Args:
        name: Instance name
        config_path: Optional path to config file

    Returns:
        True if the instance became ready
    """
    try:
        config = load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        return False

    logging.basicConfig(
        level=config.server.log_level.upper(),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    gateway = InstanceGateway.from_config(config, create_platform(config))
    return asyncio.run(_probe(gateway, name))
