"""Server management commands."""

import logging
import os
import signal
import subprocess
import sys
import time
from pathlib import Path

import httpx
from rich.console import Console

from restgate.config.schema import GatewayConfig

STATE_DIR = Path.home() / ".restgate"

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

console = Console()


class PidFile:
    """PID file shared by `restgate start` and `restgate stop`."""

    def __init__(self, path: Path):
        self.path = path

    def write(self, pid: int) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(str(pid))

    def read(self) -> int | None:
        """PID of a live server, or None. Stale files are removed."""
        if not self.path.exists():
            return None
        try:
            pid = int(self.path.read_text().strip())
            # Signal 0 only checks that the process exists
            os.kill(pid, 0)
            return pid
        except (ValueError, ProcessLookupError, PermissionError):
            self.remove()
            return None

    def remove(self) -> None:
        self.path.unlink(missing_ok=True)


pid_file = PidFile(STATE_DIR / "server.pid")


def _launch_detached(config: GatewayConfig, config_path: Path | None) -> None:
    log_level = config.server.log_level
    cmd = [
        sys.executable,
        "-m",
        "uvicorn",
        "restgate.server.asgi:app",
        "--host",
        config.server.host,
        "--port",
        str(config.server.port),
        "--log-level",
        log_level,
    ]
    # The subprocess rebuilds its config from RESTGATE_CONFIG
    env = dict(os.environ)
    if config_path is not None:
        env["RESTGATE_CONFIG"] = str(config_path.resolve())

    log_path = pid_file.path.parent / "server.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with log_path.open("a") as log_file:
        proc = subprocess.Popen(
            cmd,
            stdout=log_file,
            stderr=subprocess.STDOUT,
            env=env,
            start_new_session=True,
        )
    pid_file.write(proc.pid)

    console.print(f"[green]restgate server started in background (PID {proc.pid})[/green]")
    console.print(f"  http://{config.server.host}:{config.server.port}")
    console.print(f"  Log: {log_path}")
    console.print("\nRun [bold]restgate stop[/bold] to stop.")


def _run_foreground(config: GatewayConfig) -> None:
    import uvicorn

    from restgate.server.app import create_app

    log_level = config.server.log_level
    logging.basicConfig(level=log_level.upper(), format=LOG_FORMAT)

    app = create_app(config)
    # Record our own PID so `restgate stop` works here too
    pid_file.write(os.getpid())

    console.print(
        f"[green]Starting restgate server on "
        f"{config.server.host}:{config.server.port}[/green]"
    )
    console.print(f"Platform: {config.platform.backend}")
    console.print("\nPress Ctrl+C to stop")

    try:
        uvicorn.run(
            app,
            host=config.server.host,
            port=config.server.port,
            log_level=log_level,
        )
    finally:
        pid_file.remove()


def start_command(config_path: str | None = None, detach: bool = False) -> None:
    """Start the restgate API server.

    Args:
        config_path: Optional path to config file
        detach: Run server in background
    """
    from restgate.config.loader import load_config

    # Check if already running
    existing_pid = pid_file.read()
    if existing_pid:
        console.print(f"[yellow]Server already running (PID {existing_pid})[/yellow]")
        console.print("Run [bold]restgate stop[/bold] first.")
        return

    # Load config
    path = Path(config_path) if config_path else None
    try:
        config = load_config(path)
    except Exception as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        return

    if detach:
        _launch_detached(config, path)
    else:
        _run_foreground(config)


def stop_command(wait: float = 5.0) -> None:
    """Stop the restgate API server.

    Args:
        wait: Seconds to wait for the process to exit after SIGTERM
    """
    pid = pid_file.read()
    if pid is None:
        console.print("[yellow]No running restgate server found.[/yellow]")
        return

    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        console.print("[yellow]Server process already exited.[/yellow]")
        pid_file.remove()
        return

    # Shutdown stops running containers, which can take a moment
    deadline = time.monotonic() + wait
    while time.monotonic() < deadline and pid_file.read() == pid:
        time.sleep(0.2)

    pid_file.remove()
    console.print(f"[green]Stopped restgate server (PID {pid})[/green]")


def status_command(config_path: str | None = None) -> None:
    """Check restgate server status."""
    from restgate.config.loader import load_config

    pid = pid_file.read()

    # Try loading config for host/port
    try:
        config = load_config(Path(config_path) if config_path else None)
        host = config.server.host
        port = config.server.port
    except Exception:
        host = "127.0.0.1"
        port = 8080

    # The health endpoint probes a backend instance, so allow for a cold start
    try:
        resp = httpx.get(f"http://{host}:{port}/api/health", timeout=10.0)
        data = resp.json()
    except Exception:
        if pid:
            console.print(f"[yellow]PID {pid} exists but health check failed.[/yellow]")
        else:
            console.print("[yellow]Server is not running.[/yellow]")
            console.print("Start with: [bold]restgate start[/bold]")
        return

    if resp.status_code == 200:
        console.print("[green]Server is running[/green]")
    else:
        console.print(f"[yellow]Server is running but backend is {data.get('status', 'unknown')}[/yellow]")
        console.print(f"  Error:   {data.get('error', 'unknown')}")
    if pid:
        console.print(f"  PID:     {pid}")
    console.print(f"  URL:     http://{host}:{port}")
