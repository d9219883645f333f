"""Main CLI application using Typer."""

import sys

import typer
from rich.console import Console

from restgate import __version__

app = typer.Typer(
    name="restgate",
    help="restgate - HTTP gateway to lazily started PostgREST instances",
    no_args_is_help=True,
)

console = Console()


@app.command()
def version():
    """Show restgate version."""
    console.print(f"restgate version {__version__}")


@app.command()
def start(
    config_path: str = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file (default: ~/.restgate/restgate.yaml)",
    ),
    detach: bool = typer.Option(False, "--detach", "-d", help="Run server in background"),
):
    """Start the restgate API server."""
    from restgate.cli.server_cmd import start_command

    start_command(config_path=config_path, detach=detach)


@app.command()
def stop():
    """Stop the restgate API server."""
    from restgate.cli.server_cmd import stop_command

    stop_command()


@app.command()
def status(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """Check restgate server status."""
    from restgate.cli.server_cmd import status_command

    status_command(config_path=config_path)


@app.command()
def probe(
    name: str = typer.Argument(..., help="Instance name, e.g. 'user-42' or 'instance-0'"),
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """Acquire an instance and wait until it is ready."""
    from restgate.cli.probe_cmd import probe_command

    ok = probe_command(name, config_path=config_path)
    if not ok:
        raise typer.Exit(code=1)


def main():
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
