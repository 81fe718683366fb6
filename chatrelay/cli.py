"""
CLI for chatrelay.

Provides command-line entry points for running the relay server and
inspecting its effective configuration.
"""

import sys
import logging
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from chatrelay import __version__
from chatrelay.config import RelayConfig


console = Console()
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def get_config(
    host: Optional[str] = None,
    port: Optional[int] = None,
    public_dir: Optional[str] = None,
    send_timeout: Optional[float] = None,
) -> RelayConfig:
    """Load configuration from environment, applying CLI overrides.

    Prints the error and exits with status 1 on invalid settings.
    """
    try:
        return RelayConfig.from_env().override(
            host=host, port=port, public_dir=public_dir, send_timeout=send_timeout
        )
    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        console.print("\nCheck these environment variables:")
        console.print("  CHATRELAY_HOST, CHATRELAY_PORT, CHATRELAY_PUBLIC_DIR, CHATRELAY_SEND_TIMEOUT")
        sys.exit(1)


@click.group()
@click.version_option(__version__, prog_name="chatrelay")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def main(verbose: bool):
    """chatrelay - realtime chat relay over WebSockets."""
    setup_logging(verbose)


@main.command()
@click.option("--host", help="Bind address (default: CHATRELAY_HOST or 127.0.0.1)")
@click.option("--port", "-p", type=int, help="Listen port (default: CHATRELAY_PORT or 8080)")
@click.option("--public-dir", help="Static asset directory (default: CHATRELAY_PUBLIC_DIR or ./public)")
@click.option("--send-timeout", type=float, help="Per-recipient send timeout in seconds")
def serve(
    host: Optional[str],
    port: Optional[int],
    public_dir: Optional[str],
    send_timeout: Optional[float],
):
    """Run the chat relay server."""
    import uvicorn

    from chatrelay.api.main import create_app

    config = get_config(host, port, public_dir, send_timeout)
    app = create_app(config)

    console.print(Panel(
        f"[bold]chatrelay {__version__}[/bold]\n"
        f"WebSocket: ws://{config.host}:{config.port}/\n"
        f"Static files: {config.public_dir}",
        title="Chat relay",
        border_style="green",
    ))
    if config.host == "0.0.0.0":
        console.print("[yellow]Listening on all interfaces[/yellow]")

    uvicorn.run(app, host=config.host, port=config.port, log_level="info")


@main.command()
@click.option("--host", help="Bind address override")
@click.option("--port", "-p", type=int, help="Listen port override")
@click.option("--public-dir", help="Static asset directory override")
@click.option("--send-timeout", type=float, help="Send timeout override")
def check(
    host: Optional[str],
    port: Optional[int],
    public_dir: Optional[str],
    send_timeout: Optional[float],
):
    """Show the effective configuration."""
    config = get_config(host, port, public_dir, send_timeout)

    table = Table(title="chatrelay configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("host", config.host)
    table.add_row("port", str(config.port))
    table.add_row("public_dir", str(config.public_dir))
    table.add_row("send_timeout", f"{config.send_timeout}s")
    console.print(table)

    if config.public_dir.is_dir():
        console.print(f"[green][OK][/green] Public directory found: {config.public_dir}")
    else:
        console.print(f"[yellow][-][/yellow] Public directory missing: {config.public_dir} (static files disabled)")


if __name__ == "__main__":
    main()
