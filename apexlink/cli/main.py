"""Main CLI entry point for ApexLink."""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console

from apexlink.cli.config import config
from apexlink.cli.session import session
from apexlink.config import load_config
from apexlink.daemon.supervisor import find_daemon
from apexlink.exceptions import ApexLinkError, DaemonNotFoundError

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the client."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to config file",
)
@click.option("--debug/--no-debug", default=False, help="Show debug information")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, debug: bool) -> None:
    """ApexLink - peer-to-peer collaborative editing.

    Runs the editor-side client of apexlink-daemon.
    """
    setup_logging(debug)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["debug"] = debug


@cli.command()
@click.pass_context
def locate(ctx: click.Context) -> None:
    """Print the daemon executable that would be started."""
    cfg = load_config(ctx.obj.get("config_path"))
    try:
        click.echo(find_daemon(cfg))
    except DaemonNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1) from e


cli.add_command(config)
cli.add_command(session)


def main() -> None:
    """Main entry point with error handling."""
    try:
        cli()
    except ApexLinkError as e:
        if "--debug" in sys.argv:
            raise
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
