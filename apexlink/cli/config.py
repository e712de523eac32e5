"""Config CLI commands for ApexLink."""

from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.tree import Tree

from apexlink.config import (
    ApexLinkConfig,
    config_file_path,
    load_config,
    read_config_file,
    save_config,
)

console = Console()


def _parse_value(value: str) -> Any:
    """Parse a string value into appropriate Python type.

    Args:
        value: String value from command line.

    Returns:
        Parsed value (bool, int, or string).
    """
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    try:
        return int(value)
    except ValueError:
        pass

    return value


def _format_value(value: Any) -> str:
    """Format a value for display.

    Args:
        value: The value to format.

    Returns:
        Formatted string representation.
    """
    if value is None:
        return "[dim]not set[/dim]"
    if isinstance(value, bool):
        return "[green]true[/green]" if value else "[red]false[/red]"
    return str(value)


def _config_path(ctx: click.Context) -> Path:
    return (ctx.obj or {}).get("config_path") or config_file_path()


def _check_key(key: str) -> None:
    if key not in ApexLinkConfig.model_fields:
        known = ", ".join(ApexLinkConfig.model_fields)
        raise click.BadParameter(f"Unknown option '{key}'. Known options: {known}")


@click.group()
def config() -> None:
    """View and modify configuration."""
    pass


@config.command(name="show")
@click.argument("key", required=False)
@click.pass_context
def config_show(ctx: click.Context, key: str | None) -> None:
    """Show configuration values.

    Values not set in the file are shown with their defaults.

    Examples:
        apexlink config show              # Show all options
        apexlink config show server_url   # Show one option
    """
    path = _config_path(ctx)
    stored = read_config_file(path)
    effective = load_config(path).model_dump()

    if key:
        _check_key(key)
        console.print(f"{key}: {_format_value(effective[key])}")
        return

    tree = Tree(f"[bold]Configuration[/bold] [dim]({path})[/dim]")
    for name, value in effective.items():
        suffix = "" if name in stored else " [dim](default)[/dim]"
        tree.add(f"[cyan]{name}[/cyan]: {_format_value(value)}{suffix}")
    console.print(tree)


@config.command(name="set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Set a configuration value.

    Examples:
        apexlink config set username alice
        apexlink config set sync_interval 5000
    """
    _check_key(key)
    path = _config_path(ctx)
    data = read_config_file(path)

    parsed_value = _parse_value(value)
    if key == "daemon_path":
        parsed_value = str(Path(str(parsed_value)).expanduser().resolve())
    elif key in ("username", "server_url", "color"):
        parsed_value = value

    data[key] = parsed_value
    save_config(data, path)

    console.print(f"[green]Set {key} = {_format_value(parsed_value)}[/green]")


@config.command(name="unset")
@click.argument("key")
@click.pass_context
def config_unset(ctx: click.Context, key: str) -> None:
    """Remove a configuration value, restoring its default.

    Examples:
        apexlink config unset color
    """
    path = _config_path(ctx)
    data = read_config_file(path)

    if key in data:
        del data[key]
        save_config(data, path)
        console.print(f"[green]Removed {key}[/green]")
    else:
        console.print(f"[yellow]Key '{key}' not found[/yellow]")
