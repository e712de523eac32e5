"""User-facing notifications.

Every message is mirrored to the log. Console output is suppressed when
``auto_notify`` is off, except for daemon stderr which is always relayed.
"""

import logging

from rich.console import Console
from rich.markup import escape

logger = logging.getLogger(__name__)

PREFIX = "ApexLink"


class Notifier:
    """Prints ApexLink messages on a rich console."""

    def __init__(self, console: Console | None = None, enabled: bool = True) -> None:
        """Initialize the notifier.

        Args:
            console: Console to print on. Defaults to a stderr console.
            enabled: Whether non-forced messages reach the console.
        """
        self.console = console or Console(stderr=True)
        self.enabled = enabled

    def info(self, msg: str) -> None:
        """Print an info message."""
        logger.info(msg)
        self._print(f"[dim]{PREFIX}:[/dim] {escape(msg)}")

    def success(self, msg: str) -> None:
        """Print a success message."""
        logger.info(msg)
        self._print(f"[green]✓ {PREFIX}:[/green] {escape(msg)}")

    def warning(self, msg: str) -> None:
        """Print a warning message."""
        logger.warning(msg)
        self._print(f"[yellow]{PREFIX} warning:[/yellow] {escape(msg)}")

    def error(self, msg: str) -> None:
        """Print an error message."""
        logger.error(msg)
        self._print(f"[red]{PREFIX} error:[/red] {escape(msg)}")

    def relay_stderr(self, line: str) -> None:
        """Relay one daemon stderr line verbatim."""
        logger.warning("daemon stderr: %s", line)
        self.console.print(f"[yellow]{PREFIX} \\[stderr]:[/yellow] {escape(line)}")

    def _print(self, text: str) -> None:
        if self.enabled:
            self.console.print(text)
