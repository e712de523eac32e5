"""Interactive terminal session driving the client with file-backed buffers."""

import logging
import shlex
import sys
import threading
from collections.abc import Iterable
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from apexlink.client import ApexLinkClient
from apexlink.config import load_config
from apexlink.dispatcher import SUBCOMMANDS
from apexlink.editor.files import FileEditor
from apexlink.editor.watcher import BufferWatcher
from apexlink.notify import Notifier

logger = logging.getLogger(__name__)

SHELL_COMMANDS = {
    "open PATH": "Open a file in a buffer and make it current",
    "use PATH": "Make an open buffer current",
    "close": "Close the current buffer",
    "show": "Print the current buffer",
    "write": "Write modified buffers to disk",
    "peers": "List peers in the room",
    "help": "Show this help",
    "quit": "Stop the daemon and exit",
}


class SessionShell:
    """Line-oriented front end for one ApexLinkClient.

    handle_line() runs on the EditorQueue consumer, like every other
    state-changing callback.
    """

    def __init__(
        self,
        client: ApexLinkClient,
        editor: FileEditor,
        console: Console,
        watcher: BufferWatcher | None = None,
    ) -> None:
        self.client = client
        self.editor = editor
        self.console = console
        self.watcher = watcher

    def handle_line(self, line: str) -> None:
        """Run one line of user input."""
        if self.editor.pending_prompt is not None:
            self.editor.answer_prompt(line.strip() or None)
            self._show_prompt()
            return

        try:
            args = shlex.split(line)
        except ValueError as e:
            self.console.print(f"[red]Error:[/red] {e}")
            return
        if not args:
            return

        name, rest = args[0], args[1:]
        if name in SUBCOMMANDS:
            self.client.command(args)
        elif name == "open" and rest:
            self.open(rest[0])
        elif name == "use" and rest:
            self._use(rest[0])
        elif name == "close":
            self._close()
        elif name == "show":
            self._show()
        elif name == "write":
            written = self.editor.write_all()
            self.console.print(f"[dim]Wrote {written} buffer(s)[/dim]")
        elif name == "peers":
            self._peers()
        elif name in ("quit", "exit"):
            self.quit()
            return
        else:
            self.help()
        self._show_prompt()

    def open(self, path: str) -> None:
        """Open a file and watch it for external changes."""
        handle = self.editor.open(path)
        if self.watcher is not None:
            self.watcher.watch(self.editor.buffer_name(handle))
        self.console.print(f"[dim]Buffer {handle}: {self.editor.buffer_name(handle)}[/dim]")

    def check_time(self) -> None:
        """Reload buffers changed on disk, forcing it while in a room."""
        self.editor.check_time(reload_modified=self.client.session.in_room)

    def help(self) -> None:
        """Print available commands."""
        table = Table(show_header=False, box=None)
        for name in SUBCOMMANDS:
            table.add_row(f"[cyan]{name}[/cyan]", "ApexLink subaction")
        for name, description in SHELL_COMMANDS.items():
            table.add_row(f"[cyan]{name}[/cyan]", description)
        self.console.print(table)

    def quit(self) -> None:
        """Shut the client down and stop the consumer."""
        self.client.shutdown()
        if self.watcher is not None:
            self.watcher.stop()
        self.client.queue.close()

    def _use(self, path: str) -> None:
        handle = self.editor.find(path)
        if handle is None:
            self.console.print(f"[yellow]Not open:[/yellow] {path}")
            return
        self.editor.set_current(handle)

    def _close(self) -> None:
        handle = self.editor.current_buffer()
        if handle is None:
            self.console.print("[yellow]No buffer open[/yellow]")
            return
        path = self.editor.buffer_name(handle)
        self.editor.close(handle)
        if self.watcher is not None and path:
            self.watcher.unwatch(path)

    def _show(self) -> None:
        handle = self.editor.current_buffer()
        if handle is None:
            self.console.print("[yellow]No buffer open[/yellow]")
            return
        buffer = self.editor.buffers()[handle]
        title = buffer.path or "[No Name]"
        if buffer.modified:
            title += " [+]"
        if handle in self.client.registry:
            title += " (synced)"
        self.console.print(Panel(buffer.text, title=title, expand=False))

    def _peers(self) -> None:
        peers = self.client.session.peers
        if not peers:
            self.console.print("[dim]No peers[/dim]")
            return
        table = Table("ID", "Name", "Color")
        for peer in peers:
            table.add_row(peer.id, peer.name, f"[{peer.color}]{peer.color}[/]" if peer.color else "")
        self.console.print(table)

    def _show_prompt(self) -> None:
        text = self.editor.pending_prompt
        if text is not None:
            self.console.print(text, end="")


def read_input(shell: SessionShell, lines: Iterable[str]) -> None:
    """Feed input lines to the shell through the EditorQueue, then quit.

    Lines are queued as they are read. Input piped from a file is queued all
    at once, ahead of any daemon reply, so a script cannot wait for a room
    to be entered before syncing.
    """
    queue = shell.client.queue
    for line in lines:
        queue.schedule(shell.handle_line, line)
    queue.schedule(shell.quit)


@click.command()
@click.argument("files", nargs=-1, type=click.Path(dir_okay=False, path_type=Path))
@click.option("--server", "server_url", help="Signaling server URL")
@click.option("--name", "username", help="Display name announced to peers")
@click.option("--color", help="Cursor color as #rrggbb")
@click.option(
    "--daemon",
    "daemon_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Daemon executable",
)
@click.pass_context
def session(
    ctx: click.Context,
    files: tuple[Path, ...],
    server_url: str | None,
    username: str | None,
    color: str | None,
    daemon_path: Path | None,
) -> None:
    """Run an interactive collaboration session in the terminal.

    FILES are opened as buffers. Type 'help' for commands.

    Commands read from a pipe run back to back and the session quits at
    end of input, before daemon replies such as room_created arrive.
    Scripted input should not rely on replies; use an interactive terminal
    for create or join followed by sync.
    """
    config = load_config(
        (ctx.obj or {}).get("config_path"),
        server_url=server_url,
        username=username,
        color=color,
        daemon_path=daemon_path,
    )

    console = Console()
    editor = FileEditor()
    client = ApexLinkClient(config, editor, Notifier(console, enabled=config.auto_notify))

    watcher: BufferWatcher | None = None
    if config.auto_reload:
        watcher = BufferWatcher(lambda: client.queue.schedule(shell.check_time))
    shell = SessionShell(client, editor, console, watcher)

    for path in files:
        shell.open(str(path))
    if watcher is not None:
        watcher.start()

    console.print("[bold]ApexLink[/bold] session. Type 'help' for commands.")
    threading.Thread(
        target=read_input,
        args=(shell, sys.stdin),
        name="apexlink-stdin",
        daemon=True,
    ).start()

    try:
        client.queue.run_forever()
    except KeyboardInterrupt:
        logger.debug("Interrupted")
    finally:
        client.shutdown()
        if watcher is not None:
            watcher.stop()
