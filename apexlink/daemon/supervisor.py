"""Lifecycle of the apexlink-daemon child process."""

import contextlib
import logging
import os
import shutil
import subprocess
import threading
from collections.abc import Callable
from pathlib import Path

from apexlink.config import ApexLinkConfig
from apexlink.daemon.transport import ProtocolTransport
from apexlink.exceptions import DaemonNotFoundError, DaemonStartError
from apexlink.notify import Notifier
from apexlink.scheduler import EditorQueue

logger = logging.getLogger(__name__)

DAEMON_NAME = "apexlink-daemon"
EDITOR_MODE = "nvim"
STOP_TIMEOUT_SECONDS = 2.0

# Checkout layout: <root>/apexlink/daemon/target/{release,debug}/apexlink-daemon
PLUGIN_ROOT = Path(__file__).resolve().parents[2]
DEV_CHECKOUT = Path("NeovimGUI") / "apex-pde"

BUILD_HINT = "Build with: cd apexlink/daemon && cargo build --release"


def _build_outputs(root: Path) -> list[Path]:
    target = root / "apexlink" / "daemon" / "target"
    return [target / "release" / DAEMON_NAME, target / "debug" / DAEMON_NAME]


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def daemon_candidates() -> list[Path]:
    """List the install-relative and development locations to probe, in order.

    Returns:
        Candidate executable paths, release builds before debug builds.
    """
    return _build_outputs(PLUGIN_ROOT) + _build_outputs(Path.home() / DEV_CHECKOUT)


def find_daemon(config: ApexLinkConfig) -> str:
    """Locate the daemon executable.

    Search order:
    1. daemon_path from the config
    2. Build outputs relative to this package's checkout (release, then debug)
    3. The development checkout under ~/NeovimGUI/apex-pde
    4. apexlink-daemon on PATH

    Args:
        config: Client configuration.

    Returns:
        Path or command name of the executable.

    Raises:
        DaemonNotFoundError: If no candidate is executable.
    """
    if config.daemon_path is not None:
        found = shutil.which(str(config.daemon_path.expanduser()))
        if found:
            return found
        logger.debug("Configured daemon_path is not executable: %s", config.daemon_path)

    for candidate in daemon_candidates():
        if _is_executable(candidate):
            return str(candidate)

    if shutil.which(DAEMON_NAME):
        return DAEMON_NAME

    raise DaemonNotFoundError(f"Cannot find {DAEMON_NAME} binary. {BUILD_HINT}")


class DaemonSupervisor:
    """Spawns, watches and stops the daemon process.

    At most one child is alive per supervisor. Every end of the child, a
    requested stop or an exit on its own, is reported once through on_exit.
    """

    def __init__(
        self,
        config: ApexLinkConfig,
        transport: ProtocolTransport,
        editor_queue: EditorQueue,
        notifier: Notifier,
        on_exit: Callable[[int], None],
    ) -> None:
        """Initialize the supervisor.

        Args:
            config: Client configuration (daemon_path, server_url).
            transport: Transport to attach the child's streams to.
            editor_queue: Where exit notifications are handed off.
            notifier: Used for user-facing reports.
            on_exit: Called on the queue's consumer with the exit code once
                the running child has stopped or exited.
        """
        self._config = config
        self._transport = transport
        self._queue = editor_queue
        self._notifier = notifier
        self._on_exit = on_exit
        self._process: subprocess.Popen[bytes] | None = None

    @property
    def is_running(self) -> bool:
        """Check if a daemon process is registered as running."""
        return self._process is not None

    @property
    def pid(self) -> int | None:
        """Get the daemon's process id."""
        return self._process.pid if self._process else None

    def command_line(self, executable: str) -> list[str]:
        """Build the argument vector for the daemon."""
        return [executable, EDITOR_MODE, "--server", self._config.server_url]

    def start(self) -> bool:
        """Start the daemon if it is not already running.

        Returns:
            True if a daemon is running afterwards.
        """
        if self._process is not None:
            self._notifier.info("Daemon already running")
            return True

        try:
            self._process = self._spawn()
        except (DaemonNotFoundError, DaemonStartError) as e:
            self._notifier.error(str(e))
            return False

        process = self._process
        readers = self._transport.connect(process.stdin, process.stdout, process.stderr)  # type: ignore[arg-type]
        threading.Thread(
            target=self._watch,
            args=(process, readers),
            name="apexlink-exit-watch",
            daemon=True,
        ).start()

        logger.info("Daemon started (PID %d)", process.pid)
        return True

    def stop(self) -> bool:
        """Terminate the daemon and reset the session through on_exit.

        Returns:
            True if a running daemon was stopped, False if none was running.
        """
        process = self._process
        if process is None:
            return False

        self._process = None
        self._transport.disconnect()
        _terminate(process)
        self._notifier.info("Daemon stopped")
        self._on_exit(process.returncode)
        return True

    def _spawn(self) -> "subprocess.Popen[bytes]":
        executable = find_daemon(self._config)
        args = self.command_line(executable)
        logger.debug("Spawning daemon: %s", args)
        try:
            return subprocess.Popen(
                args,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise DaemonStartError(f"Failed to start daemon: {e}") from e

    def _watch(
        self, process: "subprocess.Popen[bytes]", readers: list[threading.Thread]
    ) -> None:
        code = process.wait()
        # Events the child wrote before exiting must be queued ahead of the exit.
        for reader in readers:
            reader.join(timeout=STOP_TIMEOUT_SECONDS)
        self._queue.schedule(self._handle_exit, process, code)

    def _handle_exit(self, process: "subprocess.Popen[bytes]", code: int) -> None:
        if process is not self._process:
            logger.debug("Ignoring exit of stopped daemon (PID %d)", process.pid)
            return

        self._process = None
        self._transport.disconnect()
        if code != 0:
            self._notifier.warning(f"Daemon exited with code {code}")
        else:
            logger.info("Daemon exited")
        self._on_exit(code)


def _terminate(process: "subprocess.Popen[bytes]") -> None:
    """Close stdin and terminate, killing the process if it lingers."""
    if process.stdin:
        with contextlib.suppress(OSError):
            process.stdin.close()

    if process.poll() is not None:
        return

    process.terminate()
    try:
        process.wait(timeout=STOP_TIMEOUT_SECONDS)
    except subprocess.TimeoutExpired:
        logger.warning("Daemon did not exit after SIGTERM, killing (PID %d)", process.pid)
        process.kill()
        process.wait()
