"""Line-delimited JSON transport over the daemon's standard streams.

Reader threads own the child's stdout and stderr. They split the byte
stream into lines and decode events off the editor thread, then hand each
decoded event to the EditorQueue; nothing here mutates editor state.
"""

import logging
import threading
from collections.abc import Callable
from typing import IO

from apexlink.daemon.protocol import Command, Event, decode_event, encode_command
from apexlink.notify import Notifier
from apexlink.scheduler import EditorQueue

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


class LineBuffer:
    """Splits an arbitrarily chunked byte stream into complete lines."""

    def __init__(self) -> None:
        """Initialize with no pending partial line."""
        self._pending = bytearray()

    @property
    def pending(self) -> bytes:
        """Bytes received after the last newline."""
        return bytes(self._pending)

    def feed(self, chunk: bytes) -> list[bytes]:
        """Add a chunk and return the lines it completed.

        Args:
            chunk: Raw bytes in the order they were read.

        Returns:
            Complete lines without their newline (a trailing CR is stripped too).
        """
        self._pending.extend(chunk)
        lines: list[bytes] = []
        while True:
            index = self._pending.find(b"\n")
            if index < 0:
                return lines
            line = bytes(self._pending[:index]).rstrip(b"\r")
            del self._pending[: index + 1]
            lines.append(line)

    def flush(self) -> bytes:
        """Return and clear any unterminated trailing data."""
        rest = bytes(self._pending)
        self._pending.clear()
        return rest


class ProtocolTransport:
    """Owns the daemon's stdin/stdout/stderr for the protocol.

    Each connect() starts a new generation. Events are tagged with the
    generation whose stdout they were read from, and an event whose
    generation is no longer current when its turn on the queue comes is
    dropped, so a stopped or replaced daemon can never change the session.

    Example:
        transport = ProtocolTransport(editor_queue, handler.handle, notifier)
        transport.connect(process.stdin, process.stdout, process.stderr)
        transport.send(RequestStatus())
    """

    def __init__(
        self,
        editor_queue: EditorQueue,
        on_event: Callable[[Event], None],
        notifier: Notifier,
    ) -> None:
        """Initialize the transport.

        Args:
            editor_queue: Where decoded events and stderr lines are handed off.
            on_event: Event handler, always invoked on the queue's consumer.
            notifier: Used to report send failures and relay stderr.
        """
        self._queue = editor_queue
        self._on_event = on_event
        self._notifier = notifier
        self._stdin: IO[bytes] | None = None
        self._write_lock = threading.Lock()
        self._generation = 0

    @property
    def is_connected(self) -> bool:
        """Check if a daemon stdin is attached."""
        return self._stdin is not None

    @property
    def generation(self) -> int:
        """Number of the current connection; bumped on connect and disconnect."""
        return self._generation

    def connect(
        self,
        stdin: IO[bytes],
        stdout: IO[bytes] | None = None,
        stderr: IO[bytes] | None = None,
    ) -> list[threading.Thread]:
        """Attach the daemon's streams and start the reader threads.

        The reader threads close their stream once it reaches EOF.

        Args:
            stdin: Writable stream the daemon reads commands from.
            stdout: Readable stream of protocol events.
            stderr: Readable stream of diagnostics.

        Returns:
            The started reader threads.
        """
        with self._write_lock:
            self._generation += 1
            self._stdin = stdin
            generation = self._generation

        readers: list[threading.Thread] = []
        if stdout is not None:
            readers.append(
                self._start_reader("apexlink-stdout", self._read_stdout, stdout, generation)
            )
        if stderr is not None:
            readers.append(
                self._start_reader("apexlink-stderr", self._read_stderr, stderr, generation)
            )
        return readers

    def disconnect(self) -> None:
        """Detach from the daemon.

        Events already read from the old daemon but not yet handled are
        dropped.
        """
        with self._write_lock:
            self._stdin = None
            self._generation += 1

    def send(self, command: Command) -> bool:
        """Write one command line to the daemon.

        Fire-and-forget: no acknowledgment is awaited.

        Args:
            command: The command to send.

        Returns:
            True if the line was written, False if no daemon is running or
            the command cannot be encoded.
        """
        try:
            data = encode_command(command)
        except (TypeError, ValueError) as e:
            self._notifier.error(f"Cannot encode {command.cmd} command: {e}")
            return False

        with self._write_lock:
            stdin = self._stdin
            if stdin is None:
                self._notifier.error("Daemon not running")
                return False
            try:
                stdin.write(data)
                stdin.flush()
            except (OSError, ValueError) as e:
                logger.debug("Write to daemon failed: %s", e)
                self._notifier.error("Daemon not running")
                return False

        logger.debug("Sent %s command", command.cmd)
        return True

    def feed(self, chunk: bytes, buffer: LineBuffer, generation: int | None = None) -> int:
        """Decode the events completed by a stdout chunk and schedule them.

        Args:
            chunk: Raw bytes read from stdout.
            buffer: The line buffer for this stream.
            generation: Connection the chunk was read from. Defaults to the
                current one.

        Returns:
            Number of events scheduled.
        """
        if generation is None:
            generation = self._generation
        count = 0
        for line in buffer.feed(chunk):
            event = decode_event(line)
            if event is not None:
                self._queue.schedule(self._deliver, generation, event)
                count += 1
        return count

    def _deliver(self, generation: int, event: Event) -> None:
        if generation != self._generation or self._stdin is None:
            logger.debug("Dropping %s event from a disconnected daemon", event.event)
            return
        self._on_event(event)

    def _start_reader(
        self,
        name: str,
        target: Callable[[IO[bytes], int], None],
        stream: IO[bytes],
        generation: int,
    ) -> threading.Thread:
        thread = threading.Thread(
            target=target, args=(stream, generation), name=name, daemon=True
        )
        thread.start()
        return thread

    def _read_stdout(self, stream: IO[bytes], generation: int) -> None:
        buffer = LineBuffer()
        read = getattr(stream, "read1", stream.read)
        try:
            while True:
                chunk = read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                self.feed(chunk, buffer, generation)
        except (OSError, ValueError) as e:
            logger.debug("Daemon stdout closed: %s", e)
        finally:
            stream.close()

        rest = buffer.flush()
        if rest:
            event = decode_event(rest)
            if event is not None:
                self._queue.schedule(self._deliver, generation, event)

    def _read_stderr(self, stream: IO[bytes], generation: int) -> None:
        try:
            for raw in stream:
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                if line:
                    self._queue.schedule(self._notifier.relay_stderr, line)
        except (OSError, ValueError) as e:
            logger.debug("Daemon stderr closed (connection %d): %s", generation, e)
        finally:
            stream.close()
