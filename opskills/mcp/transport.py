"""MCP stdio transport: a child process speaking line-delimited JSON-RPC.

Lifecycle:
    spawn()  launch the process with piped stdin/stdout
    start()  launch the read loop that feeds decoded envelopes to a sink
    send()   write one envelope (writes are serialized)
    stop()   close stdin, terminate, kill after a grace period, join the loop

Once stop() has begun the transport never delivers another envelope.
"""

import asyncio
import logging
import os
from typing import Callable, Dict, List, Optional

from opskills.constants import DEFAULT_STOP_GRACE, STREAM_LIMIT
from opskills.errors import DecodeError, TransportError
from opskills.protocol.jsonrpc import Message, decode_message, encode_message

MessageSink = Callable[[Message], None]
CloseCallback = Callable[[Optional[BaseException]], None]


class StdioTransport:
    """Spawns an MCP server process and exchanges envelopes over its stdio."""

    def __init__(
        self,
        command: str,
        args: Optional[List[str]] = None,
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.command = command
        self.args = [str(a) for a in (args or [])]
        self.env = dict(env or {})
        self.cwd = cwd
        self.logger = logger or logging.getLogger(__name__)

        self._process: Optional[asyncio.subprocess.Process] = None
        self._read_task: Optional[asyncio.Task] = None
        self._sink: Optional[MessageSink] = None
        self._on_close: Optional[CloseCallback] = None
        self._write_lock = asyncio.Lock()
        self._stop_lock = asyncio.Lock()
        self._stopping = False
        self._stopped = False
        self._eof = False

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode if self._process else None

    @property
    def is_running(self) -> bool:
        """Process alive, read loop not finished, stop not requested."""
        return (
            self._process is not None
            and self._process.returncode is None
            and not self._eof
            and not self._stopping
        )

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    def describe(self) -> str:
        return " ".join([self.command, *self.args])

    async def spawn(self) -> None:
        """Launch the child process.

        Raises:
            TransportError: If already spawned or the process cannot start.
        """
        if self._process is not None or self._stopping:
            raise TransportError(f"transport already spawned: {self.describe()}")

        process_env = os.environ.copy()
        process_env.update(self.env)

        try:
            self._process = await asyncio.create_subprocess_exec(
                self.command,
                *self.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                env=process_env,
                cwd=self.cwd,
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            raise TransportError(f"failed to start command {self.describe()}: {e}", e) from e

        self.logger.debug(f"Spawned {self.describe()} (pid {self._process.pid})")

    def start(self, sink: MessageSink, on_close: Optional[CloseCallback] = None) -> None:
        """Start the background read loop.

        Args:
            sink: Receives every decoded envelope. Must not block.
            on_close: Called once when the output stream ends or fails; the
                argument is None on a clean end-of-stream.

        Raises:
            TransportError: If the process is not running or already started.
        """
        if self._process is None or self._process.stdout is None:
            raise TransportError("transport not spawned")
        if self._read_task is not None:
            raise TransportError("transport already started")
        if self._stopping:
            raise TransportError("transport stopped")

        self._sink = sink
        self._on_close = on_close
        self._read_task = asyncio.get_running_loop().create_task(
            self._read_loop(), name=f"mcp-read-{self._process.pid}"
        )

    async def send(self, message: Message) -> None:
        """Write one envelope to the process's stdin.

        Raises:
            TransportError: If the transport is stopped or the pipe is closed.
        """
        if self._process is None or self._process.stdin is None:
            raise TransportError("transport not spawned")
        if self._stopping:
            raise TransportError("transport stopped")

        data = encode_message(message)
        async with self._write_lock:
            stdin = self._process.stdin
            if stdin.is_closing():
                raise TransportError("stdin closed")
            try:
                stdin.write(data)
                await stdin.drain()
            except (BrokenPipeError, ConnectionResetError) as e:
                raise TransportError(f"failed to write to {self.describe()}: {e}", e) from e

    async def stop(self, grace: float = DEFAULT_STOP_GRACE) -> None:
        """Stop the process and join the read loop. Idempotent."""
        async with self._stop_lock:
            if self._stopped:
                return
            self._stopping = True

            proc = self._process
            if proc is not None:
                if proc.stdin is not None and not proc.stdin.is_closing():
                    proc.stdin.close()
                    try:
                        await proc.stdin.wait_closed()
                    except (BrokenPipeError, ConnectionResetError):
                        pass

                if proc.returncode is None:
                    try:
                        proc.terminate()
                    except ProcessLookupError:
                        pass
                    try:
                        await asyncio.wait_for(proc.wait(), timeout=grace)
                    except asyncio.TimeoutError:
                        self.logger.warning(
                            f"{self.describe()} did not exit after {grace}s, killing"
                        )
                        try:
                            proc.kill()
                        except ProcessLookupError:
                            pass
                        await proc.wait()

            if self._read_task is not None:
                if not self._read_task.done():
                    self._read_task.cancel()
                await asyncio.gather(self._read_task, return_exceptions=True)

            self._stopped = True
            self.logger.debug(f"Stopped {self.describe()}")

    async def _read_loop(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        stdout = self._process.stdout
        error: Optional[BaseException] = None

        try:
            while True:
                try:
                    line = await stdout.readline()
                except ValueError as e:
                    # line longer than STREAM_LIMIT
                    error = TransportError(f"oversized message from {self.describe()}: {e}", e)
                    break
                except (OSError, ConnectionResetError) as e:
                    error = TransportError(f"read failed from {self.describe()}: {e}", e)
                    break

                if not line:
                    break
                if self._stopping:
                    break
                if not line.strip():
                    continue

                try:
                    message = decode_message(line)
                except DecodeError as e:
                    self.logger.warning(f"Dropping undecodable message from {self.describe()}: {e.message}")
                    continue

                try:
                    self._sink(message)
                except Exception:
                    self.logger.exception("Message sink failed")
        finally:
            self._eof = True
            if self._on_close is not None:
                try:
                    self._on_close(error)
                except Exception:
                    self.logger.exception("Close callback failed")
