"""Subprocess runner for the cluster CLI tools.

Two variants share one argv contract: ``run`` buffers both streams and
resolves on exit, ``spawn`` keeps the process alive and pushes decoded
output chunks to a callback until it exits or is killed.
"""

from __future__ import annotations

import asyncio
import codecs
import contextlib
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import structlog

from crossplane_explorer.integrations.kubernetes.exceptions import (
    ProcessError,
    ProcessTimeoutError,
    SpawnError,
)

logger = structlog.get_logger()

READ_CHUNK_SIZE = 4096

DataCallback = Callable[[str], None]
ExitCallback = Callable[[int], None]


@dataclass(frozen=True)
class ProcessResult:
    """Buffered output of a completed command."""

    stdout: str
    stderr: str
    exit_code: int = 0


def _decode(data: bytes | None) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


class LongLivedProcess:
    """Handle to a streaming subprocess started by :meth:`ProcessRunner.spawn`.

    Both output streams are read concurrently and forwarded verbatim to
    ``on_data``. ``on_exit`` fires once, after both streams have drained.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        argv: Sequence[str],
        on_data: DataCallback,
        on_exit: ExitCallback | None = None,
    ) -> None:
        self._process = process
        self._argv = list(argv)
        self._on_data = on_data
        self._on_exit = on_exit
        self._killed = False
        self._log = logger.bind(pid=process.pid, command=self._argv[0])
        self._pumps = [
            asyncio.create_task(self._pump(stream))
            for stream in (process.stdout, process.stderr)
            if stream is not None
        ]
        self._done: asyncio.Task[int] = asyncio.create_task(self._finish())

    @property
    def pid(self) -> int:
        """OS process id."""
        return self._process.pid

    @property
    def running(self) -> bool:
        """True until the process has exited and its streams drained."""
        return not self._done.done()

    @property
    def killed(self) -> bool:
        """True once :meth:`kill` has been called."""
        return self._killed

    async def _pump(self, stream: asyncio.StreamReader) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while chunk := await stream.read(READ_CHUNK_SIZE):
            text = decoder.decode(chunk)
            if text:
                self._on_data(text)
        tail = decoder.decode(b"", final=True)
        if tail:
            self._on_data(tail)

    async def _finish(self) -> int:
        await asyncio.gather(*self._pumps)
        code = await self._process.wait()
        self._log.debug("long_lived_process_exited", exit_code=code)
        if self._on_exit is not None:
            self._on_exit(code)
        return code

    def kill(self) -> None:
        """Terminate the process. Safe to call more than once."""
        self._killed = True
        if self._process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                self._process.kill()
            self._log.debug("long_lived_process_killed")

    async def wait(self) -> int:
        """Wait for the process to exit and return its exit code."""
        return await self._done


class ProcessRunner:
    """Runs external commands as asyncio subprocesses.

    Args:
        timeout: Optional limit in seconds for buffered commands. ``None``
            leaves them unbounded. Long-lived processes are never timed out.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._timeout = timeout
        self._log = logger.bind(entity="process_runner")

    @property
    def timeout(self) -> float | None:
        """Configured timeout for buffered commands."""
        return self._timeout

    async def _launch(
        self,
        argv: list[str],
        *,
        with_stdin: bool,
        cwd: str | None = None,
    ) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *argv,
                cwd=cwd,
                stdin=asyncio.subprocess.PIPE if with_stdin else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self._log.warning("spawn_failed", command=argv[0], error=str(e))
            raise SpawnError(
                message=f"Failed to launch {argv[0]}: {e}",
                command=argv[0],
                original_error=e,
            ) from e

    async def run(
        self,
        command: str,
        args: Sequence[str],
        stdin: str | None = None,
        cwd: str | None = None,
    ) -> ProcessResult:
        """Run a command to completion and return its buffered output.

        When ``stdin`` is given it is written in full and the stream closed
        before the runner waits on the exit status.

        Args:
            command: Executable name or path.
            args: Arguments after the executable.
            stdin: Optional text piped to the process input.
            cwd: Working directory for the process; inherited when None.

        Returns:
            The captured stdout and stderr.

        Raises:
            SpawnError: If the executable cannot be launched.
            ProcessError: If the command exits non-zero.
            ProcessTimeoutError: If a configured timeout elapses.
        """
        argv = [command, *args]
        self._log.debug(
            "running_command", argv=argv, has_stdin=stdin is not None, cwd=cwd
        )
        process = await self._launch(argv, with_stdin=stdin is not None, cwd=cwd)
        payload = stdin.encode("utf-8") if stdin is not None else None

        try:
            if self._timeout is None:
                out, err = await process.communicate(payload)
            else:
                out, err = await asyncio.wait_for(process.communicate(payload), self._timeout)
        except TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            self._log.warning("command_timed_out", argv=argv, timeout=self._timeout)
            raise ProcessTimeoutError(self._timeout or 0, command=argv) from None

        stdout, stderr = _decode(out), _decode(err)
        exit_code = process.returncode if process.returncode is not None else -1
        if exit_code != 0:
            self._log.debug("command_failed", argv=argv, exit_code=exit_code)
            raise ProcessError(
                message=f"Command failed: {stderr.strip() or f'exit code {exit_code}'}",
                exit_code=exit_code,
                stderr=stderr,
                stdout=stdout,
                command=argv,
            )
        return ProcessResult(stdout=stdout, stderr=stderr, exit_code=exit_code)

    async def spawn(
        self,
        command: str,
        args: Sequence[str],
        on_data: DataCallback,
        on_exit: ExitCallback | None = None,
        stdin: str | None = None,
    ) -> LongLivedProcess:
        """Start a long-lived command that streams its output.

        Args:
            command: Executable name or path.
            args: Arguments after the executable.
            on_data: Receives each decoded stdout/stderr chunk verbatim.
            on_exit: Receives the exit code once the process ends.
            stdin: Optional text written and closed before streaming starts.

        Returns:
            A handle exposing ``kill()`` and ``wait()``.

        Raises:
            SpawnError: If the executable cannot be launched.
        """
        argv = [command, *args]
        self._log.debug("spawning_command", argv=argv)
        process = await self._launch(argv, with_stdin=stdin is not None)

        if stdin is not None and process.stdin is not None:
            # The child may exit before reading its input.
            with contextlib.suppress(BrokenPipeError, ConnectionResetError):
                process.stdin.write(stdin.encode("utf-8"))
                await process.stdin.drain()
            process.stdin.close()
            with contextlib.suppress(BrokenPipeError, ConnectionResetError):
                await process.stdin.wait_closed()

        return LongLivedProcess(process, argv, on_data, on_exit)
