"""Run one external command, streaming its output line by line."""

from __future__ import annotations

import asyncio
import contextlib
import os
from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog

from ..errors import CommandFailure, ExecutionError

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

    from ..protocols._base import Command

logger = structlog.get_logger(__name__)

LineSink = Callable[[str], None]

# asyncio's default of 64 KiB is too small for some build tools' progress lines
_STREAM_LIMIT = 1024 * 1024


class ProcessRunner:
    """Executes commands with piped stdout/stderr.

    Each completed line is handed to its sink as soon as it is read, so callers
    can show progress while the process is still running. A non-zero exit is a
    normal ``False`` result; failing to spawn raises ExecutionError.

    Args:
        timeout: Seconds after which a command is killed and reported as failed.
            None (the default) waits forever.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout

    async def run(
        self,
        command: Command,
        *,
        cwd: Path | None = None,
        on_stdout: LineSink,
        on_stderr: LineSink,
        env: Mapping[str, str] | None = None,
    ) -> bool:
        return await self._execute(command, cwd, on_stdout, on_stderr, env) == 0

    async def _execute(
        self,
        command: Command,
        cwd: Path | None,
        on_stdout: LineSink,
        on_stderr: LineSink,
        env: Mapping[str, str] | None,
    ) -> int | None:
        """Returns the exit status, or None when the command timed out."""
        log = logger.bind(command=str(command), cwd=str(cwd) if cwd else None)
        log.debug("running_command")

        try:
            process = await asyncio.create_subprocess_exec(
                *command.argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env={**os.environ, **env} if env else None,
                limit=_STREAM_LIMIT,
            )
        except (FileNotFoundError, PermissionError, NotADirectoryError) as e:
            log.warning("command_spawn_failed", error=str(e))
            raise ExecutionError(f"Cannot execute {command.command}: {e}", command=command) from e

        readers = [
            asyncio.ensure_future(_pump(process.stdout, on_stdout)),
            asyncio.ensure_future(_pump(process.stderr, on_stderr)),
        ]
        try:
            await asyncio.wait_for(asyncio.gather(*readers, process.wait()), timeout=self.timeout)
        except asyncio.TimeoutError:
            log.warning("command_timeout", timeout=self.timeout)
            await _kill(process)
            on_stderr(f"{command} timed out after {self.timeout} seconds")
            return None
        except BaseException:
            # Reader or sink errors and cancellation must not leave the child running
            for reader in readers:
                reader.cancel()
            await _kill(process)
            raise

        log.debug("command_completed", returncode=process.returncode)
        return process.returncode

    async def capture(
        self,
        command: Command,
        *,
        cwd: Path | None = None,
        on_stderr: LineSink,
    ) -> tuple[bool, list[str]]:
        """Run a command and collect its stdout lines instead of streaming them."""
        lines: list[str] = []
        ok = await self.run(command, cwd=cwd, on_stdout=lines.append, on_stderr=on_stderr)
        return ok, lines

    async def check_output(self, command: Command, *, cwd: Path | None = None) -> list[str]:
        """Run a command and return its stdout lines.

        Raises:
            ExecutionError: If the command cannot be started.
            CommandFailure: If it exits non-zero or times out.
        """
        lines: list[str] = []
        errors: list[str] = []
        returncode = await self._execute(command, cwd, lines.append, errors.append, None)
        if returncode != 0:
            raise CommandFailure(command, -1 if returncode is None else returncode, "\n".join(errors))
        if errors:
            logger.debug("command_stderr", command=str(command), stderr=errors)
        return lines


async def _pump(stream: asyncio.StreamReader | None, sink: LineSink) -> None:
    if stream is None:
        return
    # A line longer than the stream limit is collected in pieces, not dropped
    pending = b""
    while True:
        try:
            chunk = await stream.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            if pending or e.partial:
                sink(_decode(pending + e.partial))
            return
        except asyncio.LimitOverrunError as e:
            pending += await stream.readexactly(e.consumed)
            continue
        sink(_decode(pending + chunk))
        pending = b""


def _decode(line: bytes) -> str:
    return line.decode("utf-8", errors="replace").rstrip("\r\n")


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
    await process.wait()
