"""Spawn tsc processes on the asyncio loop and stream their output."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)

OutputHandler = Callable[[Optional[str]], None]
ExitHandler = Callable[[Optional[int]], None]

CHUNK_SIZE = 64 * 1024


class ProcessHandle(Protocol):
    def kill(self) -> None: ...


class ProcessLauncher(Protocol):
    async def launch(
        self,
        cmd: Sequence[str],
        on_output: OutputHandler,
        on_exit: ExitHandler,
    ) -> ProcessHandle: ...


class AsyncioProcess:
    """Handle around a running subprocess and the task pumping its stdout."""

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        self.process = process
        self.pump: asyncio.Task | None = None

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode

    def kill(self) -> None:
        if self.process.returncode is not None:
            return
        try:
            self.process.kill()
        except ProcessLookupError:  # pragma: no cover - exited between checks
            pass


class AsyncioLauncher:
    """Launch commands with ``asyncio.create_subprocess_exec``.

    Each read from stdout is handed to ``on_output`` as one chunk, since tsc
    flushes once per logical event. ``on_output(None)`` marks end of stream and
    is always followed by ``on_exit``.
    """

    def __init__(self, cwd: Optional[str] = None, env: Optional[dict[str, str]] = None) -> None:
        self.cwd = cwd
        self.env = env

    async def launch(
        self,
        cmd: Sequence[str],
        on_output: OutputHandler,
        on_exit: ExitHandler,
    ) -> AsyncioProcess:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=self.cwd,
            env=self.env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
        logger.debug("Spawned pid %s: %s", process.pid, " ".join(cmd))
        handle = AsyncioProcess(process)
        handle.pump = asyncio.create_task(_pump(process, on_output, on_exit))
        return handle


async def _pump(
    process: asyncio.subprocess.Process,
    on_output: OutputHandler,
    on_exit: ExitHandler,
) -> None:
    assert process.stdout is not None
    while True:
        data = await process.stdout.read(CHUNK_SIZE)
        if not data:
            break
        on_output(data.decode("utf-8", errors="replace"))
    on_output(None)
    return_code = await process.wait()
    logger.debug("pid %s exited with code %s", process.pid, return_code)
    on_exit(return_code)
