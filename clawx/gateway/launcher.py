"""Gateway child-process spawning with captured output."""

from __future__ import annotations

import asyncio
import os
import shutil
from typing import Any, Callable

from loguru import logger

from clawx.utils.exceptions import SpawnFailureError
from clawx.utils.helpers import expand_path

ExitCallback = Callable[["ProcessHandle", int | None], None]
ErrorCallback = Callable[[BaseException], None]

_STREAM_LIMIT = 1024 * 1024


def expand_args(args: list[str], **values: Any) -> list[str]:
    """Replace {name} placeholders in launch arguments."""
    out: list[str] = []
    for arg in args:
        try:
            out.append(arg.format(**values))
        except (KeyError, IndexError, ValueError):
            out.append(arg)
    return out


class ProcessHandle:
    """A running gateway process; fires ``on_exit`` exactly once."""

    def __init__(
        self,
        proc: asyncio.subprocess.Process,
        *,
        command: str,
        on_exit: ExitCallback | None = None,
    ):
        self._proc = proc
        self.command = command
        self._on_exit = on_exit
        self.exit_code: int | None = None
        self._stream_tasks = [
            asyncio.create_task(_pump_stream(proc.stdout, "stdout")),
            asyncio.create_task(_pump_stream(proc.stderr, "stderr")),
        ]
        self._watch_task = asyncio.create_task(self._watch())

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode

    @property
    def running(self) -> bool:
        return self._proc.returncode is None

    async def _watch(self) -> None:
        code = await self._proc.wait()
        await asyncio.gather(*self._stream_tasks, return_exceptions=True)
        # Negative return codes mean the process was killed by a signal.
        self.exit_code = code if code >= 0 else None
        logger.info("Gateway process {} exited with code: {}", self.pid, self.exit_code)
        if self._on_exit is None:
            return
        try:
            self._on_exit(self, self.exit_code)
        except Exception as e:
            logger.warning("Gateway exit handler error: {}", e)

    async def wait(self) -> int | None:
        await asyncio.shield(self._watch_task)
        return self.exit_code

    async def terminate(self, timeout: float = 5.0) -> int | None:
        """SIGTERM, then SIGKILL when the process outlives ``timeout``."""
        if self.running:
            try:
                self._proc.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(asyncio.shield(self._watch_task), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Gateway process {} ignored SIGTERM, killing", self.pid)
                try:
                    self._proc.kill()
                except ProcessLookupError:
                    pass
        return await self.wait()


async def _pump_stream(stream: asyncio.StreamReader | None, origin: str) -> None:
    if stream is None:
        return
    async for raw in stream:
        text = raw.decode("utf-8", errors="replace").rstrip()
        if not text:
            continue
        if origin == "stderr":
            logger.warning("[gateway:{}] {}", origin, text)
        else:
            logger.info("[gateway:{}] {}", origin, text)


class ProcessLauncher:
    """Spawns the gateway with stdin detached and stdout/stderr piped to the log."""

    async def launch(
        self,
        command: str,
        args: list[str],
        *,
        env: dict[str, str] | None = None,
        cwd: str | None = None,
        on_exit: ExitCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> ProcessHandle:
        executable = shutil.which(command) or command
        spawn_env = os.environ.copy()
        if env:
            spawn_env.update(env)
        spawn_cwd = str(expand_path(cwd)) if cwd else None
        logger.info("Starting gateway: {} {}", command, " ".join(args))
        try:
            proc = await asyncio.create_subprocess_exec(
                executable,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=spawn_env,
                cwd=spawn_cwd,
                limit=_STREAM_LIMIT,
            )
        except OSError as e:
            logger.error("Gateway process error: {}", e)
            if on_error is not None:
                on_error(e)
            raise SpawnFailureError(f"Failed to spawn gateway: {e}", command=command) from e
        logger.info("Gateway process started with pid {}", proc.pid)
        return ProcessHandle(proc, command=command, on_exit=on_exit)
