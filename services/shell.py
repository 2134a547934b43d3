import asyncio
from typing import Optional

import psutil
from loguru import logger


class ProcessExecutionError(Exception):
    """A shell command exited nonzero, failed to spawn or timed out."""

    def __init__(self, command_line: str, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.command_line = command_line
        self.message = message
        self.returncode = returncode


def kill_process_tree(pid: int):
    """Kill a process and every descendant it spawned."""
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return

    for child in parent.children(recursive=True):
        try:
            child.kill()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue

    try:
        parent.kill()
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        pass


class Shell:
    """
    Runs one shell command line and captures its stdout.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    async def execute(self, command_line: str, timeout: Optional[float] = None) -> str:
        """
        Execute a command line through the system shell.

        Args:
            command_line: Full command line, passed to /bin/sh
            timeout: Seconds to wait before killing the process tree

        Returns:
            Captured stdout text

        Raises:
            ProcessExecutionError: on spawn failure, nonzero exit or timeout
        """
        timeout = timeout if timeout is not None else self.timeout
        logger.debug(f"Executing: {command_line}")

        try:
            process = await asyncio.create_subprocess_shell(
                command_line,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProcessExecutionError(command_line, f"failed to spawn: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
        except asyncio.TimeoutError:
            kill_process_tree(process.pid)
            await process.wait()
            raise ProcessExecutionError(command_line, f"timed out after {timeout:g}s")

        output = stdout.decode(errors="replace")

        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip()
            if not message:
                message = f"exited with status {process.returncode}"
            raise ProcessExecutionError(command_line, message, process.returncode)

        return output
