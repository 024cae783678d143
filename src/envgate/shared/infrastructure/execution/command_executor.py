"""
Command Executor Service.

Runs external tool binaries asynchronously with timeouts, output capture
and process-group cleanup on timeout or cancellation.
"""

import asyncio
import contextlib
import os
import shlex
import signal
import time
from dataclasses import dataclass
from pathlib import Path

from envgate.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

# Exit codes used when the process never produced one of its own
TIMEOUT_EXIT_CODE = -1
EXEC_ERROR_EXIT_CODE = -2

# How long a timed-out process group gets to exit after SIGTERM before SIGKILL
KILL_GRACE_SECONDS = 5.0


@dataclass
class CommandResult:
    """Result of a command execution."""
    command: str
    exit_code: int
    stdout: str
    stderr: str
    duration: float
    is_timeout: bool = False

    @property
    def is_success(self) -> bool:
        """Check if command succeeded."""
        return self.exit_code == 0 and not self.is_timeout

    @property
    def could_not_execute(self) -> bool:
        """The binary was missing or could not be started."""
        return self.exit_code == EXEC_ERROR_EXIT_CODE


def _kill_process_group(process: asyncio.subprocess.Process, sig: int = signal.SIGTERM) -> None:
    with contextlib.suppress(ProcessLookupError):
        os.killpg(os.getpgid(process.pid), sig)


async def _terminate(process: asyncio.subprocess.Process) -> None:
    """Stop the process group and reap the process, escalating to SIGKILL."""
    _kill_process_group(process)
    try:
        await asyncio.wait_for(process.wait(), timeout=KILL_GRACE_SECONDS)
    except asyncio.TimeoutError:
        logger.warning("command_kill_escalated", pid=process.pid)
        _kill_process_group(process, signal.SIGKILL)
        await process.wait()


class CommandExecutor:
    """
    Async subprocess wrapper for external tools.

    Commands are never run through a shell. Each process gets its own
    process group so that Terraform provider plugins die with it.
    """

    def __init__(self, default_timeout: float = 300.0):
        self.default_timeout = default_timeout

    async def run_async(
        self,
        command: str | list[str],
        cwd: str | Path | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """
        Execute a command asynchronously.

        Args:
            command: Command string or list of arguments
            cwd: Working directory
            env: Environment variables (merged over os.environ)
            timeout: Execution timeout in seconds

        Returns:
            CommandResult object

        Raises:
            asyncio.CancelledError: re-raised after the process group is killed
        """
        start_time = time.perf_counter()
        timeout_val = timeout if timeout is not None else self.default_timeout

        cmd_args = shlex.split(command) if isinstance(command, str) else list(command)
        cmd_str = " ".join(shlex.quote(part) for part in cmd_args)

        run_env = os.environ.copy()
        if env:
            run_env.update(env)

        logger.debug("executing_command", command=cmd_str, cwd=str(cwd) if cwd else "cwd", timeout=timeout_val)

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd_args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=run_env,
                start_new_session=True,
            )
        except OSError as e:
            logger.error("command_execution_error", command=cmd_str, error=str(e))
            return CommandResult(
                command=cmd_str,
                exit_code=EXEC_ERROR_EXIT_CODE,
                stdout="",
                stderr=f"Execution error: {e!s}",
                duration=time.perf_counter() - start_time,
            )

        try:
            stdout_data, stderr_data = await asyncio.wait_for(process.communicate(), timeout=timeout_val)
        except asyncio.TimeoutError:
            logger.warning("command_timeout", command=cmd_str, timeout=timeout_val)
            await _terminate(process)
            return CommandResult(
                command=cmd_str,
                exit_code=TIMEOUT_EXIT_CODE,
                stdout="",
                stderr="Command timed out",
                duration=time.perf_counter() - start_time,
                is_timeout=True,
            )
        except asyncio.CancelledError:
            logger.warning("command_cancelled", command=cmd_str)
            _kill_process_group(process)
            raise

        duration = time.perf_counter() - start_time
        exit_code = process.returncode
        stdout_str = stdout_data.decode("utf-8", errors="replace")
        stderr_str = stderr_data.decode("utf-8", errors="replace")

        if exit_code != 0:
            logger.warning(
                "command_failed",
                command=cmd_str,
                exit_code=exit_code,
                stderr_snippet=stderr_str[:200],
            )
        else:
            logger.debug("command_success", command=cmd_str, duration=duration)

        return CommandResult(
            command=cmd_str,
            exit_code=exit_code,
            stdout=stdout_str,
            stderr=stderr_str,
            duration=duration,
        )
