"""
Tests for the async command executor.

Uses POSIX utilities (true, false, echo, sleep, sh) as stand-ins for tool binaries.
"""

import asyncio
import sys

import pytest

from envgate.shared.infrastructure.execution import CommandExecutor, CommandResult
from envgate.shared.infrastructure.execution import command_executor

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX process groups required")


class TestCommandExecutor:

    @pytest.mark.asyncio
    async def test_success(self):
        result = await CommandExecutor().run_async(["echo", "planned"])

        assert result.is_success
        assert result.exit_code == 0
        assert result.stdout.strip() == "planned"
        assert result.duration >= 0

    @pytest.mark.asyncio
    async def test_non_zero_exit(self):
        result = await CommandExecutor().run_async(["sh", "-c", "echo boom >&2; exit 3"])

        assert not result.is_success
        assert result.exit_code == 3
        assert "boom" in result.stderr
        assert not result.could_not_execute

    @pytest.mark.asyncio
    async def test_string_command_is_split_not_shelled(self):
        result = await CommandExecutor().run_async("echo 'a b' ; true")

        assert result.stdout.strip() == "a b ; true"

    @pytest.mark.asyncio
    async def test_missing_binary(self):
        result = await CommandExecutor().run_async(["envgate-no-such-tool", "--version"])

        assert result.exit_code == -2
        assert result.could_not_execute
        assert not result.is_success

    @pytest.mark.asyncio
    async def test_timeout(self):
        result = await CommandExecutor().run_async(["sleep", "10"], timeout=0.2)

        assert result.is_timeout
        assert result.exit_code == -1
        assert not result.is_success
        assert result.duration < 5

    @pytest.mark.asyncio
    async def test_timeout_reaps_process_ignoring_sigterm(self, monkeypatch):
        monkeypatch.setattr(command_executor, "KILL_GRACE_SECONDS", 0.2)
        spawned = []
        create = asyncio.create_subprocess_exec

        async def capture(*args, **kwargs):
            process = await create(*args, **kwargs)
            spawned.append(process)
            return process

        monkeypatch.setattr(asyncio, "create_subprocess_exec", capture)

        result = await CommandExecutor().run_async(["sh", "-c", "trap \"\" TERM; sleep 10"], timeout=0.2)

        assert result.is_timeout
        assert spawned[0].returncode is not None
        assert result.duration < 5

    @pytest.mark.asyncio
    async def test_env_and_cwd(self, tmp_path):
        result = await CommandExecutor().run_async(
            ["sh", "-c", 'echo "$TF_DATA_DIR:$(pwd -P)"'],
            cwd=tmp_path,
            env={"TF_DATA_DIR": "/data/dev"},
        )

        data_dir, cwd = result.stdout.strip().split(":", 1)
        assert data_dir == "/data/dev"
        assert cwd == str(tmp_path.resolve())

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        pending = asyncio.ensure_future(CommandExecutor().run_async(["sleep", "10"]))
        await asyncio.sleep(0.2)
        pending.cancel()

        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(pending, timeout=5.0)


def test_result_flags():
    result = CommandResult(command="true", exit_code=0, stdout="", stderr="", duration=0.0, is_timeout=True)
    assert not result.is_success
