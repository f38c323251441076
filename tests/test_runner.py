# tests/test_runner.py
# Standard library imports
import asyncio
from pathlib import Path

# Third-party imports
import pytest

# Local/package imports
from cmdqueue.exceptions import CommandError, LaunchFailure, NonZeroExit
from cmdqueue.execution import CommandResult, ExecutionStatus, ProcessRunner


@pytest.fixture
def runner():
    return ProcessRunner()


class TestExecute:
    """Awaitable single-command execution."""

    @pytest.mark.asyncio
    async def test_captures_stdout(self, runner, tmp_path):
        result = await runner.execute("echo hello", tmp_path)

        assert result.status is ExecutionStatus.COMPLETED
        assert result.succeeded
        assert result.exit_code == 0
        assert result.stdout == "hello\n"
        assert result.stderr == ""
        assert result.error is None
        assert result.duration is not None and result.duration >= 0

    @pytest.mark.asyncio
    async def test_captures_stderr(self, runner, tmp_path):
        result = await runner.execute("echo oops 1>&2", tmp_path)
        assert result.stderr == "oops\n"
        assert result.stdout == ""

    @pytest.mark.asyncio
    async def test_runs_in_working_directory(self, runner, tmp_path):
        result = await runner.execute("pwd", tmp_path)
        assert Path(result.stdout.strip()).resolve() == tmp_path.resolve()

    @pytest.mark.asyncio
    async def test_non_zero_exit_keeps_output(self, runner, tmp_path):
        result = await runner.execute("echo partial; echo bad 1>&2; exit 3", tmp_path)

        assert result.status is ExecutionStatus.FAILED
        assert isinstance(result.error, NonZeroExit)
        assert result.error.exit_code == 3
        assert result.error.signal is None
        assert result.error.error_output == "bad\n"
        assert result.stdout == "partial\n"
        assert "exit code 3" in str(result.error)

    @pytest.mark.asyncio
    async def test_killed_by_signal(self, runner, tmp_path):
        result = await runner.execute("kill -9 $$", tmp_path)

        assert isinstance(result.error, NonZeroExit)
        assert result.error.signal == 9
        assert "signal 9" in str(result.error)

    @pytest.mark.asyncio
    async def test_missing_directory_is_launch_failure(self, runner, tmp_path):
        missing = tmp_path / "missing"
        result = await runner.execute("echo hi", missing)

        assert isinstance(result.error, LaunchFailure)
        assert isinstance(result.error.cause, OSError)
        assert result.error.error_code == "LAUNCH_FAILURE"
        assert result.error.working_directory == missing
        assert result.stdout == "" and result.stderr == ""

    @pytest.mark.asyncio
    async def test_nul_byte_is_launch_failure(self, runner, tmp_path):
        result = await runner.execute("echo a\0b", tmp_path)

        assert result.status is ExecutionStatus.FAILED
        assert isinstance(result.error, LaunchFailure)
        assert isinstance(result.error.cause, ValueError)
        assert result.end_time is not None

    def test_result_to_dict(self):
        result = CommandResult(
            command="echo hi",
            working_directory=Path("/tmp"),
            status=ExecutionStatus.COMPLETED,
            exit_code=0,
            stdout="hi\n",
            start_time=1.0,
            end_time=3.5,
        )
        data = result.to_dict()

        assert data["status"] == "completed"
        assert data["working_directory"] == "/tmp"
        assert data["duration"] == 2.5
        assert data["error"] is None


class TestRun:
    """Callback-style execution."""

    @pytest.mark.asyncio
    async def test_returns_before_completion(self, runner, tmp_path):
        received = []
        task = runner.run(
            "echo done", tmp_path, lambda err, out, errout: received.append((err, out))
        )

        assert isinstance(task, asyncio.Task)
        assert received == []
        assert runner.active_tasks == 1

        await task
        assert received == [(None, "done\n")]
        assert runner.active_tasks == 0

    @pytest.mark.asyncio
    async def test_callback_receives_error(self, runner, tmp_path):
        received = []
        await runner.run("exit 2", tmp_path, lambda *args: received.append(args))

        error, stdout, stderr = received[0]
        assert isinstance(error, NonZeroExit)
        assert error.exit_code == 2

    @pytest.mark.asyncio
    async def test_callback_is_optional(self, runner, tmp_path):
        result = await runner.run("echo quiet", tmp_path)
        assert result.stdout == "quiet\n"

    @pytest.mark.asyncio
    async def test_raising_callback_does_not_fail_task(self, runner, tmp_path):
        def explode(err, out, errout):
            raise ValueError("handler bug")

        result = await runner.run("echo hi", tmp_path, explode)
        assert result.succeeded

    @pytest.mark.asyncio
    async def test_callback_fires_when_execution_raises(self, runner, tmp_path, monkeypatch):
        async def broken_execute(command, working_directory):
            raise RuntimeError("pipe closed")

        monkeypatch.setattr(runner, "execute", broken_execute)
        received = []

        result = await runner.run("echo hi", tmp_path, lambda *args: received.append(args))

        error, stdout, stderr = received[0]
        assert isinstance(error, CommandError)
        assert error.error_code == "EXECUTION_ERROR"
        assert "pipe closed" in str(error)
        assert (stdout, stderr) == ("", "")
        assert not result.succeeded

    def test_requires_running_loop(self, runner, tmp_path):
        with pytest.raises(RuntimeError):
            runner.run("echo hi", tmp_path)
