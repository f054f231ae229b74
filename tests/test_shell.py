"""
Tests for process execution. These spawn real, harmless programs.
"""

import asyncio
import os

import pytest

from devops_mcp.responses import ActionResult
from devops_mcp.shell import ProcessResult, ShellExecutor


@pytest.fixture
def executor():
    return ShellExecutor()


@pytest.mark.asyncio
async def test_captures_stdout(executor):
    result = await executor.execute_command("echo", ["hello", "world"])

    assert result.succeeded
    assert result.exit_code == 0
    assert result.stdout == "hello world\n"


@pytest.mark.asyncio
async def test_arguments_are_not_interpreted_by_a_shell(executor):
    result = await executor.execute_command("echo", ["a", "&&", "b", "|", "c"])

    assert result.stdout == "a && b | c\n"


@pytest.mark.asyncio
async def test_non_zero_exit_is_a_failed_action(executor, tmp_path):
    result = await executor.run(["ls", str(tmp_path / "missing")])

    assert not result.succeeded
    assert "missing" in result.failure_detail


@pytest.mark.asyncio
async def test_merge_stderr_into_stdout(executor, tmp_path):
    result = await executor.execute_command("ls", [str(tmp_path / "missing")], merge_stderr=True)

    assert result.exit_code != 0
    assert "missing" in result.stdout
    assert result.stderr == ""


@pytest.mark.asyncio
async def test_missing_program_does_not_raise(executor):
    result = await executor.execute_command("definitely-not-a-real-program", [])

    assert not result.succeeded
    assert "Command not found" in result.error


@pytest.mark.asyncio
async def test_missing_working_directory(executor, tmp_path):
    result = await executor.execute_command("ls", [], working_dir=str(tmp_path / "nope"))

    assert not result.succeeded
    assert "Working directory does not exist" in result.error


@pytest.mark.asyncio
async def test_working_directory_is_used(executor, tmp_path):
    (tmp_path / "marker.txt").write_text("")

    result = await executor.execute_command("ls", [], working_dir=str(tmp_path))

    assert "marker.txt" in result.stdout


@pytest.mark.asyncio
async def test_capture(executor):
    assert await executor.capture(["echo", "  padded  "]) == "padded"
    assert await executor.capture(["definitely-not-a-real-program"]) is None


@pytest.mark.asyncio
async def test_child_does_not_read_server_stdin(executor):
    # Put a JSON-RPC message on fd 0 the way an MCP client would.
    saved = os.dup(0)
    read_end, write_end = os.pipe()
    os.write(write_end, b'{"jsonrpc":"2.0","id":7,"method":"tools/call"}\n')
    os.close(write_end)
    os.dup2(read_end, 0)
    try:
        result = await executor.execute_command("cat", [])
    finally:
        os.dup2(saved, 0)
        os.close(saved)
        os.close(read_end)

    assert result.succeeded
    assert result.stdout == ""


@pytest.mark.asyncio
async def test_null_byte_in_argument_does_not_raise(executor):
    result = await executor.execute_command("echo", ["a\x00b"])

    assert not result.succeeded
    assert "null byte" in result.error


@pytest.mark.asyncio
async def test_cancellation_kills_the_child(executor, monkeypatch):
    spawned = []
    create = asyncio.create_subprocess_exec

    async def recording_create(*args, **kwargs):
        process = await create(*args, **kwargs)
        spawned.append(process)
        return process

    monkeypatch.setattr(asyncio, "create_subprocess_exec", recording_create)

    task = asyncio.ensure_future(executor.execute_command("sleep", ["30"]))
    while not spawned:
        await asyncio.sleep(0.01)
    await asyncio.sleep(0.05)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert spawned[0].returncode is not None


class TestFromProcess:

    def test_success_carries_stdout(self):
        assert ActionResult.from_process(ProcessResult(0, "out", "")) == ActionResult.ok("out")

    def test_failure_prefers_stderr(self):
        result = ActionResult.from_process(ProcessResult(2, "out", "boom\n"))

        assert result.failure_detail == "boom"

    def test_failure_without_output_reports_exit_code(self):
        result = ActionResult.from_process(ProcessResult(3))

        assert result.failure_detail == "Command failed with exit code 3"

    def test_spawn_error(self):
        result = ActionResult.from_process(ProcessResult(-1, error="Command not found: x"))

        assert result.failure_detail == "Command not found: x"
