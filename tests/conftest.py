"""Pytest fixtures for the DevOps Assistant MCP server."""

from typing import Optional

import pytest

from devops_mcp.dispatcher import Dispatcher, OperationContext
from devops_mcp.filesystem import FileSystem
from devops_mcp.operations import register_operations
from devops_mcp.security import DEFAULT_ALLOWED_COMMANDS, PolicyConfig, PolicyGate
from devops_mcp.shell import ProcessResult, ShellExecutor

PREVIEW_LIMIT = 100


class RecordingShell(ShellExecutor):
    """ShellExecutor double: records every spawn and answers from canned results.

    ``responses`` maps a command-line prefix (argv joined by spaces) to the
    ProcessResult to return; anything else gets ``default``.
    """

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.responses: dict[str, ProcessResult] = {}
        self.default = ProcessResult(exit_code=0)

    async def execute_command(
        self,
        command: str,
        args: list[str],
        working_dir: Optional[str] = None,
        merge_stderr: bool = False,
    ) -> ProcessResult:
        argv = [command, *args]
        self.calls.append({"argv": argv, "working_dir": working_dir, "merge_stderr": merge_stderr})
        line = " ".join(argv)
        for prefix, result in self.responses.items():
            if line.startswith(prefix):
                return result
        return self.default


@pytest.fixture
def shell() -> RecordingShell:
    return RecordingShell()


@pytest.fixture
def home(tmp_path):
    """Readable root; its ``projects`` subdirectory is the only writable one."""
    root = tmp_path / "home"
    (root / "projects").mkdir(parents=True)
    return root


@pytest.fixture
def policy_config(home) -> PolicyConfig:
    return PolicyConfig(
        allowed_commands=list(DEFAULT_ALLOWED_COMMANDS),
        read_prefixes=[str(home)],
        write_prefixes=[str(home / "projects")],
    )


@pytest.fixture
def history_file(home):
    return home / ".zsh_history"


@pytest.fixture
def dispatcher(policy_config, shell, history_file) -> Dispatcher:
    context = OperationContext(
        policy=PolicyGate(policy_config),
        shell=shell,
        filesystem=FileSystem(preview_limit=PREVIEW_LIMIT),
        history_file=str(history_file),
    )
    return register_operations(Dispatcher(context))
