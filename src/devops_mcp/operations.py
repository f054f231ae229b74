"""Tool operations exposed by the server.

Each operation pairs a pydantic input model with an async handler. Handlers
receive already-validated parameters and run after the allow-list guards
declared in their ``OperationSpec``.
"""

import os
import shlex
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .dispatcher import Dispatcher, OperationContext, OperationSpec
from .errors import TypeMismatchError
from .resources import system_facts
from .responses import ActionResult
from .security import Guard, GuardScope

DOCKER_HINT = "Check whether the Docker daemon is running: systemctl status docker"
CONTAINER_HINT = "Check whether the container exists: docker ps -a"
GIT_HINT = "Check whether the path is inside a git repository: git rev-parse --show-toplevel"

CONTAINER_TABLE_FORMAT = "table {{.Names}}\t{{.Status}}\t{{.Image}}\t{{.Ports}}"
IMAGE_TABLE_FORMAT = "table {{.Repository}}\t{{.Tag}}\t{{.ID}}\t{{.Size}}"

# --- Pydantic Models for Tool Inputs ---

class NoInput(BaseModel):
    pass

class TerminalHistoryInput(BaseModel):
    limit: int = Field(50, ge=1, description="Number of commands to return")

class ListContainersInput(BaseModel):
    all: bool = Field(True, description="Include stopped containers")

class DockerLogsInput(BaseModel):
    container: str = Field(..., description="Container name or ID")
    lines: int = Field(100, ge=1, description="Number of log lines to return")

class RunCommandInput(BaseModel):
    command: str = Field(..., description="Command line to execute (e.g. 'docker ps')")
    cwd: Optional[str] = Field(None, description="Working directory")

class GitPathInput(BaseModel):
    path: Optional[str] = Field(None, description="Repository directory (default: server working directory)")

class GitLogInput(GitPathInput):
    limit: int = Field(10, ge=1, description="Number of commits to show")
    format: Literal["oneline", "short", "full"] = Field("oneline", description="Commit output format")

class GitBranchesInput(GitPathInput):
    scope: Literal["local", "remote", "all"] = Field("local", description="Which branches to list")

class ReadFileInput(BaseModel):
    path: str = Field(..., description="Path to the file to read")
    lines: Optional[int] = Field(None, ge=1, description="Only return the first N lines")

class WriteFileInput(BaseModel):
    path: str = Field(..., description="Path to the file to write")
    content: str = Field(..., description="Content to write")
    backup: bool = Field(False, description="Copy an existing file to a timestamped backup first")

class PathInput(BaseModel):
    path: str = Field(..., description="Path to the file or directory")

class MoveFileInput(BaseModel):
    source: str = Field(..., description="Source path")
    destination: str = Field(..., description="Destination path")

class SearchFilesInput(BaseModel):
    path: str = Field(..., description="Base directory to search in")
    pattern: str = Field(..., description="Search pattern (case-insensitive substring match)")
    max_results: int = Field(200, ge=1, alias="maxResults", description="Maximum number of matches to list")

# --- End Pydantic Models ---


async def _run_report(
    ctx: OperationContext,
    argv: list[str],
    heading: str,
    hint: str,
    working_dir: Optional[str] = None,
    merge_stderr: bool = False,
) -> ActionResult:
    result = await ctx.shell.run(argv, working_dir, merge_stderr)
    if not result.succeeded:
        return result.with_hint(hint)
    return ActionResult.ok(f"{heading}:\n\n{result.payload}")


async def get_terminal_history(ctx: OperationContext, params: TerminalHistoryInput) -> ActionResult:
    result = await ctx.filesystem.read_text(ctx.history_file)
    if not result.succeeded:
        return result.with_hint(f"Check whether the history file exists: {ctx.history_file}")

    # Extended-history metadata lines start with ':'
    commands = [line for line in result.payload.splitlines() if line and not line.startswith(":")]
    recent = commands[-params.limit:][::-1]
    return ActionResult.ok(f"Last {len(recent)} terminal commands:\n\n" + "\n".join(recent))


async def list_docker_containers(ctx: OperationContext, params: ListContainersInput) -> ActionResult:
    argv = ["docker", "ps"]
    if params.all:
        argv.append("-a")
    argv += ["--format", CONTAINER_TABLE_FORMAT]
    return await _run_report(ctx, argv, "Docker containers", DOCKER_HINT)


async def list_docker_images(ctx: OperationContext, params: NoInput) -> ActionResult:
    argv = ["docker", "images", "--format", IMAGE_TABLE_FORMAT]
    return await _run_report(ctx, argv, "Docker images", DOCKER_HINT)


async def get_docker_logs(ctx: OperationContext, params: DockerLogsInput) -> ActionResult:
    argv = ["docker", "logs", "--tail", str(params.lines), "--", params.container]
    heading = f"Logs of container '{params.container}' (last {params.lines} lines)"
    return await _run_report(ctx, argv, heading, CONTAINER_HINT, merge_stderr=True)


async def run_command(ctx: OperationContext, params: RunCommandInput) -> ActionResult:
    try:
        argv = shlex.split(params.command)
    except ValueError as e:
        raise TypeMismatchError("command", f"cannot parse command line: {e}") from e

    process = await ctx.shell.execute_command(argv[0], argv[1:], params.cwd)
    if not process.succeeded:
        return ActionResult.from_process(process)

    text = f"Command executed: {params.command}\n\n{process.stdout}"
    if process.stderr:
        text += f"\nSTDERR:\n{process.stderr}"
    return ActionResult.ok(text)


async def git_status(ctx: OperationContext, params: GitPathInput) -> ActionResult:
    argv = ["git", "status", "--short", "--branch"]
    return await _run_report(ctx, argv, f"Git status of {params.path or os.getcwd()}", GIT_HINT, params.path)


async def git_log(ctx: OperationContext, params: GitLogInput) -> ActionResult:
    argv = ["git", "log", f"-n{params.limit}", f"--pretty={params.format}", "--abbrev-commit"]
    heading = f"Last {params.limit} commits in {params.path or os.getcwd()}"
    return await _run_report(ctx, argv, heading, GIT_HINT, params.path)


async def git_branches(ctx: OperationContext, params: GitBranchesInput) -> ActionResult:
    argv = ["git", "branch"]
    if params.scope == "remote":
        argv.append("-r")
    elif params.scope == "all":
        argv.append("-a")
    heading = f"Git branches ({params.scope}) in {params.path or os.getcwd()}"
    return await _run_report(ctx, argv, heading, GIT_HINT, params.path)


async def read_file(ctx: OperationContext, params: ReadFileInput) -> ActionResult:
    return await ctx.filesystem.read_file(params.path, params.lines)


async def write_file(ctx: OperationContext, params: WriteFileInput) -> ActionResult:
    return await ctx.filesystem.write_file(params.path, params.content, params.backup)


async def list_directory(ctx: OperationContext, params: PathInput) -> ActionResult:
    return await ctx.filesystem.list_directory(params.path)


async def create_directory(ctx: OperationContext, params: PathInput) -> ActionResult:
    return await ctx.filesystem.create_directory(params.path)


async def move_file(ctx: OperationContext, params: MoveFileInput) -> ActionResult:
    return await ctx.filesystem.move_file(params.source, params.destination)


async def search_files(ctx: OperationContext, params: SearchFilesInput) -> ActionResult:
    return await ctx.filesystem.search_files(params.path, params.pattern, params.max_results)


async def get_file_info(ctx: OperationContext, params: PathInput) -> ActionResult:
    return await ctx.filesystem.get_file_info(params.path)


async def get_system_summary(ctx: OperationContext, params: NoInput) -> ActionResult:
    facts = await system_facts(ctx.shell)
    facts["Kernel"] = await ctx.shell.capture(["uname", "-sr"]) or "unavailable"
    facts["Logged-in users"] = await ctx.shell.capture(["who"]) or "none"
    report = "\n".join(f"{name}: {value}" for name, value in facts.items())
    return ActionResult.ok(f"System summary:\n\n{report}")


ENVIRONMENT_PROBES = [
    ("Docker", ["docker", "--version"]),
    ("Docker Compose", ["docker", "compose", "version", "--short"]),
    ("Git", ["git", "--version"]),
    ("Node.js", ["node", "--version"]),
    ("npm", ["npm", "--version"]),
    ("Python", ["python3", "--version"]),
]


async def get_environment_summary(ctx: OperationContext, params: NoInput) -> ActionResult:
    lines = [
        f"User: {os.getenv('USER', 'unknown')}",
        f"Shell: {os.getenv('SHELL', 'unknown')}",
        f"Working directory: {os.getcwd()}",
        "",
        "Tooling:",
    ]
    for name, argv in ENVIRONMENT_PROBES:
        version = await ctx.shell.capture(argv)
        lines.append(f"- {name}: {version or 'not installed'}")
    return ActionResult.ok("Environment summary:\n\n" + "\n".join(lines))


async def show_policy(ctx: OperationContext, params: NoInput) -> ActionResult:
    return ActionResult.ok(ctx.policy.describe())


def _read(name: str) -> tuple[Guard, ...]:
    return (Guard(GuardScope.READ_PATH, name),)


def _write(*names: str) -> tuple[Guard, ...]:
    return tuple(Guard(GuardScope.WRITE_PATH, n) for n in names)


OPERATIONS = [
    OperationSpec(
        "get_terminal_history",
        "Return the most recent commands from the shell history file, newest first.",
        TerminalHistoryInput, get_terminal_history,
    ),
    OperationSpec(
        "list_docker_containers",
        "List Docker containers with name, status, image and ports.",
        ListContainersInput, list_docker_containers,
    ),
    OperationSpec(
        "list_docker_images",
        "List local Docker images.",
        NoInput, list_docker_images,
    ),
    OperationSpec(
        "get_docker_logs",
        "Fetch the last lines of a container's log (stdout and stderr).",
        DockerLogsInput, get_docker_logs,
    ),
    OperationSpec(
        "run_command",
        "Execute a command whose program is on the allow-list. "
        "Runs without a shell, so pipes and redirections are not interpreted.",
        RunCommandInput, run_command,
        guards=(Guard(GuardScope.COMMAND, "command"),),
    ),
    OperationSpec(
        "git_status",
        "Show the short git status and branch of a repository.",
        GitPathInput, git_status,
    ),
    OperationSpec(
        "git_log",
        "Show recent commits of a repository.",
        GitLogInput, git_log,
    ),
    OperationSpec(
        "git_branches",
        "List local, remote or all branches of a repository.",
        GitBranchesInput, git_branches,
    ),
    OperationSpec(
        "read_file",
        "Read a file, or its first N lines. Large files are returned as a truncated preview.",
        ReadFileInput, read_file, guards=_read("path"),
    ),
    OperationSpec(
        "write_file",
        "Create or overwrite a file, optionally backing up the existing content first.",
        WriteFileInput, write_file, guards=_write("path"),
    ),
    OperationSpec(
        "list_directory",
        "List directory contents with [FILE] or [DIR] prefixes.",
        PathInput, list_directory, guards=_read("path"),
    ),
    OperationSpec(
        "create_directory",
        "Create a directory, including parent directories if needed.",
        PathInput, create_directory, guards=_write("path"),
    ),
    OperationSpec(
        "move_file",
        "Move or rename a file or directory. Fails if the destination already exists.",
        MoveFileInput, move_file, guards=_write("source", "destination"),
    ),
    OperationSpec(
        "search_files",
        "Recursively search for files and directories whose name contains a pattern.",
        SearchFilesInput, search_files, guards=_read("path"),
    ),
    OperationSpec(
        "get_file_info",
        "Retrieve metadata about a file or directory (size, dates, type, permissions).",
        PathInput, get_file_info, guards=_read("path"),
    ),
    OperationSpec(
        "get_system_summary",
        "Report hostname, uptime, kernel, memory and disk usage of the host.",
        NoInput, get_system_summary,
    ),
    OperationSpec(
        "get_environment_summary",
        "Report the user, shell and installed versions of common DevOps tooling.",
        NoInput, get_environment_summary,
    ),
    OperationSpec(
        "show_policy",
        "Show the command allow-list and the readable and writable path prefixes.",
        NoInput, show_policy,
    ),
]


def register_operations(dispatcher: Dispatcher) -> Dispatcher:
    for spec in OPERATIONS:
        dispatcher.register_operation(spec)
    dispatcher.seal()
    return dispatcher
