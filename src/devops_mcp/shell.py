"""Shell command execution."""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Optional

from .responses import ActionResult

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    # Set when the process could not be started at all.
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.exit_code == 0


class ShellExecutor:
    """Runs programs directly (no shell) and captures their output."""

    async def execute_command(
        self,
        command: str,
        args: list[str],
        working_dir: Optional[str] = None,
        merge_stderr: bool = False,
    ) -> ProcessResult:
        cwd = os.path.expanduser(working_dir) if working_dir else None
        logger.debug("Executing %s %s (cwd=%s)", command, args, cwd)
        try:
            # stdin must never be inherited: under stdio it is the MCP transport.
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT if merge_stderr else asyncio.subprocess.PIPE,
                cwd=cwd,
            )
        except FileNotFoundError as e:
            # Raised for a missing program and for a missing working directory.
            if cwd and not os.path.isdir(cwd):
                return ProcessResult(exit_code=-1, error=f"Working directory does not exist: {working_dir}")
            return ProcessResult(exit_code=-1, error=f"Command not found: {command} ({e.strerror})")
        except PermissionError:
            return ProcessResult(exit_code=-1, error=f"Permission denied executing: {command}")
        except OSError as e:
            return ProcessResult(exit_code=-1, error=f"Failed to start {command}: {e}")
        except ValueError as e:
            # Embedded NUL bytes in the program, an argument or the cwd.
            return ProcessResult(exit_code=-1, error=f"Invalid command line for {command}: {e}")

        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            logger.info("Cancelled while running %s; killing pid %s", command, process.pid)
            if process.returncode is None:
                process.kill()
            await process.wait()
            raise

        return ProcessResult(
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace") if stdout else "",
            stderr=stderr.decode("utf-8", errors="replace") if stderr else "",
        )

    async def run(
        self,
        argv: list[str],
        working_dir: Optional[str] = None,
        merge_stderr: bool = False,
    ) -> ActionResult:
        """Run ``argv`` and map the outcome onto an ActionResult."""
        result = await self.execute_command(argv[0], argv[1:], working_dir, merge_stderr)
        return ActionResult.from_process(result)

    async def capture(self, argv: list[str]) -> Optional[str]:
        """Stripped stdout of ``argv``, or None if it could not run or exited non-zero."""
        result = await self.execute_command(argv[0], argv[1:])
        if not result.succeeded:
            return None
        return result.stdout.strip()
