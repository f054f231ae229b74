"""Allow-list policy for command execution and file access.

The checks are token and prefix matches. They keep an assistant from running
an unexpected program or touching files outside the usual places, but they
are not a sandbox. Symlinks are not resolved and prefixes are compared as
plain strings, so ``/home/dev`` also admits ``/home/dev2``. Arguments to an
allowed program are not inspected.
"""

import logging
import os
import shlex
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from .errors import PolicyDeniedError
from .filesystem import normalize_path

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_COMMANDS = [
    "ls", "pwd", "echo", "cat", "grep", "find", "df", "du",
    "docker", "docker-compose", "git", "npm", "node",
]
DEFAULT_READ_PREFIXES = ["~", "/tmp", "/var/log"]
DEFAULT_WRITE_PREFIXES = ["~/projects", "~/Documents", "/tmp"]


class PolicyConfig(BaseModel):
    """Allow-lists consulted before any side effect."""
    allowed_commands: List[str]
    read_prefixes: List[str]
    write_prefixes: List[str]


class PolicyDecision(BaseModel):
    allowed: bool
    reason: Optional[str] = None

    def enforce(self) -> None:
        if not self.allowed:
            raise PolicyDeniedError(self.reason or "Denied by policy")


class GuardScope(str, Enum):
    COMMAND = "command"
    READ_PATH = "read_path"
    WRITE_PATH = "write_path"


@dataclass(frozen=True)
class Guard:
    """Declares that parameter ``field`` must pass the ``scope`` allow-list."""
    scope: GuardScope
    field: str


class PolicyGate:
    def __init__(self, config: PolicyConfig) -> None:
        self.config = config
        self.read_prefixes = [normalize_path(p) for p in config.read_prefixes]
        self.write_prefixes = [normalize_path(p) for p in config.write_prefixes]

    @staticmethod
    def leading_token(command_line: str) -> str:
        try:
            parts = shlex.split(command_line)
        except ValueError:
            parts = command_line.split()
        return parts[0] if parts else ""

    def check_command(self, command_line: str) -> PolicyDecision:
        token = self.leading_token(command_line)
        if token and token in self.config.allowed_commands:
            return PolicyDecision(allowed=True)
        shown = token or "(empty command)"
        logger.warning("Command denied by policy: %s", shown)
        return PolicyDecision(
            allowed=False,
            reason=(
                f"Command '{shown}' is not allowed.\n"
                f"Allowed commands: {', '.join(self.config.allowed_commands)}"
            ),
        )

    def _check_prefix(self, path: str, prefixes: List[str], access: str) -> PolicyDecision:
        resolved = normalize_path(path)
        for prefix in prefixes:
            if resolved.startswith(prefix):
                return PolicyDecision(allowed=True)
        logger.warning("%s access denied by policy: %s", access.capitalize(), resolved)
        return PolicyDecision(
            allowed=False,
            reason=(
                f"{access.capitalize()} access to '{resolved}' is not allowed.\n"
                f"Allowed {access} paths: {', '.join(prefixes)}"
            ),
        )

    def check_read_path(self, path: str) -> PolicyDecision:
        return self._check_prefix(path, self.read_prefixes, "read")

    def check_write_path(self, path: str) -> PolicyDecision:
        return self._check_prefix(path, self.write_prefixes, "write")

    def check(self, guard: Guard, value: str) -> PolicyDecision:
        if guard.scope is GuardScope.COMMAND:
            return self.check_command(value)
        if guard.scope is GuardScope.READ_PATH:
            return self.check_read_path(value)
        return self.check_write_path(value)

    def describe(self) -> str:
        return (
            "Command Execution and File Access Policy:\n"
            "=========================================\n"
            "\nAllowed Commands:\n"
            "----------------\n"
            f"{', '.join(self.config.allowed_commands) or 'None'}\n"
            "\nReadable Paths:\n"
            "--------------\n"
            + ("\n".join(self.read_prefixes) or "None")
            + "\n\nWritable Paths:\n"
            "--------------\n"
            + ("\n".join(self.write_prefixes) or "None")
            + "\n\nMatching is by leading command token and path prefix only; "
            "this is not a sandbox."
        )


def _split_list(raw: Optional[str], default: List[str]) -> List[str]:
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_policy_config() -> PolicyConfig:
    """Loads the allow-lists from environment variables, falling back to the defaults."""
    return PolicyConfig(
        allowed_commands=_split_list(os.getenv("ALLOWED_COMMANDS"), DEFAULT_ALLOWED_COMMANDS),
        read_prefixes=_split_list(os.getenv("ALLOWED_READ_PATHS"), DEFAULT_READ_PREFIXES),
        write_prefixes=_split_list(os.getenv("ALLOWED_WRITE_PATHS"), DEFAULT_WRITE_PREFIXES),
    )
