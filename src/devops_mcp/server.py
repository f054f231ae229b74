"""MCP server implementation."""

import asyncio
import logging
import os
import sys
from typing import Any, Iterable, Optional

from mcp.server import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server
from mcp.types import GetPromptResult, Prompt, Resource, TextContent, Tool
from pydantic import AnyUrl

from . import __version__
from .dispatcher import Dispatcher, OperationContext, Request
from .filesystem import FileSystem
from .operations import register_operations
from .prompts import PROMPTS, get_prompt
from .resources import RESOURCES, read_resource
from .security import PolicyConfig, PolicyGate, load_policy_config
from .shell import ShellExecutor

logger = logging.getLogger(__name__)

# Define environment variable names
ENV_HISTORY_FILE = "HISTORY_FILE"
ENV_LOG_LEVEL = "LOG_LEVEL"

DEFAULT_HISTORY_FILE = "~/.zsh_history"


class DevOpsAssistantServer:
    def __init__(
        self,
        policy_config: Optional[PolicyConfig] = None,
        shell: Optional[ShellExecutor] = None,
        filesystem: Optional[FileSystem] = None,
        history_file: Optional[str] = None,
    ) -> None:
        self.server: Server = Server(
            name="DevOps Assistant",
            version=__version__,
            instructions=(
                "Operator tools for a DevOps workstation: Docker, git, terminal history, "
                "files and allow-listed commands. Failed calls return text starting with [ERROR]."
            ),
        )

        self.shell = shell or ShellExecutor()
        self.policy = PolicyGate(policy_config or load_policy_config())
        self.context = OperationContext(
            policy=self.policy,
            shell=self.shell,
            filesystem=filesystem or FileSystem(),
            history_file=os.path.expanduser(
                history_file or os.getenv(ENV_HISTORY_FILE, DEFAULT_HISTORY_FILE)
            ),
        )
        self.dispatcher = register_operations(Dispatcher(self.context))
        logger.info(
            "DevOps Assistant ready: %d operations, allowed commands: %s",
            len(self.dispatcher.operations()),
            ", ".join(self.policy.config.allowed_commands),
        )

        # Register handlers
        self._register_handlers()

    # --- Handler Registration (Called from __init__) ---
    def _register_handlers(self) -> None:
        """Registers MCP request handlers on self.server."""

        # Input validation stays with the dispatcher so every problem is
        # reported in the same envelope format.
        @self.server.call_tool(validate_input=False)  # type: ignore[misc]
        async def _dispatch_tool_call(tool_name: str, arguments: dict[str, Any]) -> list[TextContent]:
            return await self.dispatcher.handle(Request(tool_name, arguments))

        @self.server.list_tools()  # type: ignore[misc]
        async def _list_tools() -> list[Tool]:
            return self.list_tools_impl()

        @self.server.list_resources()  # type: ignore[misc]
        async def _list_resources() -> list[Resource]:
            return [
                Resource(uri=AnyUrl(spec.uri), name=spec.name, description=spec.description, mimeType="text/plain")
                for spec in RESOURCES
            ]

        @self.server.read_resource()  # type: ignore[misc]
        async def _read_resource(uri: AnyUrl) -> Iterable[ReadResourceContents]:
            text = await read_resource(str(uri), self.shell)
            return [ReadResourceContents(content=text, mime_type="text/plain")]

        @self.server.list_prompts()  # type: ignore[misc]
        async def _list_prompts() -> list[Prompt]:
            return [spec.prompt for spec in PROMPTS.values()]

        @self.server.get_prompt()  # type: ignore[misc]
        async def _get_prompt(name: str, arguments: Optional[dict[str, str]]) -> GetPromptResult:
            return get_prompt(name, arguments)

    def list_tools_impl(self) -> list[Tool]:
        """Tool definitions with input schemas generated from the pydantic models."""
        allowed = ", ".join(self.policy.config.allowed_commands)
        tools = []
        for spec in self.dispatcher.operations():
            description = spec.description
            if spec.name == "run_command":
                description += f"\n\nAllowed commands: {allowed}"
            elif spec.guards:
                description += "\n\nPaths are restricted; call show_policy to see the allowed prefixes."
            tools.append(Tool(name=spec.name, description=description, inputSchema=spec.parameter_schema))
        return tools

    # --- Server Run ---

    async def run(self) -> None:
        """Run the server using stdio."""
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options(),
            )


def main() -> None:
    """Console entry point; exits non-zero if the transport cannot be served."""
    # stdout carries the MCP stream, so logs go to stderr.
    logging.basicConfig(
        level=os.getenv(ENV_LOG_LEVEL, "INFO").upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        server = DevOpsAssistantServer()
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(1)

    try:
        asyncio.run(server.run())
    except KeyboardInterrupt:
        logger.info("Shutting down")
    except Exception:
        logger.exception("MCP transport failed")
        sys.exit(1)


if __name__ == "__main__":
    main()
