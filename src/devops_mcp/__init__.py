"""DevOps Assistant MCP - operator tools (Docker, git, files, commands) over MCP."""

__version__ = "1.0.0"

from .dispatcher import Dispatcher, OperationSpec, Request
from .filesystem import FileSystem
from .security import PolicyConfig, PolicyGate
from .shell import ShellExecutor

__all__ = ["Dispatcher", "OperationSpec", "Request", "FileSystem", "PolicyConfig", "PolicyGate", "ShellExecutor"]
