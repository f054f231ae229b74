"""Action results and the response envelope sent back over MCP."""

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Optional

from mcp.types import TextContent

from .errors import ActionFailure, DispatchError, ErrorKind

if TYPE_CHECKING:
    from .shell import ProcessResult

SUCCESS_MARKER = "[OK]"
PREVIEW_MARKER = "[PREVIEW]"
FAILURE_MARKER = "[ERROR]"

_LABELS = {
    ErrorKind.UNKNOWN_OPERATION: "Unknown operation",
    ErrorKind.MISSING_PARAMETER: "Missing parameter",
    ErrorKind.INVALID_ENUM_VALUE: "Invalid value",
    ErrorKind.TYPE_MISMATCH: "Invalid parameter",
    ErrorKind.POLICY_DENIED: "Not allowed",
    ErrorKind.ACTION_FAILURE: "Action failed",
}

Envelope = list[TextContent]


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a single side effect (process, file read, file write...)."""

    succeeded: bool
    payload: str = ""
    failure_detail: str = ""
    hint: Optional[str] = None
    # Set when a large read was cut short; informational, not a failure.
    preview: bool = False

    @classmethod
    def ok(cls, payload: str, preview: bool = False) -> "ActionResult":
        return cls(succeeded=True, payload=payload, preview=preview)

    @classmethod
    def failed(cls, detail: str, hint: Optional[str] = None) -> "ActionResult":
        return cls(succeeded=False, failure_detail=detail, hint=hint)

    @classmethod
    def from_process(cls, result: "ProcessResult") -> "ActionResult":
        """Map a finished process onto an action result (non-zero exit is a failure)."""
        if result.error:
            return cls.failed(result.error)
        if result.exit_code != 0:
            detail = result.stderr.strip() or result.stdout.strip()
            return cls.failed(detail or f"Command failed with exit code {result.exit_code}")
        return cls.ok(result.stdout)

    def with_hint(self, hint: str) -> "ActionResult":
        if self.succeeded or self.hint:
            return self
        return replace(self, hint=hint)


def _text(text: str) -> Envelope:
    return [TextContent(type="text", text=text)]


def format_error(error: Exception) -> Envelope:
    """Render any error as a failure envelope."""
    if isinstance(error, DispatchError):
        label = _LABELS[error.kind]
        text = f"{FAILURE_MARKER} {label}: {error.message}"
        if error.hint:
            text += f"\n\nHint: {error.hint}"
        return _text(text)
    return _text(f"{FAILURE_MARKER} {_LABELS[ErrorKind.ACTION_FAILURE]}: Unexpected error: {error}")


def format_result(result: ActionResult) -> Envelope:
    """Render an action result; failures share the error layout."""
    if not result.succeeded:
        return format_error(ActionFailure(result.failure_detail, hint=result.hint))
    marker = PREVIEW_MARKER if result.preview else SUCCESS_MARKER
    return _text(f"{marker} {result.payload}")
