"""Error taxonomy for tool dispatch.

Every failure a caller can observe is one of the ``DispatchError`` subclasses
below. They carry a kind, a human-readable message and an optional
remediation hint; turning them into text is left to ``responses``.
"""

from enum import Enum
from typing import Optional, Sequence


class ErrorKind(str, Enum):
    UNKNOWN_OPERATION = "unknown_operation"
    MISSING_PARAMETER = "missing_parameter"
    INVALID_ENUM_VALUE = "invalid_enum_value"
    TYPE_MISMATCH = "type_mismatch"
    POLICY_DENIED = "policy_denied"
    ACTION_FAILURE = "action_failure"


class DispatchError(Exception):
    """Base exception for anything that stops a tool call from succeeding."""

    kind: ErrorKind = ErrorKind.ACTION_FAILURE

    def __init__(self, message: str, hint: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint


class UnknownOperationError(DispatchError):
    """No operation is registered under the requested name."""

    kind = ErrorKind.UNKNOWN_OPERATION

    def __init__(self, name: str, known: Sequence[str] = ()) -> None:
        hint = f"Available operations: {', '.join(known)}" if known else None
        super().__init__(name, hint=hint)
        self.name = name


class ParameterError(DispatchError):
    """Base exception for parameter validation errors."""

    def __init__(self, field: str, message: str, hint: Optional[str] = None) -> None:
        super().__init__(message, hint=hint)
        self.field = field


class MissingParameterError(ParameterError):
    kind = ErrorKind.MISSING_PARAMETER

    def __init__(self, field: str) -> None:
        super().__init__(field, f"'{field}' is required")


class InvalidEnumValueError(ParameterError):
    kind = ErrorKind.INVALID_ENUM_VALUE

    def __init__(self, field: str, value: object, allowed: Sequence[str]) -> None:
        super().__init__(
            field,
            f"{value!r} for parameter '{field}'. "
            f"Allowed values: {', '.join(allowed)}",
        )
        self.value = value
        self.allowed = list(allowed)


class TypeMismatchError(ParameterError):
    kind = ErrorKind.TYPE_MISMATCH

    def __init__(self, field: str, detail: str) -> None:
        super().__init__(field, f"'{field}': {detail}")


class PolicyDeniedError(DispatchError):
    """A command or path is not on the allow-list."""

    kind = ErrorKind.POLICY_DENIED


class ActionFailure(DispatchError):
    """The underlying process or filesystem call failed."""

    kind = ErrorKind.ACTION_FAILURE


class DuplicateOperationError(Exception):
    """Raised at start-up when two operations share a name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Operation already registered: {name}")
        self.name = name
