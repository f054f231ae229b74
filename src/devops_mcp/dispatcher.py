"""Operation registry and the single dispatch path for tool calls.

Every call goes through ``Dispatcher.handle``: look the operation up, validate
its parameters, enforce the allow-list guards it declares, run the handler and
format the outcome. ``handle`` always returns an envelope; nothing raised on
the way is allowed to reach the transport.
"""

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel

from .errors import DispatchError, DuplicateOperationError, UnknownOperationError
from .filesystem import FileSystem
from .responses import ActionResult, Envelope, format_error, format_result
from .security import Guard, PolicyGate
from .shell import ShellExecutor
from .validation import validate

logger = logging.getLogger(__name__)


@dataclass
class OperationContext:
    """Collaborators available to operation handlers."""
    policy: PolicyGate
    shell: ShellExecutor
    filesystem: FileSystem
    history_file: str


Handler = Callable[[OperationContext, Any], Awaitable[ActionResult]]


@dataclass(frozen=True)
class OperationSpec:
    name: str
    description: str
    params_model: type[BaseModel]
    handler: Handler = field(repr=False)
    guards: tuple[Guard, ...] = ()

    @property
    def parameter_schema(self) -> dict[str, Any]:
        return self.params_model.model_json_schema()


@dataclass(frozen=True)
class Request:
    operation_name: str
    raw_parameters: Optional[Mapping[str, Any]] = None


class Dispatcher:
    def __init__(self, context: OperationContext) -> None:
        self.context = context
        self._operations: dict[str, OperationSpec] = {}
        self._sealed = False

    def register_operation(self, spec: OperationSpec) -> None:
        if self._sealed:
            raise RuntimeError(f"Cannot register '{spec.name}': the operation registry is sealed")
        if spec.name in self._operations:
            raise DuplicateOperationError(spec.name)
        for guard in spec.guards:
            if guard.field not in spec.params_model.model_fields:
                raise ValueError(f"Guard on unknown parameter '{guard.field}' for operation '{spec.name}'")
        self._operations[spec.name] = spec

    def seal(self) -> None:
        """Freeze the registry; called once start-up registration is done."""
        self._sealed = True

    def operations(self) -> list[OperationSpec]:
        return list(self._operations.values())

    def get(self, name: str) -> OperationSpec:
        spec = self._operations.get(name)
        if spec is None:
            raise UnknownOperationError(name, sorted(self._operations))
        return spec

    def _enforce_guards(self, spec: OperationSpec, params: BaseModel) -> None:
        for guard in spec.guards:
            value = getattr(params, guard.field)
            if value is None:
                continue
            self.context.policy.check(guard, value).enforce()

    async def handle(self, request: Request) -> Envelope:
        """Run one tool call to completion and return its envelope."""
        logger.debug("Dispatching %s", request.operation_name)
        try:
            spec = self.get(request.operation_name)
            params = validate(spec.params_model, request.raw_parameters)
            self._enforce_guards(spec, params)
            result = await spec.handler(self.context, params)
        except DispatchError as e:
            logger.info("Operation %s rejected (%s): %s", request.operation_name, e.kind.value, e.message)
            return format_error(e)
        except Exception as e:
            logger.exception("Unexpected error in operation %s", request.operation_name)
            return format_error(e)

        if not result.succeeded:
            logger.info("Operation %s failed: %s", request.operation_name, result.failure_detail)
        return format_result(result)
