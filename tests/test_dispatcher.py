"""
Tests for the operation registry, the dispatch path and response formatting.
"""

from typing import Optional

import pytest
from pydantic import BaseModel, Field

from devops_mcp.dispatcher import Dispatcher, OperationContext, OperationSpec, Request
from devops_mcp.errors import (
    ActionFailure,
    DuplicateOperationError,
    InvalidEnumValueError,
    MissingParameterError,
    TypeMismatchError,
    UnknownOperationError,
)
from devops_mcp.filesystem import FileSystem
from devops_mcp.responses import (
    FAILURE_MARKER,
    PREVIEW_MARKER,
    SUCCESS_MARKER,
    ActionResult,
    format_error,
    format_result,
)
from devops_mcp.security import Guard, GuardScope, PolicyGate


def is_failure(envelope):
    return bool(envelope) and envelope[0].text.startswith(FAILURE_MARKER)


class EchoInput(BaseModel):
    path: Optional[str] = Field(None)
    word: str = Field(...)


class Spy:
    def __init__(self, result=None, raises=None):
        self.calls = []
        self.result = result or ActionResult.ok("done")
        self.raises = raises

    async def __call__(self, ctx, params):
        self.calls.append(params)
        if self.raises is not None:
            raise self.raises
        return self.result


@pytest.fixture
def bare_dispatcher(policy_config, shell, history_file):
    context = OperationContext(
        policy=PolicyGate(policy_config),
        shell=shell,
        filesystem=FileSystem(),
        history_file=str(history_file),
    )
    return Dispatcher(context)


def _spec(handler, name="echo", guards=()):
    return OperationSpec(name, "Echo a word.", EchoInput, handler, guards)


class TestRegistry:

    def test_duplicate_name_is_rejected(self, bare_dispatcher):
        bare_dispatcher.register_operation(_spec(Spy()))

        with pytest.raises(DuplicateOperationError, match="echo"):
            bare_dispatcher.register_operation(_spec(Spy()))

    def test_sealed_registry_rejects_registration(self, bare_dispatcher):
        bare_dispatcher.seal()

        with pytest.raises(RuntimeError, match="sealed"):
            bare_dispatcher.register_operation(_spec(Spy()))

    def test_guard_must_name_a_parameter(self, bare_dispatcher):
        with pytest.raises(ValueError, match="unknown parameter 'nope'"):
            bare_dispatcher.register_operation(_spec(Spy(), guards=(Guard(GuardScope.READ_PATH, "nope"),)))

    def test_operations_keep_registration_order(self, bare_dispatcher):
        bare_dispatcher.register_operation(_spec(Spy(), name="b"))
        bare_dispatcher.register_operation(_spec(Spy(), name="a"))

        assert [s.name for s in bare_dispatcher.operations()] == ["b", "a"]

    def test_parameter_schema_is_json_schema(self):
        schema = _spec(Spy()).parameter_schema

        assert schema["type"] == "object"
        assert schema["required"] == ["word"]


class TestHandle:

    @pytest.mark.asyncio
    async def test_success(self, bare_dispatcher):
        spy = Spy(ActionResult.ok("hi"))
        bare_dispatcher.register_operation(_spec(spy))

        envelope = await bare_dispatcher.handle(Request("echo", {"word": "hi"}))

        assert envelope[0].text == f"{SUCCESS_MARKER} hi"
        assert spy.calls[0].word == "hi"

    @pytest.mark.asyncio
    async def test_unknown_operation_becomes_an_envelope(self, bare_dispatcher):
        bare_dispatcher.register_operation(_spec(Spy()))

        envelope = await bare_dispatcher.handle(Request("nope", {}))

        assert envelope[0].text.startswith(f"{FAILURE_MARKER} Unknown operation: nope")
        assert "Available operations: echo" in envelope[0].text

    @pytest.mark.asyncio
    async def test_validation_runs_before_handler(self, bare_dispatcher):
        spy = Spy()
        bare_dispatcher.register_operation(_spec(spy))

        envelope = await bare_dispatcher.handle(Request("echo", {}))

        assert envelope[0].text.startswith(f"{FAILURE_MARKER} Missing parameter:")
        assert "'word'" in envelope[0].text
        assert spy.calls == []

    @pytest.mark.asyncio
    async def test_guard_denial_stops_handler(self, bare_dispatcher):
        spy = Spy()
        bare_dispatcher.register_operation(_spec(spy, guards=(Guard(GuardScope.READ_PATH, "path"),)))

        envelope = await bare_dispatcher.handle(Request("echo", {"word": "x", "path": "/etc/passwd"}))

        assert envelope[0].text.startswith(f"{FAILURE_MARKER} Not allowed:")
        assert spy.calls == []

    @pytest.mark.asyncio
    async def test_unset_optional_guarded_parameter_is_skipped(self, bare_dispatcher):
        spy = Spy()
        bare_dispatcher.register_operation(_spec(spy, guards=(Guard(GuardScope.READ_PATH, "path"),)))

        envelope = await bare_dispatcher.handle(Request("echo", {"word": "x"}))

        assert not is_failure(envelope)
        assert len(spy.calls) == 1

    @pytest.mark.asyncio
    async def test_unexpected_exception_never_escapes(self, bare_dispatcher):
        bare_dispatcher.register_operation(_spec(Spy(raises=RuntimeError("kaboom"))))

        envelope = await bare_dispatcher.handle(Request("echo", {"word": "x"}))

        assert envelope[0].text == f"{FAILURE_MARKER} Action failed: Unexpected error: kaboom"

    @pytest.mark.asyncio
    async def test_raised_action_failure_keeps_hint(self, bare_dispatcher):
        error = ActionFailure("daemon down", hint="start it")
        bare_dispatcher.register_operation(_spec(Spy(raises=error)))

        envelope = await bare_dispatcher.handle(Request("echo", {"word": "x"}))

        assert envelope[0].text == f"{FAILURE_MARKER} Action failed: daemon down\n\nHint: start it"

    @pytest.mark.asyncio
    async def test_success_and_failure_share_one_shape(self, bare_dispatcher):
        bare_dispatcher.register_operation(_spec(Spy()))

        ok = await bare_dispatcher.handle(Request("echo", {"word": "x"}))
        bad = await bare_dispatcher.handle(Request("echo", {}))

        for envelope in (ok, bad):
            assert len(envelope) == 1
            assert envelope[0].type == "text"
        assert not is_failure(ok)
        assert is_failure(bad)


class TestFormatter:

    def test_preview_marker_is_not_a_failure(self):
        envelope = format_result(ActionResult.ok("partial", preview=True))

        assert envelope[0].text == f"{PREVIEW_MARKER} partial"
        assert not is_failure(envelope)

    def test_failed_result_with_hint(self):
        envelope = format_result(ActionResult.failed("no such container", hint="docker ps -a"))

        assert envelope[0].text == f"{FAILURE_MARKER} Action failed: no such container\n\nHint: docker ps -a"

    def test_with_hint_does_not_override_existing_hint(self):
        result = ActionResult.failed("x", hint="first").with_hint("second")

        assert result.hint == "first"

    def test_with_hint_ignored_on_success(self):
        assert ActionResult.ok("x").with_hint("h").hint is None

    def test_parameter_error_label(self):
        envelope = format_error(MissingParameterError("path"))

        assert envelope[0].text == f"{FAILURE_MARKER} Missing parameter: 'path' is required"

    @pytest.mark.parametrize("error, expected", [
        (UnknownOperationError("nope"), "Unknown operation: nope"),
        (InvalidEnumValueError("scope", "x", ["local", "all"]),
         "Invalid value: 'x' for parameter 'scope'. Allowed values: local, all"),
        (TypeMismatchError("lines", "must be a number"), "Invalid parameter: 'lines': must be a number"),
    ])
    def test_label_is_not_repeated_in_message(self, error, expected):
        envelope = format_error(error)

        assert envelope[0].text == f"{FAILURE_MARKER} {expected}"
