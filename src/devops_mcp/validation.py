"""Parameter validation for tool calls.

Each operation declares its parameters as a pydantic model. Validation runs in
strict mode so a string is never silently accepted where a number or boolean
is declared, and pydantic's error list is translated into the dispatch error
taxonomy (first offending field wins).
"""

from typing import Any, Literal, Mapping, Optional, TypeVar, Union, get_args, get_origin

from pydantic import BaseModel, ValidationError
from pydantic.fields import FieldInfo
from pydantic_core import PydanticUndefined

from .errors import InvalidEnumValueError, MissingParameterError, ParameterError, TypeMismatchError

ModelT = TypeVar("ModelT", bound=BaseModel)

_KIND_NAMES = {str: "string", int: "number", float: "number", bool: "boolean"}


def _enum_values(annotation: Any) -> list[str]:
    values: list[str] = []
    for candidate in (annotation, *get_args(annotation)):
        if get_origin(candidate) is Literal:
            values.extend(str(v) for v in get_args(candidate))
    return values


def _kind(annotation: Any) -> str:
    if _enum_values(annotation):
        return "enum"
    if get_origin(annotation) is Union:
        members = [a for a in get_args(annotation) if a is not type(None)]
        if len(members) == 1:
            return _kind(members[0])
    return _KIND_NAMES.get(annotation, "object")


def describe_parameters(model: type[BaseModel]) -> dict[str, dict[str, Any]]:
    """Return the ordered parameter schema of an input model.

    Each entry carries ``kind`` (string/number/boolean/enum), ``required``,
    ``default`` and, for enums, ``enum`` with the allowed values.
    """
    schema: dict[str, dict[str, Any]] = {}
    for name, field in model.model_fields.items():
        key = field.alias or name
        entry: dict[str, Any] = {
            "kind": _kind(field.annotation),
            "required": field.is_required(),
            "default": None if field.default is PydanticUndefined else field.default,
        }
        values = _enum_values(field.annotation)
        if values:
            entry["enum"] = values
        schema[key] = entry
    return schema


def usage(model: type[BaseModel]) -> str:
    """One-line summary of the parameters, used as a remediation hint."""
    parts = []
    for name, entry in describe_parameters(model).items():
        detail = entry["kind"] if entry["required"] else f"{entry['kind']}, optional"
        parts.append(f"{name} ({detail})")
    return "Expected parameters: " + (", ".join(parts) if parts else "none")


def _field_for(model: type[BaseModel], key: str) -> Optional[FieldInfo]:
    for name, field in model.model_fields.items():
        if key in (name, field.alias):
            return field
    return None


def _translate(model: type[BaseModel], raw: Mapping[str, Any], exc: ValidationError) -> ParameterError:
    err = exc.errors()[0]
    loc = err.get("loc") or ("parameters",)
    key = str(loc[0])
    field = _field_for(model, key)
    error_type = err.get("type", "")

    if error_type == "missing":
        return MissingParameterError(key)

    allowed = _enum_values(field.annotation) if field is not None else []
    if allowed:
        return InvalidEnumValueError(key, raw.get(key), allowed)

    return TypeMismatchError(key, err.get("msg", "invalid value"))


def validate(model: type[ModelT], raw: Optional[Mapping[str, Any]]) -> ModelT:
    """Validate a raw parameter payload against an operation's input model.

    Missing optional fields take their declared defaults; unrecognised fields
    are ignored.
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise TypeMismatchError("parameters", f"expected an object, got {type(raw).__name__}")

    try:
        return model.model_validate(dict(raw), strict=True)
    except ValidationError as exc:
        error = _translate(model, raw, exc)
        if error.hint is None:
            error.hint = usage(model)
        raise error from exc
