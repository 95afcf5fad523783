"""JSON Schema helpers for capability parameters."""

import inspect
import types
from typing import Any, Callable, Union, get_args, get_origin

from jsonschema import Draft7Validator

from shared.models import PromptArgument


def validate_schema(data: Any, schema: dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate data against a JSON Schema.

    Args:
        data: The data to validate
        schema: JSON Schema to validate against

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    if not schema:
        return True, []

    validator = Draft7Validator(schema)
    errors = list(validator.iter_errors(data))

    if not errors:
        return True, []

    error_messages = [
        f"{'.'.join(str(p) for p in e.path)}: {e.message}" if e.path else e.message
        for e in errors
    ]

    return False, error_messages


_TYPE_MAPPING: dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    dict: "object",
}


def annotation_to_schema(annotation: Any) -> dict[str, Any]:
    """Map a parameter annotation to a JSON Schema fragment. Unknown types allow anything."""
    if annotation in _TYPE_MAPPING:
        return {"type": _TYPE_MAPPING[annotation]}

    origin = get_origin(annotation)
    args = get_args(annotation)

    if origin in (Union, types.UnionType):
        non_none = [arg for arg in args if arg is not type(None)]
        if len(non_none) == 1:
            schema = annotation_to_schema(non_none[0])
            if "type" in schema:
                schema["type"] = [schema["type"], "null"]
            return schema
        return {}

    if origin is list:
        schema: dict[str, Any] = {"type": "array"}
        if args:
            schema["items"] = annotation_to_schema(args[0])
        return schema

    if origin is dict:
        return {"type": "object"}

    return {}


def _handler_parameters(handler: Callable[..., Any]) -> list[inspect.Parameter]:
    return [
        param
        for param in inspect.signature(handler).parameters.values()
        if param.kind not in (param.VAR_POSITIONAL, param.VAR_KEYWORD)
    ]


def schema_from_handler(handler: Callable[..., Any]) -> dict[str, Any]:
    """
    Derive a tool input schema from a handler's signature.

    Parameters without a default are required.
    """
    properties: dict[str, Any] = {}
    required: list[str] = []

    for param in _handler_parameters(handler):
        annotation = Any if param.annotation is inspect.Parameter.empty else param.annotation
        properties[param.name] = annotation_to_schema(annotation)
        if param.default is inspect.Parameter.empty:
            required.append(param.name)

    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def prompt_arguments_from_handler(handler: Callable[..., Any]) -> list[PromptArgument]:
    """Describe a prompt handler's parameters as prompt arguments."""
    return [
        PromptArgument(
            name=param.name,
            required=param.default is inspect.Parameter.empty,
        )
        for param in _handler_parameters(handler)
    ]
