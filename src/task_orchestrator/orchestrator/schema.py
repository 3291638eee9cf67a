"""Output schema handling for agent responses.

The agent's reply is untrusted until it validates against the output schema:
a fixed base schema, optionally refined by the caller.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable
from typing import Any

import jsonschema
from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match

from task_orchestrator.orchestrator.errors import ConfigurationError, SchemaValidationError

BASE_OUTPUT_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "message": {
            "type": "string",
            "description": "Message for the user",
        },
        "functions": {
            "type": "array",
            "description": "List of functions",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "Function name"},
                    "args": {
                        "type": "object",
                        "description": "{...args, [arg_name]: arg_value}",
                    },
                    # Any JSON value.
                    "results": {"description": "To be filled with function result"},
                    "status": {"type": "string", "description": "Function status"},
                },
                "required": ["name"],
            },
        },
    },
    "required": ["message", "functions"],
}


def merge_schemas(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` onto ``base`` field by field.

    Nested objects merge recursively and ``required`` lists are unioned, so an
    override can add constraints but never drops a base requirement.
    """

    merged = copy.deepcopy(base)
    for key, value in override.items():
        current = merged.get(key)
        if key == "required" and isinstance(current, list) and isinstance(value, list):
            merged[key] = [*current, *(v for v in value if v not in current)]
        elif isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_schemas(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _closed(schema: Any) -> Any:
    if isinstance(schema, list):
        return [_closed(item) for item in schema]
    if not isinstance(schema, dict):
        return schema
    out = {key: _closed(value) for key, value in schema.items()}
    if "properties" in out and "additionalProperties" not in out:
        out["additionalProperties"] = False
    return out


def _json_path(root: str, parts: Iterable[Any]) -> str:
    path = root
    for part in parts:
        path += f"[{part}]" if isinstance(part, int) else f".{part}"
    return path


def validate(
    schema: dict[str, Any],
    candidate: Any,
    *,
    optional: bool = False,
    path: str = "$",
    reject_extra_properties: bool = False,
) -> Any:
    """Validate ``candidate`` and return a deep copy of it.

    Raises:
        SchemaValidationError: if the candidate does not match; the message is
            prefixed with the JSON path of the most relevant error.
        ConfigurationError: if the schema itself is malformed.
    """

    if candidate is None and optional:
        return None

    effective = _closed(schema) if reject_extra_properties else schema
    try:
        Draft7Validator.check_schema(effective)
    except jsonschema.SchemaError as e:
        raise ConfigurationError(f"Invalid output schema: {e.message}") from e

    error = best_match(Draft7Validator(effective).iter_errors(candidate))
    if error is not None:
        where = _json_path(path, error.absolute_path)
        raise SchemaValidationError(f"{where}: {error.message}", path=where)
    return copy.deepcopy(candidate)


def shape_response(schema: dict[str, Any], candidate: Any) -> Any:
    """Project a response onto the schema's declared top-level properties."""

    properties = schema.get("properties")
    if not isinstance(candidate, dict) or not isinstance(properties, dict):
        return copy.deepcopy(candidate)
    return {key: copy.deepcopy(value) for key, value in candidate.items() if key in properties}
