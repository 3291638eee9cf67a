"""Unit tests for output schema merging and validation."""

from __future__ import annotations

import pytest

from task_orchestrator.orchestrator.errors import ConfigurationError, SchemaValidationError
from task_orchestrator.orchestrator.schema import (
    BASE_OUTPUT_SCHEMA,
    merge_schemas,
    shape_response,
    validate,
)


def test_merge_schemas_unions_required_and_merges_properties() -> None:
    override = {
        "properties": {"mood": {"type": "string"}},
        "required": ["mood", "message"],
    }

    merged = merge_schemas(BASE_OUTPUT_SCHEMA, override)

    assert merged["required"] == ["message", "functions", "mood"]
    assert set(merged["properties"]) == {"message", "functions", "mood"}
    # Base is untouched.
    assert "mood" not in BASE_OUTPUT_SCHEMA["properties"]


def test_validate_returns_a_copy() -> None:
    candidate = {"message": "hi", "functions": [{"name": "submit", "args": {"a": 1}}]}

    result = validate(BASE_OUTPUT_SCHEMA, candidate)

    assert result == candidate
    assert result is not candidate
    assert result["functions"] is not candidate["functions"]


def test_validate_reports_json_path_of_error() -> None:
    with pytest.raises(SchemaValidationError) as exc_info:
        validate(BASE_OUTPUT_SCHEMA, {"message": "hi", "functions": [{"name": 42}]})

    assert str(exc_info.value).startswith("$.functions[0].name:")
    assert exc_info.value.path == "$.functions[0].name"


def test_validate_reports_missing_required_field() -> None:
    with pytest.raises(SchemaValidationError) as exc_info:
        validate(BASE_OUTPUT_SCHEMA, {"message": "hi"})

    assert "functions" in str(exc_info.value)


def test_validate_accepts_any_results_value() -> None:
    for results in (None, "text", 3, [1, 2], {"a": 1}):
        validate(
            BASE_OUTPUT_SCHEMA,
            {"message": "", "functions": [{"name": "listSteps", "results": results}]},
        )


def test_validate_optional_none_passes() -> None:
    assert validate(BASE_OUTPUT_SCHEMA, None, optional=True) is None

    with pytest.raises(SchemaValidationError):
        validate(BASE_OUTPUT_SCHEMA, None)


def test_validate_rejects_extra_properties_when_asked() -> None:
    candidate = {"message": "hi", "functions": [], "debug": True}

    assert validate(BASE_OUTPUT_SCHEMA, candidate)["debug"] is True
    with pytest.raises(SchemaValidationError):
        validate(BASE_OUTPUT_SCHEMA, candidate, reject_extra_properties=True)


def test_validate_uses_custom_root_path() -> None:
    schema = {"type": "object", "properties": {"n": {"type": "integer"}}}

    with pytest.raises(SchemaValidationError) as exc_info:
        validate(schema, {"n": "x"}, path="body")

    assert str(exc_info.value).startswith("body.n:")


def test_invalid_schema_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        validate({"type": "not-a-type"}, {})


def test_shape_response_keeps_declared_properties_only() -> None:
    shaped = shape_response(
        BASE_OUTPUT_SCHEMA, {"message": "m", "functions": [], "prompt": [{"role": "user"}]}
    )

    assert shaped == {"message": "m", "functions": []}
