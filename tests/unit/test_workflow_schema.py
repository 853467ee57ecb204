"""Unit tests for workflow_dispatch input extraction and coercion."""

from __future__ import annotations

import pytest

from action_allegro.core.errors import ParseError
from action_allegro.workflows.schema import (
    InputSpec,
    coerce_inputs,
    extract_dispatch_inputs,
    has_dispatch_trigger,
)

CHOICE_YAML = """\
on:
  workflow_dispatch:
    inputs:
      env:
        type: choice
        required: true
        options: [dev, prod]
"""


def test_choice_input_is_described() -> None:
    assert extract_dispatch_inputs(CHOICE_YAML) == {
        "env": InputSpec(input_type="choice", required=True, options=["dev", "prod"])
    }


def test_missing_fields_fall_back_to_optional_string() -> None:
    workflow = """\
"on":
  workflow_dispatch:
    inputs:
      tag:
      level:
        type: number
        description: How loud
        default: 3
"""

    inputs = extract_dispatch_inputs(workflow)

    assert inputs["tag"] == InputSpec()
    assert inputs["level"] == InputSpec(description="How loud", default="3")


def test_workflows_without_dispatch_inputs() -> None:
    assert extract_dispatch_inputs("on: push\n") == {}
    assert extract_dispatch_inputs("on:\n  workflow_dispatch:\n") == {}
    assert extract_dispatch_inputs("just a string") == {}


def test_malformed_yaml_is_a_parse_error() -> None:
    with pytest.raises(ParseError):
        extract_dispatch_inputs("on: [unclosed\n")


@pytest.mark.parametrize(
    ("workflow", "expected"),
    [
        ("on: workflow_dispatch\n", True),
        ("on: [push, workflow_dispatch]\n", True),
        ("on:\n  workflow_dispatch:\n", True),
        ("on: push\n", False),
        ("name: no triggers\n", False),
    ],
)
def test_dispatch_trigger_detection(workflow: str, expected: bool) -> None:
    assert has_dispatch_trigger(workflow) is expected


def test_coerce_types_values_and_omits_blanks() -> None:
    schema = {
        "env": InputSpec(input_type="choice", required=True, options=["dev", "prod"]),
        "dry_run": InputSpec(input_type="boolean"),
        "note": InputSpec(),
    }

    assert coerce_inputs(schema, {"env": "prod", "dry_run": "Yes", "note": ""}) == {
        "env": "prod",
        "dry_run": True,
    }


@pytest.mark.parametrize(
    "values",
    [
        {"env": "staging"},
        {"env": ""},
        {"env": "dev", "dry_run": "maybe"},
        {"env": "dev", "unknown": "x"},
    ],
)
def test_coerce_rejects_invalid_values(values: dict[str, str]) -> None:
    schema = {
        "env": InputSpec(input_type="choice", required=True, options=["dev", "prod"]),
        "dry_run": InputSpec(input_type="boolean"),
    }

    with pytest.raises(ValueError):
        coerce_inputs(schema, values)


def test_required_input_with_default_may_be_blank() -> None:
    schema = {"env": InputSpec(required=True, default="dev")}

    assert coerce_inputs(schema, {}) == {}
