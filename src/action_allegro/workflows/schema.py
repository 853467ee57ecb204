"""Derive the ``workflow_dispatch`` input schema from workflow YAML."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

import yaml

from action_allegro.core.errors import ParseError

InputType = Literal["string", "choice", "boolean"]

_KNOWN_TYPES: set[str] = {"string", "choice", "boolean"}
_TRUE_VALUES = {"true", "yes", "on", "1"}
_FALSE_VALUES = {"false", "no", "off", "0"}


@dataclass(frozen=True, slots=True)
class InputSpec:
    """One declared ``workflow_dispatch`` input."""

    input_type: InputType = "string"
    description: str = ""
    required: bool = False
    options: list[str] = field(default_factory=list)
    default: str | None = None


def _triggers(document: dict[Any, Any]) -> Any:
    # YAML 1.1 reads a bare `on` key as boolean True.
    if "on" in document:
        return document["on"]
    return document.get(True)


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _input_spec(raw: Any) -> InputSpec:
    if not isinstance(raw, dict):
        return InputSpec()

    declared = raw.get("type")
    input_type: InputType = declared if declared in _KNOWN_TYPES else "string"

    options_raw = raw.get("options")
    options = (
        [text for o in options_raw if (text := _as_text(o)) is not None]
        if isinstance(options_raw, list)
        else []
    )

    description = raw.get("description")
    return InputSpec(
        input_type=input_type,
        description=description if isinstance(description, str) else "",
        required=raw.get("required") is True,
        options=options,
        default=_as_text(raw.get("default")),
    )


def extract_dispatch_inputs(workflow_yaml: str) -> dict[str, InputSpec]:
    """Walk ``on.workflow_dispatch.inputs`` and describe every input.

    Missing or unrecognised fields fall back to a non-required string input
    with no options. A workflow without a manual trigger yields ``{}``.

    Raises:
        ParseError: The document is not valid YAML.
    """

    try:
        document = yaml.safe_load(workflow_yaml)
    except yaml.YAMLError as e:
        raise ParseError(f"Workflow YAML is malformed: {e}") from e

    if not isinstance(document, dict):
        return {}

    triggers = _triggers(document)
    if not isinstance(triggers, dict):
        return {}

    dispatch = triggers.get("workflow_dispatch")
    if not isinstance(dispatch, dict):
        return {}

    inputs = dispatch.get("inputs")
    if not isinstance(inputs, dict):
        return {}

    return {str(name): _input_spec(raw) for name, raw in inputs.items()}


def has_dispatch_trigger(workflow_yaml: str) -> bool:
    try:
        document = yaml.safe_load(workflow_yaml)
    except yaml.YAMLError as e:
        raise ParseError(f"Workflow YAML is malformed: {e}") from e
    if not isinstance(document, dict):
        return False

    triggers = _triggers(document)
    if isinstance(triggers, str):
        return triggers == "workflow_dispatch"
    if isinstance(triggers, list):
        return "workflow_dispatch" in triggers
    return isinstance(triggers, dict) and "workflow_dispatch" in triggers


def coerce_inputs(
    schema: dict[str, InputSpec], values: dict[str, str]
) -> dict[str, str | bool]:
    """Validate user-entered values against ``schema`` and type them.

    Empty values are omitted so the workflow's own defaults apply.

    Raises:
        ValueError: Unknown input, missing required input, a choice outside
            its options, or a boolean that is not recognisably true/false.
    """

    unknown = sorted(set(values) - set(schema))
    if unknown:
        raise ValueError(f"Unknown workflow inputs: {', '.join(unknown)}")

    typed: dict[str, str | bool] = {}
    for name, spec in schema.items():
        value = values.get(name, "").strip()
        if not value:
            if spec.required and spec.default is None:
                raise ValueError(f"Input '{name}' is required")
            continue

        if spec.input_type == "boolean":
            lowered = value.lower()
            if lowered in _TRUE_VALUES:
                typed[name] = True
            elif lowered in _FALSE_VALUES:
                typed[name] = False
            else:
                raise ValueError(f"Input '{name}' must be true or false, got {value!r}")
        elif spec.input_type == "choice":
            if spec.options and value not in spec.options:
                raise ValueError(
                    f"Input '{name}' must be one of {', '.join(spec.options)}, got {value!r}"
                )
            typed[name] = value
        else:
            typed[name] = value
    return typed
