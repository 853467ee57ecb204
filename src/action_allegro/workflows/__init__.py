"""Workflow listing, input schema extraction and dispatch."""

from action_allegro.workflows.controller import WorkflowController, WorkflowDetails
from action_allegro.workflows.schema import InputSpec, coerce_inputs, extract_dispatch_inputs

__all__ = [
    "InputSpec",
    "WorkflowController",
    "WorkflowDetails",
    "coerce_inputs",
    "extract_dispatch_inputs",
]
