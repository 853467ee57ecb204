"""Workflow browsing and dispatch for one repository."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from action_allegro.core.errors import ParseError
from action_allegro.github.client import GitHubClient
from action_allegro.workflows.schema import (
    InputSpec,
    coerce_inputs,
    extract_dispatch_inputs,
    has_dispatch_trigger,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WorkflowDetails:
    """What the details view shows for a single workflow."""

    workflow_id: int
    name: str
    path: str
    state: str
    html_url: str | None
    dispatchable: bool
    inputs: dict[str, InputSpec]


class WorkflowController:
    def __init__(self, github: GitHubClient) -> None:
        self._github = github

    @property
    def repository(self) -> str:
        return self._github.repository

    def list_workflows(self) -> dict[str, int]:
        return self._github.list_workflows()

    def fetch_details(self, workflow_id: int) -> dict[str, Any]:
        return self._github.get_workflow(workflow_id)

    def fetch_yaml(self, file_path: str) -> str:
        return self._github.get_file_text(file_path)

    def open_workflow(self, workflow_id: int) -> WorkflowDetails:
        """Fetch metadata and YAML and rebuild the input schema from scratch."""

        details = self.fetch_details(workflow_id)

        path = details.get("path")
        if not isinstance(path, str) or not path.strip():
            raise ParseError(f"Workflow {workflow_id} has no file path")

        workflow_yaml = self.fetch_yaml(path)
        inputs = extract_dispatch_inputs(workflow_yaml)

        name = details.get("name")
        state = details.get("state")
        html_url = details.get("html_url")
        return WorkflowDetails(
            workflow_id=workflow_id,
            name=name if isinstance(name, str) else path,
            path=path,
            state=state if isinstance(state, str) else "unknown",
            html_url=html_url if isinstance(html_url, str) and html_url else None,
            dispatchable=has_dispatch_trigger(workflow_yaml),
            inputs=inputs,
        )

    def dispatch(
        self,
        workflow_id: int,
        branch: str,
        inputs: dict[str, str | bool],
    ) -> None:
        """Trigger a run of ``workflow_id`` on ``branch`` with already-typed inputs."""

        self._github.dispatch_workflow(workflow_id, ref=branch, inputs=inputs)

    def dispatch_with_schema(
        self,
        workflow_id: int,
        branch: str,
        raw_values: dict[str, str],
        schema: dict[str, InputSpec] | None = None,
    ) -> dict[str, str | bool]:
        """Validate ``raw_values`` against the workflow's inputs, then dispatch.

        Returns:
            The typed inputs that were sent.
        """

        if schema is None:
            schema = self.open_workflow(workflow_id).inputs
        typed = coerce_inputs(schema, raw_values)
        self.dispatch(workflow_id, branch, typed)
        return typed

    def default_branch(self) -> str:
        return self._github.get_default_branch()
