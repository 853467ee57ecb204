#!/usr/bin/env python3
"""Programmatic workflow dispatch example.

This demonstrates using the ActionAllegro components directly, without the
persisted config or the password prompt:

* load settings from `.env`
* read the workflow_dispatch inputs of one workflow
* trigger a run on a branch with typed inputs

The token is read from the ``GITHUB_TOKEN`` environment variable.
"""

from __future__ import annotations

import argparse
import os
from typing import Sequence

from action_allegro.core.config import AppSettings
from action_allegro.core.errors import ActionAllegroError
from action_allegro.core.logging import configure_logging
from action_allegro.github.client import GitHubClient
from action_allegro.workflows.controller import WorkflowController


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Dispatch a workflow (programmatic example).")
    parser.add_argument("--repo", required=True, help='Target repository in the form "owner/repo"')
    parser.add_argument("--workflow", type=int, required=True, help="Workflow id")
    parser.add_argument("--branch", default="", help="Branch to run on (default branch if empty)")
    parser.add_argument(
        "--input",
        dest="inputs",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Workflow input; may be repeated",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    values = dict(item.split("=", 1) for item in args.inputs if "=" in item)

    settings = AppSettings()
    configure_logging(settings.log_level)

    github = GitHubClient(
        token=os.environ["GITHUB_TOKEN"],
        repository=args.repo,
        base_url=settings.github_api_url,
        timeout=settings.request_timeout_seconds,
    )
    controller = WorkflowController(github)

    try:
        details = controller.open_workflow(args.workflow)
        branch = args.branch or controller.default_branch()
        typed = controller.dispatch_with_schema(
            args.workflow, branch, values, schema=details.inputs
        )
    except (ActionAllegroError, ValueError) as exc:
        print(str(exc))
        return 1
    finally:
        github.close()

    print(f"Dispatched {details.name} on {branch}")
    print(f"Inputs: {typed}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
