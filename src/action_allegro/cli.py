"""Command-line surface over the ActionAllegro core.

Each invocation loads the persisted config, performs one action through
:class:`AppController`, prints the resulting status messages and exits. The
password is always prompted for; it is never accepted as an argument.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from action_allegro import __version__
from action_allegro.approvals.client import Decision
from action_allegro.core.config import AppSettings
from action_allegro.core.controller import AppController
from action_allegro.core.logging import configure_logging

logger = logging.getLogger(__name__)

_NEEDS_TOKEN = {"set-token", "workflows", "inputs", "dispatch", "sync", "push"}


def _parse_inputs(values: list[str] | None) -> dict[str, str]:
    parsed: dict[str, str] = {}
    for item in values or []:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"Expected NAME=VALUE, got {item!r}")
        parsed[name.strip()] = value
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="action-allegro",
        description="Organize and dispatch GitHub Actions workflows for one repository",
    )
    parser.add_argument("--version", action="version", version=f"action-allegro {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    setup = subparsers.add_parser("setup", help="Create the password-protected credential record")
    setup.add_argument("--name", required=True, help="Display name (also the commit author)")
    setup.add_argument("--email", default="", help="Commit author e-mail")
    setup.add_argument("--repo", "--repository", dest="repository", default="", help="owner/repo")

    subparsers.add_parser("set-token", help="Replace the stored access token")
    subparsers.add_parser("config-path", help="Print the location of the persisted config")

    configure = subparsers.add_parser("configure", help="Update non-secret settings")
    configure.add_argument("--repo", "--repository", dest="repository", default=None)
    configure.add_argument("--path", type=Path, default=None, help="Local clone directory")
    configure.add_argument("--email", default=None, help="Commit author e-mail")
    configure.add_argument("--listener-url", default=None)
    configure.add_argument("--listener-key", default=None)

    subparsers.add_parser("workflows", help="List workflows grouped by folder")

    inputs = subparsers.add_parser("inputs", help="Show the dispatch inputs of a workflow")
    inputs.add_argument("workflow_id", type=int)

    dispatch = subparsers.add_parser("dispatch", help="Trigger a workflow_dispatch run")
    dispatch.add_argument("workflow_id", type=int)
    dispatch.add_argument(
        "--branch",
        default=None,
        help="Target branch (defaults to the checked-out branch of the local clone)",
    )
    dispatch.add_argument(
        "--input",
        dest="inputs",
        action="append",
        metavar="NAME=VALUE",
        help="Workflow input; may be repeated",
    )

    sync = subparsers.add_parser("sync", help="Clone the repository or fetch into the clone")
    sync.add_argument("--path", type=Path, default=None, help="Clone destination")
    sync.add_argument("--force", action="store_true", help="Delete the clone and re-clone")

    subparsers.add_parser("status", help="Show the working copy status")

    commit = subparsers.add_parser("commit", help="Stage every change and commit")
    commit.add_argument("-m", "--message", required=True)
    commit.add_argument("--push", action="store_true", help="Push after committing")

    push = subparsers.add_parser("push", help="Push a branch to origin")
    push.add_argument("--branch", default=None, help="Defaults to the checked-out branch")

    subparsers.add_parser("branches", help="List local and remote branches")

    checkout = subparsers.add_parser("checkout", help="Switch branches")
    checkout.add_argument("name")
    checkout.add_argument(
        "--remote", action="store_true", help="Create a local branch tracking origin/NAME"
    )

    subparsers.add_parser("jobs", help="List pending drift-approval jobs")

    drift = subparsers.add_parser("drift", help="Show the drift report of a pending job")
    drift.add_argument("job_id")

    decide = subparsers.add_parser("decide", help="Approve or reject a pending job")
    decide.add_argument("job_id")
    decide.add_argument("decision", choices=["approve", "reject"])

    return parser


def _flush_messages(app: AppController) -> None:
    for message in app.messages:
        stream = sys.stderr if message.level == "error" else sys.stdout
        print(message.text, file=stream)
    app.messages.clear()


def _run(app: AppController, args: argparse.Namespace) -> bool:
    if args.command == "setup":
        password = getpass.getpass("New password: ")
        if password != getpass.getpass("Repeat password: "):
            app.notify("Passwords do not match", "error")
            return False
        token = getpass.getpass("GitHub access token: ")
        return app.first_run_setup(
            display_name=args.name,
            password=password,
            token=token,
            author_email=args.email,
            repo_name=args.repository,
        )

    if args.command == "config-path":
        print(app.store.path)
        return True

    if args.command == "configure":
        if args.repository is not None:
            app.config.repo_name = args.repository.strip()
        if args.path is not None:
            app.config.repo_path = args.path
        if args.email is not None:
            app.config.author_email = args.email.strip()
        if args.listener_url is not None or args.listener_key is not None:
            app.configure_listener(
                args.listener_url if args.listener_url is not None else app.config.listener_url,
                args.listener_key if args.listener_key is not None else app.config.listener_api_key,
            )
        return app.save()

    if args.command in _NEEDS_TOKEN and not app.unlock(getpass.getpass("Password: ")):
        return False

    if args.command == "set-token":
        return app.update_token(getpass.getpass("New GitHub access token: "))

    if args.command == "workflows":
        if not app.refresh_workflows():
            return False
        for folder in app.layout.names():
            names = app.layout.items_in(folder)
            if not names:
                continue
            print(folder)
            for name in names:
                print(f"  {app.workflows[name]:>12}  {name}")
        return app.save()

    if args.command == "inputs":
        details = app.open_workflow(args.workflow_id)
        if details is None:
            return False
        print(f"{details.name} ({details.path}) state={details.state}")
        if not details.dispatchable:
            print("  workflow has no workflow_dispatch trigger")
        for name, spec in details.inputs.items():
            flags = "required" if spec.required else "optional"
            options = f" options={','.join(spec.options)}" if spec.options else ""
            default = f" default={spec.default}" if spec.default is not None else ""
            print(f"  {name}: {spec.input_type} [{flags}]{options}{default} {spec.description}")
        return True

    if args.command == "dispatch":
        return app.dispatch_workflow(
            args.workflow_id, _parse_inputs(args.inputs), branch=args.branch
        )

    if args.command == "sync":
        ok = app.sync_repository(args.path, force=args.force)
        return app.save() and ok

    if args.command == "status":
        print(app.refresh_status().value)
        return True

    if args.command == "commit":
        if app.commit_changes(args.message) is None:
            return False
        if args.push:
            return app.unlock(getpass.getpass("Password: ")) and app.push_changes()
        return True

    if args.command == "push":
        return app.push_changes(args.branch)

    if args.command == "branches":
        local, remote, current = app.branches()
        for name in local:
            print(f"{'*' if name == current else ' '} {name}")
        for name in remote:
            print(f"  origin/{name}")
        return True

    if args.command == "checkout":
        return app.checkout(args.name, remote=args.remote)

    if args.command == "jobs":
        if not app.fetch_pending_jobs(timeout=app.settings.listener_timeout_seconds + 1):
            return False
        for job_name, job_ids in app.pending_jobs.items():
            print(f"{job_name}: {', '.join(job_ids)}")
        return True

    if args.command == "drift":
        if not app.fetch_pending_jobs(timeout=app.settings.listener_timeout_seconds + 1):
            return False
        info = app.drift_for(args.job_id)
        if info is None:
            return False
        print(f"{info.job_id} {info.job_name} decision={info.decision or 'pending'}")
        print(info.drift_text)
        return True

    if args.command == "decide":
        decision = Decision.APPROVE if args.decision == "approve" else Decision.REJECT
        return app.submit_decision(args.job_id, decision)

    logger.error("Unknown command", extra={"command": args.command})
    return False


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = AppSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your environment / .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    app = AppController(settings)
    app.load()
    if app.first_run and args.command not in {"setup", "config-path"}:
        print("No credentials found; run 'action-allegro setup' first", file=sys.stderr)
        return 2

    try:
        ok = _run(app, args)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 2
    finally:
        app.shutdown()
        _flush_messages(app)

    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
