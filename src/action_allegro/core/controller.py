"""Headless application state driven by the UI frame loop.

The desktop UI (or the CLI) calls into :class:`AppController`; nothing here
renders anything. All operations except the approval poll run synchronously on
the caller's thread. Expected failures never escape: they become transient
status messages that expire after a fixed display duration.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, TypeVar

from action_allegro.approvals.client import Decision, ListenerClient
from action_allegro.approvals.poller import ApprovalPoller, PollResult
from action_allegro.approvals.records import DriftInfo
from action_allegro.core.config import AppSettings
from action_allegro.core.errors import ActionAllegroError, ConfigIOError, DecryptError
from action_allegro.git.sync import RepoStatus, RepoSyncEngine
from action_allegro.github.client import GitHubClient
from action_allegro.state.folders import FolderLayout
from action_allegro.state.store import ConfigStore, PersistedConfig
from action_allegro.vault import crypto
from action_allegro.workflows.controller import WorkflowController, WorkflowDetails

logger = logging.getLogger(__name__)

T = TypeVar("T")

MessageLevel = Literal["info", "error"]


@dataclass(frozen=True, slots=True)
class StatusMessage:
    text: str
    level: MessageLevel
    expires_at: float


class Interval:
    """Fires at most once per ``seconds`` of the supplied clock."""

    def __init__(self, seconds: float, *, immediate: bool = False) -> None:
        self.seconds = seconds
        self._immediate = immediate
        self._next: float | None = None

    def due(self, now: float) -> bool:
        if self._next is None:
            self._next = now + self.seconds
            return self._immediate
        if now >= self._next:
            self._next = now + self.seconds
            return True
        return False

    def reset(self, now: float) -> None:
        self._next = now + self.seconds


GitHubFactory = Callable[[str, str], GitHubClient]
ListenerFactory = Callable[[str, str], ListenerClient]


class AppController:
    """Projection of the persisted config plus transient session state."""

    def __init__(
        self,
        settings: AppSettings,
        *,
        store: ConfigStore | None = None,
        engine: RepoSyncEngine | None = None,
        github_factory: GitHubFactory | None = None,
        listener_factory: ListenerFactory | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self.store = store or ConfigStore(settings.config_file)
        self.engine = engine or RepoSyncEngine(web_base_url=settings.github_web_url)
        self._github_factory = github_factory or self._default_github_client
        self._listener_factory = listener_factory or self._default_listener_client
        self._clock = clock

        self.config = PersistedConfig()
        self.layout = FolderLayout(self.config.folders)
        self.first_run = True

        # Transient; never serialized.
        self._token: str | None = None
        self._key_iv: tuple[bytes, bytes] | None = None
        self._poller: ApprovalPoller | None = None
        self._github: GitHubClient | None = None
        self._github_key: tuple[str, str] | None = None

        self.repo_status = RepoStatus.NOT_CLONED
        self.workflows: dict[str, int] = {}
        self.messages: list[StatusMessage] = []

        self._autosave = Interval(settings.autosave_interval_seconds)
        self._status_refresh = Interval(settings.status_refresh_interval_seconds, immediate=True)
        self._poll = Interval(settings.poll_interval_seconds, immediate=True)

    # -- factories -----------------------------------------------------

    def _default_github_client(self, repository: str, token: str) -> GitHubClient:
        return GitHubClient(
            token=token,
            repository=repository,
            base_url=self.settings.github_api_url,
            timeout=self.settings.request_timeout_seconds,
        )

    def _default_listener_client(self, url: str, api_key: str) -> ListenerClient:
        return ListenerClient(
            base_url=url, api_key=api_key, timeout=self.settings.listener_timeout_seconds
        )

    # -- messages ------------------------------------------------------

    def notify(self, text: str, level: MessageLevel = "info") -> None:
        expires_at = self._clock() + self.settings.message_display_seconds
        self.messages.append(StatusMessage(text=text, level=level, expires_at=expires_at))
        log = logger.error if level == "error" else logger.info
        log(text)

    def _attempt(self, action: str, fn: Callable[[], T]) -> T | None:
        try:
            return fn()
        except (ActionAllegroError, ValueError) as e:
            self.notify(f"{action} failed: {e}", "error")
            return None

    # -- persistence ---------------------------------------------------

    def load(self) -> bool:
        """Load the persisted config; returns False on first run."""

        config = self.store.load()
        if config is None:
            self.first_run = True
            return False

        self.config = config
        self.layout = FolderLayout(self.config.folders)
        self.first_run = not config.has_credentials
        self.refresh_status()
        return not self.first_run

    def save(self) -> bool:
        try:
            self.store.export(self.config)
        except ConfigIOError as e:
            self.notify(str(e), "error")
            return False
        return True

    # -- credentials ---------------------------------------------------

    @property
    def is_unlocked(self) -> bool:
        return bool(self._token)

    @property
    def token(self) -> str | None:
        return self._token or None

    def first_run_setup(
        self,
        *,
        display_name: str,
        password: str,
        token: str,
        author_email: str = "",
        repo_name: str = "",
    ) -> bool:
        """Create the credential record and persist it."""

        if not display_name.strip() or not password or not token.strip():
            self.notify("Name, password and access token are all required", "error")
            return False

        salt = crypto.new_salt()
        kdf_salt = crypto.new_salt()
        iterations = self.settings.kdf_iterations
        key_iv = crypto.derive_key_iv(password, kdf_salt, iterations)

        self.config.display_name = display_name.strip()
        self.config.author_email = author_email.strip()
        if repo_name.strip():
            self.config.repo_name = repo_name.strip()
        self.config.salt = salt.hex()
        self.config.hashed_password = crypto.hash_password(password, salt)
        self.config.kdf_salt = kdf_salt.hex()
        self.config.kdf_iterations = iterations
        self.config.encrypted_token = crypto.encrypt_token_with_key(token.strip(), *key_iv)

        self._key_iv = key_iv
        self._token = token.strip()
        self.first_run = False
        return self.save()

    def unlock(self, password: str) -> bool:
        """Verify ``password`` and decrypt the stored token.

        Wrong passwords and undecryptable tokens are reported with the same
        generic message; the token stays unset in both cases.
        """

        self.lock()
        if not self.config.has_credentials:
            self.notify("No credentials have been set up yet", "error")
            return False

        try:
            verified = crypto.verify_password(
                password, self.config.salt_bytes, self.config.hashed_password
            )
            if not verified:
                raise DecryptError("password mismatch")
            key_iv = crypto.derive_key_iv(
                password, self.config.kdf_salt_bytes, self.config.kdf_iterations
            )
            self._key_iv = key_iv
            if self.config.encrypted_token:
                self._token = crypto.decrypt_token_with_key(self.config.encrypted_token, *key_iv)
        except ActionAllegroError:
            self._key_iv = None
            self.notify("Failed to decrypt token: check your password", "error")
            return False

        if not self._token:
            self.notify("No access token stored; set one to continue", "error")
        return self.is_unlocked

    def lock(self) -> None:
        self._token = None
        self._key_iv = None
        self._close_github()

    def update_token(self, token: str) -> bool:
        """Re-encrypt a new access token under the unlocked session key."""

        if self._key_iv is None:
            self.notify("Unlock with your password before changing the token", "error")
            return False
        if not token.strip():
            self.notify("Access token must not be empty", "error")
            return False

        self.config.encrypted_token = crypto.encrypt_token_with_key(token.strip(), *self._key_iv)
        self._token = token.strip()
        self._close_github()
        return self.save()

    def _require_token(self) -> str:
        if not self._token:
            raise DecryptError("Not unlocked")
        return self._token

    # -- repository ----------------------------------------------------

    def refresh_status(self) -> RepoStatus:
        status = self._attempt(
            "Status check", lambda: self.engine.compute_status(self.config.repo_path)
        )
        self.repo_status = status if status is not None else RepoStatus.NOT_CLONED
        self._status_refresh.reset(self._clock())
        return self.repo_status

    def sync_repository(self, dest: Path | None = None, *, force: bool = False) -> bool:
        """Clone or update the working copy; ``force`` deletes and re-clones.

        The recorded repository path only changes once the operation succeeds.
        """

        target = dest or self.config.repo_path
        if target is None:
            self.notify("Choose a folder for the local clone first", "error")
            return False
        if not self.config.repo_name:
            self.notify("Set the repository name first", "error")
            return False

        def run() -> str:
            token = self._require_token()
            if force:
                self.engine.clone_fresh(self.config.repo_name, token, target)
                return "cloned"
            return self.engine.clone_or_update(self.config.repo_name, token, target)

        try:
            outcome = self._attempt("Repository sync", run)
            if outcome is None:
                return False
            self.config.repo_path = target
            self.notify(f"Repository {outcome}: {self.config.repo_name}")
            return True
        finally:
            self.refresh_status()

    def commit_changes(self, message: str) -> str | None:
        path = self.config.repo_path
        if path is None:
            self.notify("No local repository", "error")
            return None

        def run() -> str:
            self.engine.stage_all_changes(path)
            return self.engine.commit(
                path, self.config.display_name, self.config.author_email, message
            )

        try:
            sha = self._attempt("Commit", run)
        finally:
            self.refresh_status()
        if sha is not None:
            self.notify(f"Committed {sha[:8]}")
        return sha

    def push_changes(self, branch: str | None = None) -> bool:
        path = self.config.repo_path
        if path is None:
            self.notify("No local repository", "error")
            return False

        try:
            pushed = self._attempt(
                "Push", lambda: self.engine.push(path, self._require_token(), branch)
            )
        finally:
            self.refresh_status()
        if pushed is None:
            return False
        self.notify(f"Pushed {pushed}")
        return True

    def commit_and_push(self, message: str) -> bool:
        return self.commit_changes(message) is not None and self.push_changes()

    def branches(self) -> tuple[list[str], list[str], str | None]:
        """Return (local branches, remote branches, current branch)."""

        path = self.config.repo_path
        if path is None or self.repo_status == RepoStatus.NOT_CLONED:
            return [], [], None

        local = self._attempt("List branches", lambda: self.engine.list_local_branches(path))
        remote = self._attempt(
            "List remote branches", lambda: self.engine.list_remote_branches(path)
        )
        current = self._attempt("Read current branch", lambda: self.engine.current_branch(path))
        return local or [], remote or [], current

    def checkout(self, name: str, *, remote: bool = False) -> bool:
        path = self.config.repo_path
        if path is None:
            self.notify("No local repository", "error")
            return False

        def run() -> bool:
            if remote:
                self.engine.checkout_remote_as_local(path, name)
            else:
                self.engine.checkout_branch(path, name)
            return True

        try:
            ok = self._attempt(f"Checkout {name}", run)
        finally:
            self.refresh_status()
        return bool(ok)

    # -- workflows -----------------------------------------------------

    def _github_client(self) -> GitHubClient:
        """One client per (repository, token); replaced when either changes."""

        if not self.config.repo_name:
            raise ValueError("Repository name is not set")
        key = (self.config.repo_name, self._require_token())
        if self._github is None or self._github_key != key:
            self._close_github()
            self._github = self._github_factory(*key)
            self._github_key = key
        return self._github

    def _close_github(self) -> None:
        if self._github is not None:
            self._github.close()
        self._github = None
        self._github_key = None

    def workflow_controller(self) -> WorkflowController:
        return WorkflowController(self._github_client())

    def refresh_workflows(self) -> bool:
        workflows = self._attempt(
            "Fetch workflows", lambda: self.workflow_controller().list_workflows()
        )
        if workflows is None:
            return False
        self.workflows = workflows
        self.layout.sync(workflows)
        return True

    def open_workflow(self, workflow_id: int) -> WorkflowDetails | None:
        return self._attempt(
            "Fetch workflow details",
            lambda: self.workflow_controller().open_workflow(workflow_id),
        )

    def dispatch_branch(self, controller: WorkflowController | None = None) -> str:
        """Branch a dispatch targets by default: the checked-out branch of the
        local clone, else the repository's default branch."""

        path = self.config.repo_path
        if path is not None and self.repo_status != RepoStatus.NOT_CLONED:
            return self.engine.current_branch(path)
        return (controller or self.workflow_controller()).default_branch()

    def dispatch_workflow(
        self, workflow_id: int, values: dict[str, str], *, branch: str | None = None
    ) -> bool:
        def run() -> str:
            controller = self.workflow_controller()
            ref = branch or self.dispatch_branch(controller)
            controller.dispatch_with_schema(workflow_id, ref, values)
            return ref

        ref = self._attempt("Dispatch", run)
        if ref is None:
            return False
        self.notify(f"Dispatched workflow {workflow_id} on {ref}")
        return True

    # -- approvals -----------------------------------------------------

    def configure_listener(self, url: str, api_key: str) -> None:
        self.config.listener_url = url.strip()
        self.config.listener_api_key = api_key
        if self._poller is not None:
            self._poller.shutdown()
            self._poller = None

    @property
    def poller(self) -> ApprovalPoller | None:
        if self._poller is None and self.config.listener_url:
            url, api_key = self.config.listener_url, self.config.listener_api_key
            self._poller = ApprovalPoller(
                self._listener_factory(url, api_key),
                decision_client=self._listener_factory(url, api_key),
            )
        return self._poller

    @property
    def pending_jobs(self) -> dict[str, list[str]]:
        poller = self.poller
        return poller.fetched_jobs if poller is not None else {}

    def _consume(self, result: PollResult | None) -> None:
        if result is not None and not result.ok:
            self.notify(f"Fetching pending jobs failed: {result.error}", "error")

    def fetch_pending_jobs(self, timeout: float | None = None) -> bool:
        """Run one poll and wait for it (used outside the frame loop)."""

        poller = self.poller
        if poller is None:
            self.notify("Listener URL is not configured", "error")
            return False
        poller.start_pending_jobs_fetch()
        result = poller.wait(timeout)
        self._consume(result)
        return result is not None and result.ok

    def drift_for(self, job_id: str) -> DriftInfo | None:
        poller = self.poller
        if poller is None:
            return None
        return self._attempt("Read drift info", lambda: poller.extract_drift(job_id))

    def submit_decision(self, job_id: str, decision: Decision) -> bool:
        poller = self.poller
        if poller is None:
            self.notify("Listener URL is not configured", "error")
            return False

        def run() -> bool:
            poller.submit_decision(job_id, decision)
            return True

        if self._attempt("Submit decision", run) is None:
            return False
        self.notify(f"{Decision(decision).value} sent for job {job_id}")
        return True

    # -- frame loop ----------------------------------------------------

    def tick(self) -> None:
        """Advance timers; called once per UI frame.

        Every timestamp comes from the injected clock, the same one that stamps
        status messages.
        """

        now = self._clock()

        self.messages = [m for m in self.messages if m.expires_at > now]

        if self._autosave.due(now) and not self.first_run:
            self.save()

        if self._status_refresh.due(now):
            self.refresh_status()

        poller = self.poller
        if poller is not None and self._poll.due(now):
            result = poller.take_result()
            if result is None:
                poller.start_pending_jobs_fetch()
            else:
                self._consume(result)

    def shutdown(self) -> None:
        self._close_github()
        if self._poller is not None:
            self._poller.shutdown()
            self._poller = None
        if not self.first_run:
            self.save()
