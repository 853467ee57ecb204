"""Working-copy synchronization with the GitHub repository.

Uses Dulwich (pure Python Git implementation) so no git binary is required.
Every operation takes the working-copy path and opens the repository for the
duration of the call; nothing is cached between calls, so a status computed
before a mutating operation must be recomputed afterwards.

HTTPS remotes authenticate with basic auth: a fixed placeholder username and
the access token as password. Credentials are passed per call and never
written into the repository config.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Literal

import urllib3
from dulwich import porcelain
from dulwich.client import HTTPProxyUnauthorized, HTTPUnauthorized
from dulwich.errors import GitProtocolError, NotGitRepository
from dulwich.repo import Repo

from action_allegro.core.errors import GitError, NetworkError

logger = logging.getLogger(__name__)

PLACEHOLDER_USERNAME = "x-access-token"
REMOTE_NAME = "origin"

_LOCAL_PREFIX = b"refs/heads"
_REMOTE_PREFIX = b"refs/remotes/" + REMOTE_NAME.encode("ascii")


class RepoStatus(str, Enum):
    NOT_CLONED = "not_cloned"
    UP_TO_DATE = "up_to_date"
    CHANGES_MADE = "changes_made"


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    """Map Dulwich/transport exceptions onto GitError and NetworkError."""

    try:
        yield
    except NotGitRepository as e:
        raise GitError(f"{action} failed: not a git repository ({e})") from e
    except (HTTPUnauthorized, HTTPProxyUnauthorized) as e:
        raise NetworkError(f"{action} failed: request unauthorized", status_code=401) from e
    except (GitProtocolError, urllib3.exceptions.HTTPError, ConnectionError) as e:
        raise NetworkError(f"{action} failed: {e}") from e
    except (porcelain.Error, KeyError, ValueError, OSError) as e:
        raise GitError(f"{action} failed: {e}") from e


def _is_http(url: str) -> bool:
    return url.startswith(("https://", "http://"))


def _auth_kwargs(url: str, token: str) -> dict[str, str]:
    # Local and SSH transports reject username/password keyword arguments.
    if not _is_http(url) or not token:
        return {}
    return {"username": PLACEHOLDER_USERNAME, "password": token}


class RepoSyncEngine:
    """Clone, inspect, stage, commit, push and switch branches of one working copy."""

    def __init__(self, *, web_base_url: str = "https://github.com") -> None:
        self._web_base_url = web_base_url.rstrip("/")

    def remote_url(self, remote_slug: str) -> str:
        slug = remote_slug.strip().strip("/")
        if slug.count("/") != 1 or not all(slug.split("/")):
            raise GitError(f"Repository must be in the form 'owner/repo': {remote_slug!r}")
        return f"{self._web_base_url}/{slug}.git"

    @staticmethod
    def _open(path: Path) -> Repo:
        return Repo(str(path))

    @staticmethod
    def is_repository(path: Path | None) -> bool:
        if path is None:
            return False
        try:
            Repo(str(path)).close()
        except NotGitRepository:
            return False
        return True

    # -- clone / fetch -------------------------------------------------

    def clone_or_update(
        self, remote_slug: str, token: str, dest_path: Path
    ) -> Literal["cloned", "fetched"]:
        """Fetch into an existing clone at ``dest_path``, or clone fresh.

        Raises:
            GitError: ``dest_path`` holds something other than a repository, or
                the local operation failed.
            NetworkError: The remote could not be reached or refused the token.
        """

        if self.is_repository(dest_path):
            self.fetch(dest_path, token)
            return "fetched"

        if dest_path.exists() and any(dest_path.iterdir()):
            raise GitError(f"Destination exists and is not a git repository: {dest_path}")

        self._clone(remote_slug, token, dest_path)
        return "cloned"

    def clone_fresh(self, remote_slug: str, token: str, dest_path: Path) -> None:
        """Delete whatever is at ``dest_path`` and clone again ("force re-pull")."""

        if dest_path.exists():
            resolved = dest_path.resolve()
            if resolved == Path(resolved.anchor) or resolved == Path.home().resolve():
                raise GitError(f"Refusing to delete {resolved}")
            logger.info("Removing existing working copy", extra={"path": str(dest_path)})
            with _translate_errors("Remove working copy"):
                shutil.rmtree(dest_path)

        self._clone(remote_slug, token, dest_path)

    def _clone(self, remote_slug: str, token: str, dest_path: Path) -> None:
        url = self.remote_url(remote_slug)
        logger.info("Cloning repository", extra={"repo": remote_slug, "path": str(dest_path)})

        dest_path.parent.mkdir(parents=True, exist_ok=True)
        with _translate_errors("Clone"):
            repo = porcelain.clone(
                url,
                str(dest_path),
                checkout=True,
                origin=REMOTE_NAME,
                errstream=porcelain.NoneStream(),
                **_auth_kwargs(url, token),
            )
            repo.close()

        logger.info("Clone completed", extra={"repo": remote_slug})

    def fetch(self, path: Path, token: str) -> None:
        """Fetch from ``origin``, updating ``refs/remotes/origin/*`` only."""

        with _translate_errors("Fetch"), self._open(path) as repo:
            url = self._origin_url(repo)
            porcelain.fetch(
                repo,
                remote_location=REMOTE_NAME,
                errstream=porcelain.NoneStream(),
                **_auth_kwargs(url, token),
            )
        logger.info("Fetched from origin", extra={"path": str(path)})

    @staticmethod
    def _origin_url(repo: Repo) -> str:
        try:
            raw = repo.get_config().get((b"remote", REMOTE_NAME.encode("ascii")), b"url")
        except KeyError as e:
            raise GitError(f"No '{REMOTE_NAME}' remote configured") from e
        return raw.decode("utf-8")

    # -- status / stage / commit / push --------------------------------

    def compute_status(self, path: Path | None) -> RepoStatus:
        """Classify the working copy at ``path``.

        Untracked files are included recursively; ignored files are not.
        """

        if path is None:
            return RepoStatus.NOT_CLONED
        try:
            repo = self._open(path)
        except NotGitRepository:
            return RepoStatus.NOT_CLONED

        with _translate_errors("Status"), repo:
            status = porcelain.status(repo, untracked_files="all")

        changed = (
            any(status.staged.values()) or bool(status.unstaged) or bool(status.untracked)
        )
        return RepoStatus.CHANGES_MADE if changed else RepoStatus.UP_TO_DATE

    def stage_all_changes(self, path: Path) -> int:
        """Bring the index in line with the working tree.

        Deleted paths are removed from the index, new and modified paths are
        (re-)added. Directories are expanded file by file and every addition is
        written to the index in a single update, so a directory is staged
        completely or not at all.

        Returns:
            Number of index entries added, updated or removed.
        """

        with _translate_errors("Stage"), self._open(path) as repo:
            root = Path(repo.path)
            status = porcelain.status(repo, untracked_files="all")
            index = repo.open_index()

            candidates = [os.fsdecode(p) for p in status.unstaged]
            candidates += [os.fsdecode(p) for p in status.untracked]

            to_add: list[Path] = []
            to_remove: list[Path] = []
            for rel in dict.fromkeys(candidates):
                full = root / rel
                if full.is_dir():
                    to_add.extend(_files_under(full))
                elif full.exists() or full.is_symlink():
                    to_add.append(full)
                elif os.fsencode(rel.rstrip("/")) in index:
                    to_remove.append(full)

            if to_remove:
                porcelain.remove(repo, paths=[str(p) for p in to_remove], cached=True)
            if to_add:
                porcelain.add(repo, paths=[str(p) for p in to_add])

        logger.info(
            "Staged working tree changes",
            extra={"added": len(to_add), "removed": len(to_remove)},
        )
        return len(to_add) + len(to_remove)

    def commit(self, path: Path, author_name: str, author_email: str, message: str) -> str:
        """Commit the index with HEAD as the sole parent and return the new sha.

        Raises:
            GitError: Author identity or message missing, or the commit failed.
        """

        if not author_name.strip() or not author_email.strip():
            raise GitError("Commit author name and e-mail must be set before committing")
        if not message.strip():
            raise GitError("Commit message must not be empty")

        identity = f"{author_name.strip()} <{author_email.strip()}>".encode()
        with _translate_errors("Commit"), self._open(path) as repo:
            sha = porcelain.commit(
                repo,
                message=message.encode("utf-8"),
                author=identity,
                committer=identity,
            )

        commit_sha = sha.decode("ascii")
        logger.info("Created commit", extra={"sha": commit_sha})
        return commit_sha

    def push(self, path: Path, token: str, branch: str | None = None) -> str:
        """Push ``refs/heads/<branch>`` to ``origin``.

        Args:
            path: Working copy.
            token: Access token used as the HTTPS password.
            branch: Branch to push. Defaults to the currently checked-out branch.

        Returns:
            The branch that was pushed.
        """

        branch = branch or self.current_branch(path)
        ref = f"refs/heads/{branch}".encode()

        with _translate_errors("Push"), self._open(path) as repo:
            if ref not in repo.refs:
                raise GitError(f"Local branch does not exist: {branch}")
            url = self._origin_url(repo)
            porcelain.push(
                repo,
                remote_location=REMOTE_NAME,
                refspecs=[ref + b":" + ref],
                outstream=porcelain.NoneStream(),
                errstream=porcelain.NoneStream(),
                **_auth_kwargs(url, token),
            )

        logger.info("Pushed branch", extra={"branch": branch})
        return branch

    # -- branches ------------------------------------------------------

    def list_local_branches(self, path: Path) -> list[str]:
        with _translate_errors("List branches"), self._open(path) as repo:
            names = repo.refs.keys(base=_LOCAL_PREFIX)
        return sorted(n.decode("utf-8") for n in names)

    def list_remote_branches(self, path: Path) -> list[str]:
        with _translate_errors("List remote branches"), self._open(path) as repo:
            names = repo.refs.keys(base=_REMOTE_PREFIX)
        return sorted(n.decode("utf-8") for n in names if n != b"HEAD")

    def current_branch(self, path: Path) -> str:
        with _translate_errors("Read current branch"), self._open(path) as repo:
            try:
                name = porcelain.active_branch(repo)
            except (KeyError, IndexError, ValueError) as e:
                raise GitError("HEAD does not point at a local branch") from e
        return name.decode("utf-8")

    def checkout_branch(self, path: Path, name: str) -> None:
        """Switch to an existing local branch.

        Raises:
            GitError: The branch is missing or local changes would be overwritten.
        """

        with _translate_errors(f"Checkout {name}"), self._open(path) as repo:
            if f"refs/heads/{name}".encode() not in repo.refs:
                raise GitError(f"Local branch does not exist: {name}")
            porcelain.checkout(repo, name)
        logger.info("Checked out branch", extra={"branch": name})

    def checkout_remote_as_local(self, path: Path, remote_name: str) -> None:
        """Create local ``remote_name`` tracking ``origin/<remote_name>`` and switch to it."""

        local_ref = f"refs/heads/{remote_name}".encode()
        remote_ref = _REMOTE_PREFIX + b"/" + remote_name.encode()

        with _translate_errors(f"Checkout origin/{remote_name}"), self._open(path) as repo:
            if remote_ref not in repo.refs:
                raise GitError(f"Remote branch does not exist: {REMOTE_NAME}/{remote_name}")
            if local_ref in repo.refs:
                raise GitError(f"Local branch already exists: {remote_name}")

            repo.refs[local_ref] = repo.refs[remote_ref]
            try:
                porcelain.checkout(repo, remote_name)
            except Exception:
                del repo.refs[local_ref]
                raise

            config = repo.get_config()
            section = (b"branch", remote_name.encode())
            config.set(section, b"remote", REMOTE_NAME.encode("ascii"))
            config.set(section, b"merge", local_ref)
            config.write_to_path()

        logger.info("Checked out remote branch as local", extra={"branch": remote_name})


def _files_under(directory: Path) -> list[Path]:
    files: list[Path] = []
    for root, dirs, filenames in os.walk(directory):
        dirs[:] = sorted(d for d in dirs if d != ".git")
        files.extend(Path(root) / f for f in sorted(filenames))
    return files
