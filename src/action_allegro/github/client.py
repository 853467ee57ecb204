"""GitHub API client for the Actions workflow endpoints.

REST calls go through a `requests.Session` so response bodies (including error
bodies) stay available to callers; repository metadata comes from PyGithub.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any

import requests
from github import Auth, Github, GithubException
from github.Repository import Repository

from action_allegro.core.errors import NetworkError, ParseError

logger = logging.getLogger(__name__)

USER_AGENT = "action-allegro"
PER_PAGE = 100


class GitHubClient:
    """Small wrapper around the workflow, contents and dispatch endpoints."""

    def __init__(
        self,
        *,
        token: str,
        repository: str,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        session: requests.Session | None = None,
        repo: Repository | None = None,
    ) -> None:
        if not token:
            raise ValueError("GitHub token is required")
        if not repository.strip().strip("/"):
            raise ValueError("GitHub repository is required")

        self._token = token
        self._repository_name = repository.strip().strip("/")
        self._rest_base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": USER_AGENT,
            }
        )

        # Connecting through PyGithub costs a request, so it happens on first use.
        self._repo = repo
        self._github: Github | None = None

    @property
    def repository(self) -> str:
        """Return the configured repository name ("owner/repo")."""

        return self._repository_name

    def _repo_url(self, path: str) -> str:
        path = path.lstrip("/")
        base = f"{self._rest_base_url}/repos/{self._repository_name}"
        return f"{base}/{path}" if path else base

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            resp = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e

        if not resp.ok:
            if resp.status_code == 401:
                raise NetworkError("Request unauthorized", status_code=401)
            raise NetworkError(
                resp.text or f"{method} {url} returned HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
        return resp

    @staticmethod
    def _json_object(resp: requests.Response) -> dict[str, Any]:
        try:
            data = resp.json()
        except ValueError as e:
            raise ParseError(f"Response from {resp.url} is not JSON") from e
        if not isinstance(data, dict):
            raise ParseError(f"Response from {resp.url} is not a JSON object")
        return data

    def list_workflows(self) -> dict[str, int]:
        """Return ``{workflow name: workflow id}`` across every page.

        Pages are followed through the ``Link: rel="next"`` header. A failure on
        any page fails the whole call; no partial listing is returned.
        """

        workflows: dict[str, int] = {}
        url: str | None = self._repo_url("actions/workflows")
        params: dict[str, int] | None = {"per_page": PER_PAGE}
        pages = 0

        while url:
            resp = self._request("GET", url, params=params)
            data = self._json_object(resp)
            pages += 1

            items = data.get("workflows")
            if not isinstance(items, list):
                raise ParseError("Unexpected workflows response: missing workflows")

            for item in items:
                if not isinstance(item, dict):
                    continue
                name = item.get("name")
                workflow_id = item.get("id")
                if isinstance(name, str) and isinstance(workflow_id, int):
                    workflows[name] = workflow_id

            url = resp.links.get("next", {}).get("url")
            # The next link already carries the query string.
            params = None

        logger.debug(
            "Listed workflows",
            extra={"repo": self._repository_name, "count": len(workflows), "pages": pages},
        )
        return workflows

    def get_workflow(self, workflow_id: int) -> dict[str, Any]:
        resp = self._request("GET", self._repo_url(f"actions/workflows/{workflow_id}"))
        return self._json_object(resp)

    def get_file_text(self, path: str, *, ref: str = "") -> str:
        """Return the decoded text of ``path`` via the contents API."""

        params = {"ref": ref} if ref.strip() else None
        resp = self._request("GET", self._repo_url(f"contents/{path.lstrip('/')}"), params=params)
        data = self._json_object(resp)

        content = data.get("content")
        if not isinstance(content, str):
            raise ParseError(f"Unexpected contents response for {path}: missing content")
        if data.get("encoding") != "base64":
            return content

        try:
            # GitHub wraps the base64 payload at 60 columns.
            raw = base64.b64decode("".join(content.split()), validate=True)
            return raw.decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise ParseError(f"Could not decode contents of {path}") from e

    def dispatch_workflow(
        self, workflow_id: int | str, *, ref: str, inputs: dict[str, Any]
    ) -> None:
        """Trigger a ``workflow_dispatch`` run on ``ref``.

        Raises:
            NetworkError: Any non-2xx response; the message is the response body.
        """

        if not ref.strip():
            raise ValueError("ref is required")
        url = self._repo_url(f"actions/workflows/{workflow_id}/dispatches")
        self._request("POST", url, json={"ref": ref, "inputs": inputs})
        logger.info(
            "Dispatched workflow",
            extra={"repo": self._repository_name, "workflow_id": workflow_id, "ref": ref},
        )

    def _get_repo(self) -> Repository:
        if self._repo is None:
            self._github = Github(auth=Auth.Token(self._token), base_url=self._rest_base_url)
            self._repo = self._github.get_repo(self._repository_name)
            logger.info(
                "Authenticated with GitHub and connected to repository",
                extra={"repo": self._repository_name},
            )
        return self._repo

    def get_default_branch(self) -> str:
        try:
            branch = self._get_repo().default_branch
        except GithubException as e:
            raise NetworkError(
                f"Failed to read repository metadata: {e.data or e}", status_code=e.status
            ) from e
        except requests.RequestException as e:
            raise NetworkError(f"Failed to read repository metadata: {e}") from e
        return branch or "main"

    def close(self) -> None:
        self._session.close()
        if self._github is not None:
            self._github.close()
