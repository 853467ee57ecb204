"""Unit tests for the GitHub workflow client (mocked HTTP)."""

from __future__ import annotations

import base64
import json
from typing import Any
from unittest.mock import Mock, PropertyMock

import pytest
import requests
from github import GithubException

from action_allegro.core.errors import NetworkError
from action_allegro.github.client import GitHubClient

API = "https://api.github.com/repos/octo-org/octo-repo"


def _response(status: int, payload: Any = None, *, link: str | None = None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp._content = (
        payload.encode("utf-8") if isinstance(payload, str) else json.dumps(payload).encode("utf-8")
    )
    resp.url = API
    if link:
        resp.headers["Link"] = link
    return resp


def _client(session: Mock, repo: Any = None) -> GitHubClient:
    session.headers = {}
    return GitHubClient(
        token="ghp_test",
        repository="octo-org/octo-repo/",
        base_url="https://api.github.com/",
        session=session,
        repo=repo or Mock(),
    )


def test_session_headers_and_repo_url() -> None:
    session = Mock(spec=requests.Session)
    client = _client(session)

    assert session.headers["Authorization"] == "Bearer ghp_test"
    assert session.headers["User-Agent"] == "action-allegro"
    assert client._repo_url("") == API
    assert client._repo_url("/actions/workflows") == f"{API}/actions/workflows"


def test_list_workflows_follows_next_links() -> None:
    session = Mock(spec=requests.Session)
    next_url = f"{API}/actions/workflows?per_page=100&page=2"
    session.request.side_effect = [
        _response(
            200,
            {"total_count": 3, "workflows": [{"id": 1, "name": "CI"}, {"id": 2, "name": "Lint"}]},
            link=f'<{next_url}>; rel="next"',
        ),
        _response(200, {"total_count": 3, "workflows": [{"id": 3, "name": "Deploy"}]}),
    ]
    client = _client(session)

    assert client.list_workflows() == {"CI": 1, "Lint": 2, "Deploy": 3}

    first, second = session.request.call_args_list
    assert first.args == ("GET", f"{API}/actions/workflows")
    assert first.kwargs["params"] == {"per_page": 100}
    assert second.args == ("GET", next_url)
    assert second.kwargs["params"] is None


def test_list_workflows_fails_whole_call_on_page_error() -> None:
    session = Mock(spec=requests.Session)
    session.request.side_effect = [
        _response(200, {"workflows": [{"id": 1, "name": "CI"}]}, link=f'<{API}/x>; rel="next"'),
        _response(502, "Bad gateway"),
    ]
    client = _client(session)

    with pytest.raises(NetworkError) as excinfo:
        client.list_workflows()
    assert excinfo.value.status_code == 502


def test_unauthorized_and_transport_errors() -> None:
    session = Mock(spec=requests.Session)
    client = _client(session)

    session.request.return_value = _response(401, {"message": "Bad credentials"})
    with pytest.raises(NetworkError, match="Request unauthorized"):
        client.get_workflow(1)

    session.request.side_effect = requests.ConnectionError("unreachable")
    with pytest.raises(NetworkError):
        client.get_workflow(1)


def test_get_file_text_decodes_wrapped_base64() -> None:
    encoded = base64.b64encode(b"name: CI\non: push\n").decode("ascii")
    wrapped = "\n".join(encoded[i : i + 8] for i in range(0, len(encoded), 8))
    session = Mock(spec=requests.Session)
    session.request.return_value = _response(200, {"content": wrapped, "encoding": "base64"})
    client = _client(session)

    assert client.get_file_text(".github/workflows/ci.yml") == "name: CI\non: push\n"
    assert session.request.call_args.args == ("GET", f"{API}/contents/.github/workflows/ci.yml")


def test_dispatch_posts_ref_and_inputs() -> None:
    session = Mock(spec=requests.Session)
    session.request.return_value = _response(204, "")
    client = _client(session)

    client.dispatch_workflow(7, ref="main", inputs={"env": "prod", "dry_run": True})

    call = session.request.call_args
    assert call.args == ("POST", f"{API}/actions/workflows/7/dispatches")
    assert call.kwargs["json"] == {"ref": "main", "inputs": {"env": "prod", "dry_run": True}}


def test_dispatch_failure_carries_response_body() -> None:
    body = '{"message":"Unexpected inputs provided: [\\"foo\\"]"}'
    session = Mock(spec=requests.Session)
    session.request.return_value = _response(422, body)
    client = _client(session)

    with pytest.raises(NetworkError) as excinfo:
        client.dispatch_workflow(7, ref="main", inputs={"foo": "x"})
    assert str(excinfo.value) == body
    assert excinfo.value.status_code == 422


def test_default_branch_uses_pygithub_repository() -> None:
    repo = Mock()
    repo.default_branch = "trunk"
    client = _client(Mock(spec=requests.Session), repo=repo)

    assert client.get_default_branch() == "trunk"


def test_default_branch_maps_github_exception() -> None:
    repo = Mock()
    type(repo).default_branch = PropertyMock(
        side_effect=GithubException(404, {"message": "Not Found"}, None)
    )
    client = _client(Mock(spec=requests.Session), repo=repo)

    with pytest.raises(NetworkError) as excinfo:
        client.get_default_branch()
    assert excinfo.value.status_code == 404
