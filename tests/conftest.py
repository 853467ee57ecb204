"""Test configuration and fixtures."""

from pathlib import Path

import pytest
from dulwich import porcelain
from dulwich.repo import Repo

from action_allegro.core.config import AppSettings
from action_allegro.git.sync import RepoSyncEngine
from action_allegro.vault.crypto import MIN_ITERATIONS

REMOTE_SLUG = "octo-org/octo-repo"
AUTHOR = b"Seed <seed@example.com>"

WORKFLOW_YAML = """\
name: Deploy
on:
  push:
    branches: [main]
  workflow_dispatch:
    inputs:
      env:
        description: Target environment
        type: choice
        required: true
        options: [dev, prod]
      dry_run:
        type: boolean
        default: false
jobs:
  deploy:
    runs-on: ubuntu-latest
    steps:
      - run: echo deploy
"""


@pytest.fixture
def remotes_dir(tmp_path: Path) -> Path:
    """Directory standing in for the GitHub web host."""
    path = tmp_path / "remotes"
    path.mkdir()
    return path


@pytest.fixture
def settings(tmp_path: Path, remotes_dir: Path) -> AppSettings:
    """Provide settings isolated to the test's temporary directory."""
    return AppSettings(
        _env_file=None,
        config_dir=tmp_path / "config",
        github_web_url=str(remotes_dir),
        kdf_iterations=MIN_ITERATIONS,
    )


@pytest.fixture
def engine(remotes_dir: Path) -> RepoSyncEngine:
    return RepoSyncEngine(web_base_url=str(remotes_dir))


@pytest.fixture
def origin_repo(tmp_path: Path, remotes_dir: Path) -> Path:
    """Create a bare ``origin`` with one commit on ``main``."""
    seed = tmp_path / "seed"
    seed.mkdir()
    (seed / "README.md").write_text("hello\n", encoding="utf-8")
    (seed / ".github" / "workflows").mkdir(parents=True)
    (seed / ".github" / "workflows" / "deploy.yml").write_text(WORKFLOW_YAML, encoding="utf-8")

    repo = Repo.init(str(seed))
    repo.refs.set_symbolic_ref(b"HEAD", b"refs/heads/main")
    porcelain.add(
        repo,
        paths=[str(seed / "README.md"), str(seed / ".github" / "workflows" / "deploy.yml")],
    )
    porcelain.commit(repo, message=b"initial", author=AUTHOR, committer=AUTHOR)
    repo.close()

    origin = remotes_dir / f"{REMOTE_SLUG}.git"
    origin.parent.mkdir(parents=True)
    porcelain.clone(str(seed), str(origin), bare=True).close()
    return origin


@pytest.fixture
def clone_path(tmp_path: Path, engine: RepoSyncEngine, origin_repo: Path) -> Path:
    """A working copy cloned from ``origin_repo``."""
    path = tmp_path / "work" / "octo-repo"
    assert engine.clone_or_update(REMOTE_SLUG, "test-token", path) == "cloned"
    return path
