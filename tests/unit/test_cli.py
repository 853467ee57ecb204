"""Unit tests for the command-line surface."""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path

import pytest

from action_allegro import cli
from action_allegro.core.config import CONFIG_FILE_NAME


@pytest.fixture(autouse=True)
def _isolated(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    config_dir = tmp_path / "config"
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ACTION_ALLEGRO_CONFIG_DIR", str(config_dir))
    monkeypatch.setenv("ACTION_ALLEGRO_KDF_ITERATIONS", "100000")
    # Root logging is left to pytest.
    monkeypatch.setattr(cli, "configure_logging", lambda level: None)
    return config_dir


def _prompts(monkeypatch: pytest.MonkeyPatch, *answers: str) -> None:
    replies: Iterator[str] = iter(answers)
    monkeypatch.setattr("getpass.getpass", lambda prompt="": next(replies))


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.build_parser().parse_args([])
    assert excinfo.value.code == 2


def test_config_path(capsys: pytest.CaptureFixture[str], _isolated: Path) -> None:
    assert cli.main(["config-path"]) == 0
    assert capsys.readouterr().out.strip() == str(_isolated / CONFIG_FILE_NAME)


def test_commands_require_setup(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["status"]) == 2
    assert "setup" in capsys.readouterr().err


def test_setup_then_status(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str], _isolated: Path
) -> None:
    _prompts(monkeypatch, "pw", "pw", "ghp_clitoken123")

    assert cli.main(["setup", "--name", "Octo", "--repo", "octo-org/octo-repo"]) == 0

    saved = json.loads((_isolated / CONFIG_FILE_NAME).read_text(encoding="utf-8"))
    assert saved["display_name"] == "Octo"
    assert saved["repo_name"] == "octo-org/octo-repo"
    assert "ghp_clitoken123" not in json.dumps(saved)

    capsys.readouterr()
    assert cli.main(["status"]) == 0
    assert capsys.readouterr().out.strip() == "not_cloned"


def test_setup_with_mismatched_passwords(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str], _isolated: Path
) -> None:
    _prompts(monkeypatch, "pw", "other")

    assert cli.main(["setup", "--name", "Octo"]) == 1
    assert "Passwords do not match" in capsys.readouterr().err
    assert not (_isolated / CONFIG_FILE_NAME).exists()


def test_wrong_password_fails_token_commands(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    _prompts(monkeypatch, "pw", "pw", "ghp_clitoken123")
    cli.main(["setup", "--name", "Octo", "--repo", "octo-org/octo-repo"])
    capsys.readouterr()

    _prompts(monkeypatch, "nope")
    assert cli.main(["workflows"]) == 1
    assert "check your password" in capsys.readouterr().err


def test_malformed_dispatch_input_is_a_usage_error(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    _prompts(monkeypatch, "pw", "pw", "ghp_clitoken123")
    cli.main(["setup", "--name", "Octo", "--repo", "octo-org/octo-repo"])

    _prompts(monkeypatch, "pw")
    assert cli.main(["dispatch", "7", "--input", "no-equals-sign"]) == 2
    assert "NAME=VALUE" in capsys.readouterr().err


def test_configure_listener(_isolated: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _prompts(monkeypatch, "pw", "pw", "ghp_clitoken123")
    cli.main(["setup", "--name", "Octo"])

    assert (
        cli.main(
            [
                "configure",
                "--listener-url",
                "https://listener.example.com",
                "--listener-key",
                "abc",
                "--email",
                "octo@example.com",
            ]
        )
        == 0
    )

    saved = json.loads((_isolated / CONFIG_FILE_NAME).read_text(encoding="utf-8"))
    assert saved["listener_url"] == "https://listener.example.com"
    assert saved["listener_api_key"] == "abc"
    assert saved["author_email"] == "octo@example.com"
