"""Runtime settings for ActionAllegro.

These are process-level knobs (where state lives, how often timers fire, which
GitHub host to talk to). They are loaded from:
- environment variables prefixed with ``ACTION_ALLEGRO_``
- and a local `.env` file (if present)

The user's persisted state (credentials, folder layout, repository path,
listener endpoint) is NOT configured here; it lives in the JSON document owned
by :class:`action_allegro.state.store.ConfigStore`.
"""

from __future__ import annotations

from pathlib import Path

import platformdirs
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_NAME = "ActionAllegro"
CONFIG_FILE_NAME = "config.json"


class AppSettings(BaseSettings):
    """Settings for the desktop tool and its command-line surface.

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `AppSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(default="INFO", description="Root logging level")

    config_dir: Path | None = Field(
        default=None,
        description=(
            "Directory holding the persisted config document. Defaults to the platform "
            "user config directory for ActionAllegro."
        ),
    )

    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL (useful for GitHub Enterprise)",
    )
    github_web_url: str = Field(
        default="https://github.com",
        description="Base URL used to build HTTPS clone/fetch/push remotes",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for GitHub REST calls",
    )
    listener_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=10.0,
        description="Timeout bounding the approval poll and decision submission",
    )

    kdf_iterations: int = Field(
        default=200_000,
        ge=100_000,
        description="PBKDF2-HMAC-SHA256 iteration count for token key derivation",
    )

    autosave_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Wall-clock interval between automatic config exports",
    )
    status_refresh_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Minimum interval between working-tree status scans",
    )
    poll_interval_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Interval between approval-listener polls",
    )
    message_display_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How long a transient status message stays visible",
    )

    model_config = SettingsConfigDict(
        env_prefix="ACTION_ALLEGRO_",
        env_file=".env",
        extra="ignore",
    )

    @property
    def resolved_config_dir(self) -> Path:
        """Directory where the persisted config document is stored."""

        if self.config_dir is not None:
            return self.config_dir
        return Path(platformdirs.user_config_dir(APP_NAME, appauthor=False))

    @property
    def config_file(self) -> Path:
        """Full path of the persisted config document."""

        return self.resolved_config_dir / CONFIG_FILE_NAME
