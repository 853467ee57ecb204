"""Persisted application state.

A single JSON document in the platform config directory holds everything that
survives a restart. The decrypted token is deliberately absent from
:class:`PersistedConfig`; only its encrypted form is ever written.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from action_allegro.core.errors import ConfigIOError, ParseError
from action_allegro.state.folders import DEFAULT_FOLDER
from action_allegro.vault.crypto import DEFAULT_ITERATIONS, MIN_ITERATIONS

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


def _default_folders() -> dict[str, list[str]]:
    return {DEFAULT_FOLDER: []}


class PersistedConfig(BaseModel):
    """Everything written to ``config.json``.

    Salts are stored hex-encoded; ``encrypted_token`` is base64.
    """

    model_config = ConfigDict(extra="ignore")

    version: int = Field(default=SCHEMA_VERSION)

    folders: dict[str, list[str]] = Field(default_factory=_default_folders)
    repo_name: str = Field(default="", description="Repository slug, 'owner/repo'")
    repo_path: Path | None = Field(default=None, description="Local working copy")

    display_name: str = Field(default="", description="Also used as commit author name")
    author_email: str = Field(default="")

    salt: str = Field(default="", description="Password-hash salt (hex)")
    hashed_password: str = Field(default="", description="SHA256(salt || password) (hex)")
    kdf_salt: str = Field(default="", description="Token key-derivation salt (hex)")
    kdf_iterations: int = Field(default=DEFAULT_ITERATIONS, ge=MIN_ITERATIONS)
    encrypted_token: str = Field(default="")

    listener_url: str = Field(default="")
    listener_api_key: str = Field(default="")

    @property
    def has_credentials(self) -> bool:
        return bool(self.salt and self.hashed_password and self.kdf_salt)

    @property
    def salt_bytes(self) -> bytes:
        return _hex_to_bytes(self.salt, field="salt")

    @property
    def kdf_salt_bytes(self) -> bytes:
        return _hex_to_bytes(self.kdf_salt, field="kdf_salt")


def _hex_to_bytes(value: str, *, field: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError as e:
        raise ParseError(f"Persisted {field} is not valid hex") from e


class ConfigStore:
    """JSON-file backed store for :class:`PersistedConfig`."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> PersistedConfig | None:
        """Read the config document.

        Returns:
            The parsed config, or ``None`` when no document exists (first run).

        Raises:
            ConfigIOError: The file exists but cannot be read.
            ParseError: The file is not a valid config document.
        """

        if not self._path.exists():
            return None

        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigIOError(f"Failed to read config: {e}") from e

        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"Config file is not valid JSON: {e}") from e

        if not isinstance(raw, dict):
            raise ParseError("Config file has unexpected shape")

        try:
            return PersistedConfig.model_validate(raw)
        except ValidationError as e:
            raise ParseError(f"Config file failed validation: {e}") from e

    def load(self) -> PersistedConfig | None:
        """Read the config, treating an unreadable document as absent.

        The unreadable file is moved aside to ``<name>.corrupt`` first so that a
        later export does not destroy it.
        """

        try:
            config = self.read()
        except (ConfigIOError, ParseError) as e:
            logger.warning(
                "Persisted config is unusable; starting fresh",
                extra={"path": str(self._path), "error": str(e)},
            )
            self._quarantine()
            return None

        if config is None:
            logger.info("No persisted config found", extra={"path": str(self._path)})
        return config

    def export(self, config: PersistedConfig) -> None:
        """Write the whole config document, replacing any previous one atomically."""

        payload = json.dumps(config.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"

        tmp_name: str | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as e:
            raise ConfigIOError(f"Failed to write config: {e}") from e
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

        logger.debug("Config exported", extra={"path": str(self._path)})

    def _quarantine(self) -> None:
        target = self._path.with_name(self._path.name + ".corrupt")
        try:
            os.replace(self._path, target)
        except OSError as e:
            logger.warning(
                "Could not move unusable config aside",
                extra={"path": str(self._path), "error": str(e)},
            )
