"""Exception hierarchy shared by every core component.

Library exceptions (dulwich, requests, PyYAML, cryptography, pydantic) are
translated into these at the component boundary so callers only ever need to
handle :class:`ActionAllegroError`.
"""

from __future__ import annotations


class ActionAllegroError(Exception):
    """Base class for all expected failures."""


class CryptoError(ActionAllegroError):
    """Key derivation, encryption or decryption failed."""


class DecryptError(CryptoError):
    """Ciphertext could not be decrypted (wrong password or corrupt data)."""


class ConfigIOError(ActionAllegroError):
    """The persisted config could not be read or written."""


class ParseError(ActionAllegroError):
    """A JSON, YAML or listener payload was malformed."""


class GitError(ActionAllegroError):
    """A repository open/clone/stage/commit/checkout/push failed."""


class NetworkError(ActionAllegroError):
    """HTTP transport failure or a non-success response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
