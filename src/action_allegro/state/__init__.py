"""Persisted state: config document and folder layout."""

from action_allegro.state.folders import DEFAULT_FOLDER, FolderLayout
from action_allegro.state.store import ConfigStore, PersistedConfig

__all__ = [
    "DEFAULT_FOLDER",
    "ConfigStore",
    "FolderLayout",
    "PersistedConfig",
]
