"""Local working-copy synchronization."""

from action_allegro.git.sync import RepoStatus, RepoSyncEngine

__all__ = ["RepoStatus", "RepoSyncEngine"]
