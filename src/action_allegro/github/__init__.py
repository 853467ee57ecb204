"""GitHub REST integration."""

from action_allegro.github.client import GitHubClient

__all__ = ["GitHubClient"]
