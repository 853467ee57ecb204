"""Core package: settings, errors, logging and the application controller."""

from action_allegro.core.config import AppSettings

__all__ = ["AppSettings"]
