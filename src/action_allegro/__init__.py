"""ActionAllegro.

Browse, organize and dispatch the GitHub Actions workflows of one repository,
keep a local clone of it in sync, and approve or reject drift jobs reported by
a companion listener service. The access token is kept encrypted at rest under
a password-derived key.
"""

__version__ = "0.1.0"

from action_allegro.core.config import AppSettings

__all__ = ["__version__", "AppSettings"]
