"""
Version helpers for shielded-vault.

- Exposes __version__ (PEP 440).
- Best-effort detection from:
    1) VAULT_VERSION env var (authoritative override)
    2) installed distribution metadata
    3) fallback DEFAULT_VERSION

Safe to import very early; never raises.
"""

from __future__ import annotations

import os
from importlib.metadata import PackageNotFoundError, version as _dist_version

DIST_NAME = "shielded-vault"

# Project default if no env / metadata available
DEFAULT_VERSION = "0.4.0"


def resolve_version() -> str:
    """
    Determine the version string in priority:
      1) VAULT_VERSION environment variable (verbatim)
      2) installed package metadata
      3) DEFAULT_VERSION
    """
    env = os.getenv("VAULT_VERSION")
    if env:
        return env.strip()
    try:
        return _dist_version(DIST_NAME)
    except PackageNotFoundError:
        return DEFAULT_VERSION


__version__ = resolve_version()


if __name__ == "__main__":
    print(__version__)
