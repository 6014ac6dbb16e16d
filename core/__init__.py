"""
shielded-vault core package.

Ambient substrate shared by the engine: the error taxonomy, structured
logging and layered configuration. Higher-level packages (zk, vault) build on
top.

Only re-exports the version here to keep import-time side effects near zero.
"""

from __future__ import annotations

from .version import __version__


def get_version() -> str:
    """Return the version string for this package."""
    return __version__


__all__ = ["__version__", "get_version"]
