"""
vault.access: owner capability and lifecycle guards.

Checks run at the top of an operation and raise a typed rejection
(`Unauthorized`, `InvalidState`) before anything is written.
"""

from __future__ import annotations

from core.errors import InvalidInput, InvalidState, Unauthorized

from .journal import Journal
from .state import VaultState, VaultStatus


def is_owner(state: VaultState, caller: int) -> bool:
    return caller == state.owner


def require_owner(state: VaultState, caller: int, action: str) -> None:
    if not is_owner(state, caller):
        raise Unauthorized(caller, action)


def require_status(state: VaultState, action: str, *allowed: VaultStatus) -> None:
    if state.status not in allowed:
        raise InvalidState(state.status.value, action)


def transfer_ownership(journal: Journal, caller: int, new_owner: int) -> int:
    """Hand the owner capability to `new_owner`. Returns the previous owner."""
    state = journal.state
    require_owner(state, caller, "transfer ownership")
    if new_owner == 0:
        raise InvalidInput("new owner must be non-zero")
    previous = state.owner
    journal.set("owner", new_owner)
    return previous


__all__ = ["is_owner", "require_owner", "require_status", "transfer_ownership"]
