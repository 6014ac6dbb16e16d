"""
shielded-vault engine.

Leaf first:

- vault.tree       incremental Merkle tree + root history
- vault.notes      commitment scheme and depositor notes
- vault.boundary   public/private signal contract, relations, proof transport
- vault.machine    the state machine (deposit, withdraw, admin lifecycle)
- vault.paths      off-line membership path reconstruction
- vault.codec      state snapshots

Hashing lives in zk.verifiers.poseidon; proof verification backends in
zk.verifiers.
"""

from __future__ import annotations

from .boundary import PrivateWitness, PublicSignals, fee_cap
from .machine import VaultStateMachine, VaultStatistics
from .notes import Note
from .state import VaultState, VaultStatus
from .tree import IncrementalMerkleTree

__all__ = [
    "IncrementalMerkleTree",
    "Note",
    "PublicSignals",
    "PrivateWitness",
    "fee_cap",
    "VaultState",
    "VaultStatus",
    "VaultStateMachine",
    "VaultStatistics",
]
