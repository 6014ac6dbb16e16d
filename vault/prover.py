"""
vault.prover: client-side withdrawal preparation.

`prepare_withdrawal` turns a note plus a rebuilt Merkle path into the public
signals and the private witness the circuit expects, checking the relations
locally first so a bad input fails here and not inside a prover.

`ReferenceProver` produces proofs for the development `reference` backend:
it evaluates relations 1–7 natively and only then attests the signals.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Tuple

from core.errors import InvalidInput
from core.logging import get_logger
from zk.verifiers import reference

from .boundary import (
    ADDRESS_LIMIT,
    N_PUBLIC,
    PrivateWitness,
    PublicSignals,
    check_relations,
    fee_cap,
)
from .notes import Note
from .paths import MerklePath

log = get_logger("vault.prover")


def prepare_withdrawal(
    note: Note,
    path: MerklePath,
    recipient: int,
    fee: int = 0,
    *,
    expected_root: Optional[int] = None,
) -> Tuple[PublicSignals, PrivateWitness]:
    if path.leaf != note.commitment:
        raise InvalidInput("path does not belong to this note", leaf_index=path.leaf_index)
    if not 0 < recipient < ADDRESS_LIMIT:
        raise InvalidInput("recipient must be a non-zero 160-bit address")
    if not 0 <= fee <= fee_cap(note.amount):
        raise InvalidInput("fee must be within 1% of the amount", fee=fee, cap=fee_cap(note.amount))
    if expected_root is not None:
        path.require_root(expected_root)

    signals = PublicSignals(
        nullifier_hash=note.nullifier_hash,
        root=path.root,
        recipient=recipient,
        protocol_fee=fee,
        amount=note.amount,
    )
    witness = PrivateWitness(
        secret=note.secret,
        nullifier=note.nullifier,
        path_elements=path.path_elements,
        path_indices=path.path_indices,
    )
    check_relations(signals, witness, depth=len(path.path_elements))
    return signals, witness


class ReferenceProver:
    """Issues `reference` proofs. Holds the verifying key, so it is a trusted party."""

    def __init__(self, vk: Optional[Mapping[str, Any]] = None, *, depth: Optional[int] = None) -> None:
        self.vk = dict(vk) if vk is not None else reference.keygen(N_PUBLIC)
        self.depth = depth

    def prove(self, signals: PublicSignals, witness: PrivateWitness) -> dict:
        check_relations(signals, witness, depth=self.depth)
        proof = reference.attest(signals.to_list(), self.vk)
        log.debug("reference proof issued", extra={"nullifier_hash": signals.nullifier_hash})
        return proof


__all__ = ["prepare_withdrawal", "ReferenceProver"]
