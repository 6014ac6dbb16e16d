"""
vault.boundary: the contract between a proving system and the vault.

Public signals (fixed order, exactly five):

    [nullifierHash, root, recipient, protocolFee, amount]

Private witness: secret, nullifier, pathElements[DEPTH], pathIndices[DEPTH].

Relations a valid proof attests to:

    1. commitment    == H3(secret, nullifier, amount)
    2. nullifierHash == H2(secret, nullifier)
    3. path(commitment, pathElements, pathIndices) == root
    4. amount > 0
    5. protocolFee <= amount // 100
    6. recipient < 2**160
    7. secret != 0 and nullifier != 0

`check_relations` evaluates them natively. The vault itself never sees the
witness: it hands (proof, signals) to an opaque `ProofVerifier` and checks root
freshness and nullifier freshness on its own.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional, Protocol, Sequence, Tuple, Union, runtime_checkable

from core.errors import ConfigError, InvalidInput, ProofInvalid
from zk.verifiers import ZKError, verify as zk_verify
from zk.verifiers.field import R, parse_int, to_fr
from zk.verifiers.groth16_bn254 import load_vk as load_groth16_vk
from zk.verifiers.poseidon import hash2, hash3

N_PUBLIC = 5
ADDRESS_BITS = 160
ADDRESS_LIMIT = 1 << ADDRESS_BITS
FEE_CAP_DIVISOR = 100

SIGNAL_NAMES = ("nullifierHash", "root", "recipient", "protocolFee", "amount")


def fee_cap(amount: int) -> int:
    """Largest fee allowed for `amount` (1%, truncating). Used by both the relations and the vault."""
    return amount // FEE_CAP_DIVISOR


# ---------------------------------------------------------------------------
# Signals & witness
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PublicSignals:
    nullifier_hash: int
    root: int
    recipient: int
    protocol_fee: int
    amount: int

    def __post_init__(self) -> None:
        for name, v in zip(SIGNAL_NAMES, self.to_list()):
            if isinstance(v, bool) or not isinstance(v, int) or not 0 <= v < R:
                raise InvalidInput("public signal is not a canonical field element", signal=name)

    def to_list(self) -> List[int]:
        return [self.nullifier_hash, self.root, self.recipient, self.protocol_fee, self.amount]

    @classmethod
    def from_sequence(cls, values: Sequence[Any]) -> "PublicSignals":
        if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
            raise InvalidInput("public signals must be a sequence")
        if len(values) != N_PUBLIC:
            raise InvalidInput(
                f"expected {N_PUBLIC} public signals", got=len(values)
            )
        try:
            parsed = [to_fr(v) for v in values]
        except ZKError as e:
            raise InvalidInput("public signal is not a canonical field element", reason=str(e)) from e
        return cls(*parsed)

    @classmethod
    def coerce(cls, value: Union["PublicSignals", Sequence[Any]]) -> "PublicSignals":
        return value if isinstance(value, PublicSignals) else cls.from_sequence(value)

    def to_json(self) -> List[str]:
        return [str(v) for v in self.to_list()]


@dataclass(frozen=True)
class PrivateWitness:
    secret: int
    nullifier: int
    path_elements: Tuple[int, ...]
    path_indices: Tuple[int, ...]

    def __repr__(self) -> str:
        return f"PrivateWitness(depth={len(self.path_elements)})"


def circuit_inputs(signals: PublicSignals, witness: PrivateWitness) -> dict:
    """Input JSON for the withdrawal circuit (public first, decimal strings)."""
    out = dict(zip(SIGNAL_NAMES, signals.to_json()))
    out.update(
        secret=str(witness.secret),
        nullifier=str(witness.nullifier),
        pathElements=[str(x) for x in witness.path_elements],
        pathIndices=[str(x) for x in witness.path_indices],
    )
    return out


# ---------------------------------------------------------------------------
# Relations
# ---------------------------------------------------------------------------


def compute_path_root(
    leaf: int, path_elements: Sequence[int], path_indices: Sequence[int], hasher=hash2
) -> int:
    """Fold a membership path with the same ordering rule as tree insertion."""
    if len(path_elements) != len(path_indices):
        raise InvalidInput(
            "path length mismatch", elements=len(path_elements), indices=len(path_indices)
        )
    current = leaf
    for sibling, bit in zip(path_elements, path_indices):
        if bit == 0:
            current = hasher(current, sibling)
        elif bit == 1:
            current = hasher(sibling, current)
        else:
            raise InvalidInput("path index must be 0 or 1", value=bit)
    return current


def check_relations(
    signals: PublicSignals, witness: PrivateWitness, *, depth: Optional[int] = None
) -> None:
    """Raise ProofInvalid naming the first relation that does not hold."""
    if witness.secret == 0 or witness.nullifier == 0:
        raise ProofInvalid("secret and nullifier must be non-zero", relation=7)
    if signals.amount <= 0:
        raise ProofInvalid("amount must be positive", relation=4)
    if signals.protocol_fee > fee_cap(signals.amount):
        raise ProofInvalid(
            "protocol fee above 1% of amount",
            relation=5,
            fee=signals.protocol_fee,
            cap=fee_cap(signals.amount),
        )
    if signals.recipient >= ADDRESS_LIMIT:
        raise ProofInvalid("recipient does not fit 160 bits", relation=6)
    if depth is not None and len(witness.path_elements) != depth:
        raise ProofInvalid("path length does not match tree depth", relation=3, depth=depth)

    leaf = hash3(witness.secret, witness.nullifier, signals.amount)
    if hash2(witness.secret, witness.nullifier) != signals.nullifier_hash:
        raise ProofInvalid("nullifier hash does not match secrets", relation=2)
    try:
        root = compute_path_root(leaf, witness.path_elements, witness.path_indices)
    except InvalidInput as e:
        raise ProofInvalid(e.message, relation=3) from e
    if root != signals.root:
        raise ProofInvalid("path does not lead to root", relation=3)


# ---------------------------------------------------------------------------
# Proof transport
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Groth16Proof:
    """
    Groth16 proof points in snarkjs orientation.

    `b` holds G2 coordinates as ((x.c0, x.c1), (y.c0, y.c1)). Solidity verifier
    calldata carries each pair as [c1, c0]; `from_calldata`/`to_calldata`
    do the swap.
    """

    a: Tuple[int, int]
    b: Tuple[Tuple[int, int], Tuple[int, int]]
    c: Tuple[int, int]

    @classmethod
    def from_snarkjs(cls, obj: Mapping[str, Any]) -> "Groth16Proof":
        try:
            a = obj["pi_a"]
            b = obj["pi_b"]
            c = obj["pi_c"]
            return cls(
                a=(parse_int(a[0]), parse_int(a[1])),
                b=(
                    (parse_int(b[0][0]), parse_int(b[0][1])),
                    (parse_int(b[1][0]), parse_int(b[1][1])),
                ),
                c=(parse_int(c[0]), parse_int(c[1])),
            )
        except (KeyError, IndexError, TypeError, ZKError) as e:
            raise InvalidInput("malformed groth16 proof", reason=str(e)) from e

    @classmethod
    def from_calldata(
        cls, a: Sequence[Any], b: Sequence[Sequence[Any]], c: Sequence[Any]
    ) -> "Groth16Proof":
        try:
            if len(a) != 2 or len(c) != 2 or len(b) != 2 or any(len(row) != 2 for row in b):
                raise InvalidInput("calldata proof must be a[2], b[2][2], c[2]")
            return cls(
                a=(parse_int(a[0]), parse_int(a[1])),
                b=(
                    (parse_int(b[0][1]), parse_int(b[0][0])),
                    (parse_int(b[1][1]), parse_int(b[1][0])),
                ),
                c=(parse_int(c[0]), parse_int(c[1])),
            )
        except (TypeError, ZKError) as e:
            raise InvalidInput("malformed calldata proof", reason=str(e)) from e

    def to_calldata(self) -> Tuple[List[int], List[List[int]], List[int]]:
        (x0, x1), (y0, y1) = self.b
        return list(self.a), [[x1, x0], [y1, y0]], list(self.c)

    def to_snarkjs(self) -> dict:
        (x0, x1), (y0, y1) = self.b
        return {
            "protocol": "groth16",
            "curve": "bn128",
            "pi_a": [str(self.a[0]), str(self.a[1]), "1"],
            "pi_b": [[str(x0), str(x1)], [str(y0), str(y1)], ["1", "0"]],
            "pi_c": [str(self.c[0]), str(self.c[1]), "1"],
        }


# ---------------------------------------------------------------------------
# Verifier capability
# ---------------------------------------------------------------------------


@runtime_checkable
class ProofVerifier(Protocol):
    def verify(self, proof: Mapping[str, Any], public: Sequence[int]) -> bool:
        ...


class BackendVerifier:
    """`ProofVerifier` backed by a `zk.verifiers` adapter and a fixed verifying key."""

    def __init__(self, protocol: str, vk: Mapping[str, Any]) -> None:
        if not isinstance(vk, Mapping):
            raise ConfigError("verifying key must be a JSON object")
        n = vk.get("nPublic")
        if n is not None and int(n) != N_PUBLIC:
            raise ConfigError(
                "verifying key has the wrong number of public signals",
                expected=N_PUBLIC,
                got=int(n),
            )
        if protocol == "groth16":
            try:
                load_groth16_vk(vk)
            except (ValueError, TypeError, ZKError) as e:
                raise ConfigError("malformed groth16 verifying key", reason=str(e)) from e
        self.protocol = protocol
        self.vk = dict(vk)

    @classmethod
    def from_file(cls, protocol: str, path: Union[str, Path]) -> "BackendVerifier":
        p = Path(path)
        try:
            vk = json.loads(p.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ConfigError("verifying key file not found", path=str(p)) from e
        except json.JSONDecodeError as e:
            raise ConfigError("verifying key file is not JSON", path=str(p)) from e
        return cls(protocol, vk)

    def verify(self, proof: Mapping[str, Any], public: Sequence[int]) -> bool:
        return zk_verify(self.protocol, proof, list(public), self.vk).ok


__all__ = [
    "N_PUBLIC",
    "ADDRESS_BITS",
    "ADDRESS_LIMIT",
    "FEE_CAP_DIVISOR",
    "SIGNAL_NAMES",
    "fee_cap",
    "PublicSignals",
    "PrivateWitness",
    "circuit_inputs",
    "compute_path_root",
    "check_relations",
    "Groth16Proof",
    "ProofVerifier",
    "BackendVerifier",
]
