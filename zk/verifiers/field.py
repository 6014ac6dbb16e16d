"""
BN254 scalar field (Fr) helpers.

Every value that crosses the proof boundary (commitments, nullifier hashes,
roots, amounts, recipients, tree siblings) is an element of the BN254 scalar
field, the field snarkjs/circom circuits compute over.

Features:
- Canonical modulus `R` and 32-byte big-endian (de)serialization.
- Strict parsing from int / decimal string / 0x-hex (no silent reduction:
  a non-canonical value would alias another element and is rejected).
- Uniform sampling of non-zero elements from the OS CSPRNG.
"""

from __future__ import annotations

import secrets
from typing import Union

from . import ZKError

# BN254 / alt_bn128 group order r (scalar field of the curve).
R: int = 21888242871839275222246405745257275088548364400416034343698204186575808495617
FR_BYTE_LEN = 32

FieldLike = Union[int, str, bytes]


def is_canonical(x: int) -> bool:
    """True iff `x` is an int in [0, R)."""
    return isinstance(x, int) and not isinstance(x, bool) and 0 <= x < R


def parse_int(x: FieldLike) -> int:
    """Parse int / decimal string / 0x-hex string / big-endian bytes to an int (no reduction)."""
    if isinstance(x, bool):
        raise ZKError("bool is not a field element")
    if isinstance(x, int):
        return x
    if isinstance(x, (bytes, bytearray)):
        return int.from_bytes(bytes(x), "big")
    if isinstance(x, str):
        s = x.strip().lower()
        try:
            return int(s, 16) if s.startswith("0x") else int(s, 10)
        except ValueError as e:
            raise ZKError(f"not an integer literal: {x!r}") from e
    raise ZKError(f"unsupported field element type: {type(x).__name__}")


def to_fr(x: FieldLike) -> int:
    """Parse and require a canonical field element."""
    v = parse_int(x)
    if not 0 <= v < R:
        raise ZKError("value is outside the BN254 scalar field")
    return v


def fr_to_bytes(x: int) -> bytes:
    if not is_canonical(x):
        raise ZKError("value is outside the BN254 scalar field")
    return x.to_bytes(FR_BYTE_LEN, "big")


def fr_from_bytes(b: bytes) -> int:
    if len(b) != FR_BYTE_LEN:
        raise ZKError(f"expected {FR_BYTE_LEN} bytes, got {len(b)}")
    return to_fr(b)


def random_nonzero() -> int:
    """Uniform element of Fr \\ {0} drawn from `secrets`."""
    while True:
        v = secrets.randbelow(R)
        if v != 0:
            return v


def fr_hex(x: int) -> str:
    """0x-prefixed, zero-padded 32-byte hex (the usual calldata rendering)."""
    return "0x" + fr_to_bytes(x).hex()


__all__ = [
    "R",
    "FR_BYTE_LEN",
    "FieldLike",
    "is_canonical",
    "parse_int",
    "to_fr",
    "fr_to_bytes",
    "fr_from_bytes",
    "random_nonzero",
    "fr_hex",
]
