"""
zk.verifiers.poseidon
=====================

Poseidon hash over the BN254 (altbn128) scalar field (Fr).

This module implements the Poseidon permutation and the fixed-arity hash used
by circom-style circuits. circomlib's parameter sets (`bn254_t3`, `bn254_t4`)
are regenerated from the reference Grain LFSR and registered at import, so
the native side matches circomlib's `Poseidon(2)`/`Poseidon(3)` templates out
of the box. Circuits built with other parameters register theirs at startup
(programmatically or by loading JSON files that include the MDS matrix and
round constants); a registration under the same name replaces the default.

Why fingerprinted?
------------------
Width `t`, full/partial round counts `R_F`/`R_P`, round constants and MDS
must match the in-circuit implementation verbatim. Any divergence makes every
natively computed root unprovable, and nothing fails loudly. Parameter sets
therefore carry a fingerprint (`params_fingerprint`) that deployments pin in
configuration and check at startup.

Hash convention
---------------
For `n` inputs the width is `t = n + 1` and the registered set is looked up
as `bn254_t{t}`. The state is initialised as `[0, in_1, ..., in_n]`, permuted
once, and `state[0]` is the digest. Inputs must be canonical field elements;
an out-of-range input would alias `x mod r` and is rejected.

Public API
----------
- PoseidonParams(t, R_F, R_P, alpha, mds, rc)
- register_params(name, params) / get_params(name) / registered_names()
- load_params_json(path, name=None)   # JSON schema documented below
- load_params_dir(directory)          # every *.json in a directory
- params_fingerprint(params) -> str   # sha3-256 hex of the canonical encoding
- poseidon_permute(state, params)
- poseidon(inputs)                    # fixed arity, t = len(inputs) + 1
- hash2(a, b), hash3(a, b, c)
- derive_circomlib_params(t) / register_circomlib_params()

JSON schema (example)
---------------------
{
  "field": "bn254:fr",
  "alpha": 5,
  "t": 3,
  "R_F": 8,
  "R_P": 57,
  "mds": [[...t ints...], [...], [...]],
  "rc":  [[...t ints...], ... R_F+R_P rows ...]     # or one flat list
}

All integers are encoded as decimal strings, 0x-hex strings or JSON numbers.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from collections import deque
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import cbor2

from .field import R as _MOD

log = logging.getLogger(__name__)


# ---------------------------
# Parameters & registry
# ---------------------------


@dataclass(frozen=True)
class PoseidonParams:
    t: int  # state width
    R_F: int  # number of full rounds
    R_P: int  # number of partial rounds
    alpha: int  # S-box exponent (odd >= 3, commonly 5)
    mds: Tuple[Tuple[int, ...], ...]  # MDS matrix, shape t x t
    rc: Tuple[Tuple[int, ...], ...]  # round constants, shape (R_F + R_P) x t

    def validate(self) -> None:
        if self.t < 2:
            raise ValueError("t must be >= 2")
        if self.R_F % 2 != 0:
            raise ValueError("R_F must be even (split half-before/after partial rounds)")
        if self.alpha < 3 or self.alpha % 2 == 0:
            raise ValueError("alpha must be an odd integer >= 3")
        if len(self.mds) != self.t or any(len(row) != self.t for row in self.mds):
            raise ValueError("mds must be t x t")
        expected_rounds = self.R_F + self.R_P
        if len(self.rc) != expected_rounds or any(len(row) != self.t for row in self.rc):
            raise ValueError(f"rc must be (R_F+R_P) x t = {expected_rounds} x {self.t}")
        for row in (*self.mds, *self.rc):
            if any(not 0 <= v < _MOD for v in row):
                raise ValueError("parameters must be canonical field elements")

    def to_dict(self) -> Dict[str, object]:
        return {
            "field": "bn254:fr",
            "t": self.t,
            "R_F": self.R_F,
            "R_P": self.R_P,
            "alpha": self.alpha,
            "mds": [list(row) for row in self.mds],
            "rc": [list(row) for row in self.rc],
        }


_PARAMS_REGISTRY: Dict[str, PoseidonParams] = {}


def register_params(name: str, params: PoseidonParams) -> None:
    """
    Register a Poseidon parameter set under `name` (e.g. "bn254_t3").

    Call this at process startup with the exact params your circuits use.
    """
    if not name or not isinstance(name, str):
        raise ValueError("name must be a non-empty string")
    params.validate()
    _PARAMS_REGISTRY[name] = params


def get_params(name: str = "bn254_t3") -> PoseidonParams:
    if name not in _PARAMS_REGISTRY:
        raise KeyError(
            f"Poseidon params '{name}' are not registered. "
            "Load them with load_params_json(...) or register_params(...)."
        )
    return _PARAMS_REGISTRY[name]


def registered_names() -> List[str]:
    return sorted(_PARAMS_REGISTRY)


def params_fingerprint(params: PoseidonParams) -> str:
    """sha3-256 hex digest of the canonical CBOR encoding of a parameter set."""
    return hashlib.sha3_256(cbor2.dumps(params.to_dict(), canonical=True)).hexdigest()


def _to_int(x: Union[int, str]) -> int:
    if isinstance(x, int):
        return x % _MOD
    s = str(x).strip().lower()
    if s.startswith("0x"):
        return int(s, 16) % _MOD
    return int(s) % _MOD


def load_params_json(path: Union[str, Path], name: Optional[str] = None) -> PoseidonParams:
    """
    Load a Poseidon params JSON file and register it.

    If `name` is None, a name is derived from the filename (without extension).
    Returns the PoseidonParams object.
    """
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    t = int(raw["t"])
    R_F = int(raw["R_F"])
    R_P = int(raw["R_P"])
    alpha = int(raw.get("alpha", 5))

    mds = tuple(tuple(_to_int(v) for v in row) for row in raw["mds"])
    rc_raw = raw["rc"]
    if rc_raw and not isinstance(rc_raw[0], list):
        # Flat layout (circomlib style): chunk into rows of width t.
        flat = [_to_int(v) for v in rc_raw]
        rc = tuple(tuple(flat[i : i + t]) for i in range(0, len(flat), t))
    else:
        rc = tuple(tuple(_to_int(v) for v in row) for row in rc_raw)

    params = PoseidonParams(t=t, R_F=R_F, R_P=R_P, alpha=alpha, mds=mds, rc=rc)
    reg_name = name or os.path.splitext(os.path.basename(str(path)))[0]
    register_params(reg_name, params)
    log.info("poseidon params loaded", extra={"params": reg_name, "fingerprint": params_fingerprint(params)})
    return params


def load_params_dir(directory: Union[str, Path]) -> Dict[str, PoseidonParams]:
    """Load and register every `*.json` parameter file in `directory`."""
    out: Dict[str, PoseidonParams] = {}
    for p in sorted(Path(directory).glob("*.json")):
        out[p.stem] = load_params_json(p)
    return out


# ---------------------------
# Permutation
# ---------------------------


def poseidon_permute(state: Sequence[int], params: PoseidonParams) -> List[int]:
    """
    Poseidon permutation.

    Round schedule:
      - First R_F/2 full rounds (S-box on all t elements)
      - R_P partial rounds (S-box on the *first* element only)
      - Last  R_F/2 full rounds

    Each round: add round constants, apply S-box, multiply by MDS.
    """
    t, alpha, mds, rc = params.t, params.alpha, params.mds, params.rc
    if len(state) != t:
        raise ValueError(f"state length {len(state)} != t={t}")

    p = _MOD
    x = [int(v) % p for v in state]
    half = params.R_F // 2
    first_partial, first_tail = half, half + params.R_P

    for r, consts in enumerate(rc):
        x = [(a + c) % p for a, c in zip(x, consts)]
        if r < first_partial or r >= first_tail:
            x = [_sbox(a, alpha) for a in x]
        else:
            x[0] = _sbox(x[0], alpha)
        x = [sum(m * a for m, a in zip(row, x)) % p for row in mds]
    return x


def _sbox(a: int, alpha: int) -> int:
    if alpha == 5:
        a2 = a * a % _MOD
        return a2 * a2 % _MOD * a % _MOD
    return pow(a, alpha, _MOD)


# ---------------------------
# Hash interface
# ---------------------------


def poseidon(inputs: Sequence[int]) -> int:
    """
    Fixed-arity Poseidon: width t = len(inputs) + 1, params `bn254_t{t}`.

    Raises ValueError for empty input or non-canonical elements; KeyError if
    no parameter set is registered for the width.
    """
    if not inputs:
        raise ValueError("poseidon needs at least one input")
    for v in inputs:
        if isinstance(v, bool) or not isinstance(v, int) or not 0 <= v < _MOD:
            raise ValueError("poseidon inputs must be canonical field elements")
    params = get_params(f"bn254_t{len(inputs) + 1}")
    return poseidon_permute([0, *inputs], params)[0]


def hash2(a: int, b: int) -> int:
    """Two-to-one compression (tree nodes, nullifier hash)."""
    return poseidon((a, b))


def hash3(a: int, b: int, c: int) -> int:
    """Three-input hash (note commitment)."""
    return poseidon((a, b, c))


# ---------------------------
# Built-in circomlib parameters
# ---------------------------
# circomlib's constants come from the reference Grain LFSR generator
# (generate_parameters_grain.sage) run with field=1, sbox=0, n=254 and the
# BN254 Fr modulus. Round constants are 254-bit rejection samples below r;
# the MDS is the Cauchy matrix 1/(x_i + y_j) over the next 2t samples.

CIRCOMLIB_ROUNDS = {3: (8, 57), 4: (8, 56)}
_FIELD_BITS = 254


class _Grain:
    """80-bit Grain LFSR in self-shrinking mode, seeded from the instance shape."""

    def __init__(self, t: int, R_F: int, R_P: int) -> None:
        seed = (
            format(1, "02b")  # prime field
            + format(0, "04b")  # x^alpha S-box
            + format(_FIELD_BITS, "012b")
            + format(t, "012b")
            + format(R_F, "010b")
            + format(R_P, "010b")
            + "1" * 30
        )
        self._bits = deque((int(b) for b in seed), maxlen=80)
        for _ in range(160):
            self._step()

    def _step(self) -> int:
        b = self._bits
        new = b[62] ^ b[51] ^ b[38] ^ b[23] ^ b[13] ^ b[0]
        b.append(new)
        return new

    def bit(self) -> int:
        while self._step() == 0:
            self._step()
        return self._step()

    def bits(self, n: int) -> int:
        out = 0
        for _ in range(n):
            out = (out << 1) | self.bit()
        return out

    def field_element(self) -> int:
        v = self.bits(_FIELD_BITS)
        while v >= _MOD:
            v = self.bits(_FIELD_BITS)
        return v


def derive_circomlib_params(t: int) -> PoseidonParams:
    """Regenerate circomlib's Poseidon constants for width `t` (3 or 4)."""
    R_F, R_P = CIRCOMLIB_ROUNDS[t]
    g = _Grain(t, R_F, R_P)

    flat = [g.field_element() for _ in range((R_F + R_P) * t)]
    rc = tuple(tuple(flat[i : i + t]) for i in range(0, len(flat), t))

    while True:
        pts = [g.bits(_FIELD_BITS) % _MOD for _ in range(2 * t)]
        if len(set(pts)) != len(pts):
            continue
        xs, ys = pts[:t], pts[t:]
        if any((x + y) % _MOD == 0 for x in xs for y in ys):
            continue
        mds = tuple(tuple(pow(x + y, -1, _MOD) for y in ys) for x in xs)
        break

    return PoseidonParams(t=t, R_F=R_F, R_P=R_P, alpha=5, mds=mds, rc=rc)


@lru_cache(maxsize=None)
def _circomlib_params(t: int) -> PoseidonParams:
    return derive_circomlib_params(t)


def register_circomlib_params() -> None:
    """(Re-)register circomlib's `bn254_t3` and `bn254_t4` parameter sets."""
    for t in CIRCOMLIB_ROUNDS:
        register_params(f"bn254_t{t}", _circomlib_params(t))


register_circomlib_params()


__all__ = [
    "PoseidonParams",
    "register_params",
    "get_params",
    "registered_names",
    "params_fingerprint",
    "load_params_json",
    "load_params_dir",
    "poseidon_permute",
    "poseidon",
    "hash2",
    "hash3",
    "CIRCOMLIB_ROUNDS",
    "derive_circomlib_params",
    "register_circomlib_params",
]
