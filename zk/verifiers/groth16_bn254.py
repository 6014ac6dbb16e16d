"""
zk.verifiers.groth16_bn254
==========================

Groth16 verifier for BN254 (altbn128), compatible with the common
`snarkjs` JSON layout.

Verification equation (standard form)
-------------------------------------
    e(A, B) == e(alpha1, beta2) * e(VK_x, gamma2) * e(C, delta2)

We implement this as a product check in GT:
    e(A, B) * e(-alpha1, beta2) * e(-VK_x, gamma2) * e(-C, delta2) == 1

JSON compatibility (snarkjs)
----------------------------
- Verifying key:
  {
    "protocol": "groth16", "curve": "bn128", "nPublic": n,
    "vk_alpha_1": [ax, ay, "1"],
    "vk_beta_2": [[bx0, bx1], [by0, by1], ["1", "0"]],
    "vk_gamma_2": [[gx0, gx1], [gy0, gy1], ["1", "0"]],
    "vk_delta_2": [[dx0, dx1], [dy0, dy1], ["1", "0"]],
    "IC": [[ic0x, ic0y, "1"], [ic1x, ic1y, "1"], ...]   # length = 1 + nPublic
  }

- Proof:
  {
    "pi_a": [ax, ay, "1"],
    "pi_b": [[bx0, bx1], [by0, by1], ["1", "0"]],
    "pi_c": [cx, cy, "1"]
  }

All coordinates are decimal strings (or numbers / 0x-hex). For G2, elements are
Fq2 with the convention c0 + c1 * i encoded as [c0, c1]. The trailing
projective "1" entries snarkjs emits are accepted and ignored.

Public API
----------
- load_vk(vk_json) -> VerifyingKey
- load_proof(proof_json) -> Proof
- verify_groth16(vk_json, proof_json, public_inputs) -> bool
- verify(proof, public, vk) -> bool                   # facade adapter entrypoint
- proof_to_json(proof) / vk_to_json(vk)

Notes
-----
- Public inputs must be canonical scalars (< r). Non-canonical inputs would
  verify as their reduction, so they are rejected instead.
- Points are validated to be on the curve; B must lie in the G2 subgroup.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Sequence, Union

from . import ZKError
from .field import parse_int
from .pairing_bn254 import (
    G1Point,
    G2Point,
    check_pairing_product,
    curve_order,
    g1_add,
    g1_from_ints,
    g1_mul,
    g1_neg,
    g2_from_ints,
    in_subgroup_g2,
    is_on_curve_g1,
    is_on_curve_g2,
    normalize_g1,
    normalize_g2,
)

log = logging.getLogger(__name__)

_FR = curve_order()

# ---------------------------
# Data classes
# ---------------------------


@dataclass(frozen=True)
class VerifyingKey:
    alpha1: G1Point
    beta2: G2Point
    gamma2: G2Point
    delta2: G2Point
    IC: List[G1Point]  # [IC0, IC1, ..., ICn]

    @property
    def n_public(self) -> int:
        return len(self.IC) - 1


@dataclass(frozen=True)
class Proof:
    A: G1Point
    B: G2Point
    C: G1Point


# ---------------------------
# Loaders (snarkjs JSON)
# ---------------------------


def _g1(coords: Sequence[Any]) -> G1Point:
    if len(coords) < 2:
        raise ValueError("G1 point needs two coordinates")
    return g1_from_ints(parse_int(coords[0]), parse_int(coords[1]))


def _g2(coords: Sequence[Sequence[Any]]) -> G2Point:
    if len(coords) < 2 or len(coords[0]) != 2 or len(coords[1]) != 2:
        raise ValueError("G2 point needs two Fq2 coordinates")
    xx = [parse_int(c) for c in coords[0]]
    yy = [parse_int(c) for c in coords[1]]
    return g2_from_ints(xx, yy)


def _first(d: Mapping[str, Any], *keys: str) -> Any:
    for k in keys:
        if k in d:
            return d[k]
    raise ValueError(f"missing key: one of {keys}")


def load_vk(vk_json: Mapping[str, Any]) -> VerifyingKey:
    """Parse a snarkjs-style verifying key JSON object into a VerifyingKey."""
    alpha1 = _g1(_first(vk_json, "vk_alpha_1", "alpha_1", "alpha1"))
    beta2 = _g2(_first(vk_json, "vk_beta_2", "beta_2", "beta2"))
    gamma2 = _g2(_first(vk_json, "vk_gamma_2", "gamma_2", "gamma2"))
    delta2 = _g2(_first(vk_json, "vk_delta_2", "delta_2", "delta2"))
    ic_pts = [_g1(p) for p in _first(vk_json, "IC", "vk_ic", "ic")]

    if not ic_pts:
        raise ValueError("IC must contain at least one point")
    if not (
        is_on_curve_g1(alpha1)
        and is_on_curve_g2(beta2)
        and is_on_curve_g2(gamma2)
        and is_on_curve_g2(delta2)
    ):
        raise ValueError("VK points are not on curve")
    if not all(is_on_curve_g1(P) for P in ic_pts):
        raise ValueError("IC point not on G1 curve")

    n_public = vk_json.get("nPublic")
    if n_public is not None and int(n_public) != len(ic_pts) - 1:
        raise ValueError(f"nPublic={n_public} disagrees with IC length {len(ic_pts)}")

    return VerifyingKey(alpha1=alpha1, beta2=beta2, gamma2=gamma2, delta2=delta2, IC=ic_pts)


def load_proof(proof_json: Mapping[str, Any]) -> Proof:
    """Parse a snarkjs-style proof JSON object into a Proof."""
    A = _g1(_first(proof_json, "pi_a", "A"))
    B = _g2(_first(proof_json, "pi_b", "B"))
    C = _g1(_first(proof_json, "pi_c", "C"))

    if not (is_on_curve_g1(A) and is_on_curve_g1(C)):
        raise ValueError("proof G1 points are not on curve")
    if not in_subgroup_g2(B):
        raise ValueError("proof B is not in G2")
    return Proof(A=A, B=B, C=C)


def _g1_json(P: G1Point) -> List[str]:
    aff = normalize_g1(P)
    x, y = aff if aff is not None else (0, 0)
    return [str(x), str(y), "1"]


def _g2_json(Q: G2Point) -> List[List[str]]:
    aff = normalize_g2(Q)
    (x0, x1), (y0, y1) = aff if aff is not None else ((0, 0), (0, 0))
    return [[str(x0), str(x1)], [str(y0), str(y1)], ["1", "0"]]


def proof_to_json(proof: Proof) -> dict:
    return {
        "pi_a": _g1_json(proof.A),
        "pi_b": _g2_json(proof.B),
        "pi_c": _g1_json(proof.C),
        "protocol": "groth16",
        "curve": "bn128",
    }


def vk_to_json(vk: VerifyingKey) -> dict:
    return {
        "protocol": "groth16",
        "curve": "bn128",
        "nPublic": vk.n_public,
        "vk_alpha_1": _g1_json(vk.alpha1),
        "vk_beta_2": _g2_json(vk.beta2),
        "vk_gamma_2": _g2_json(vk.gamma2),
        "vk_delta_2": _g2_json(vk.delta2),
        "IC": [_g1_json(P) for P in vk.IC],
    }


# ---------------------------
# Core verification
# ---------------------------


def _vk_x(IC: Sequence[G1Point], inputs: Sequence[int]) -> G1Point:
    """Compute VK_x = IC[0] + sum_i inputs[i] * IC[i+1] in G1."""
    if len(IC) != len(inputs) + 1:
        raise ValueError(f"IC length {len(IC)} != 1 + len(inputs) {len(inputs)}")
    acc = IC[0]
    for i, s in enumerate(inputs):
        if s != 0:
            acc = g1_add(acc, g1_mul(IC[i + 1], s))
    return acc


def verify_proof(vk: VerifyingKey, proof: Proof, public_inputs: Sequence[int]) -> bool:
    """Pairing check over already-parsed objects. Inputs must be canonical scalars."""
    if any(not 0 <= s < _FR for s in public_inputs):
        return False
    vkx = _vk_x(vk.IC, public_inputs)
    return check_pairing_product(
        [
            (proof.A, proof.B),
            (g1_neg(vk.alpha1), vk.beta2),
            (g1_neg(vkx), vk.gamma2),
            (g1_neg(proof.C), vk.delta2),
        ]
    )


def verify_groth16(
    vk_json: Mapping[str, Any],
    proof_json: Mapping[str, Any],
    public_inputs: Sequence[Union[int, str]],
) -> bool:
    """
    Verify a Groth16 proof given snarkjs-style VK/Proof JSON and public inputs.

    Returns True on success, False otherwise (no exceptions for routine failures).
    """
    try:
        vk = load_vk(vk_json)
        pf = load_proof(proof_json)
        inputs = [parse_int(v) for v in public_inputs]
        return verify_proof(vk, pf, inputs)
    except (ZKError, ValueError, TypeError, KeyError, ArithmeticError) as e:
        log.debug("groth16 rejected malformed input", extra={"reason": str(e)})
        return False


def verify(proof: Mapping[str, Any], public: Sequence[Any], vk: Mapping[str, Any]) -> bool:
    """Adapter entrypoint used by `zk.verifiers.verify`."""
    return verify_groth16(vk, proof, public)


__all__ = [
    "VerifyingKey",
    "Proof",
    "load_vk",
    "load_proof",
    "proof_to_json",
    "vk_to_json",
    "verify_proof",
    "verify_groth16",
    "verify",
]
